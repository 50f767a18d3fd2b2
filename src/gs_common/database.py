"""Connection provider: async engine + session factory built from settings.

Pooling, reconnects and transient-failure handling belong to SQLAlchemy and
the driver; this module only wires them up.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Shared declarative base for all table mappings."""

    pass


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    url = settings.database_url
    options: dict[str, Any] = {
        "echo": settings.pg_echo,
        # checkout-time liveness test; dead connections are replaced, not handed out
        "pool_pre_ping": True,
    }
    if url.get_backend_name() == "postgresql":
        options["pool_size"] = settings.pg_pool_size
        options["max_overflow"] = settings.pg_max_overflow
        if url.get_driver_name() == "asyncpg":
            options["connect_args"] = {
                "prepared_statement_cache_size": settings.pg_statement_cache_size,
            }
    logger.info("Connecting with connection string: %s", settings.masked_database_url)
    return create_async_engine(url, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
