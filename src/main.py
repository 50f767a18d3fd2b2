"""Account store entry point.

Run a connectivity check with: python -m src.main [path/to/pgsqlConfig.json]
"""

import asyncio
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import text

from config.settings import DEFAULT_CONFIG_PATH, load_settings
from src.gs_account.infrastructure.db_models import create_schema
from src.gs_account.infrastructure.persistence import AccountRepository
from src.gs_common.database import build_engine, build_session_factory
from src.gs_common.executor import SqlExecutor

logger = logging.getLogger("gs.main")


@asynccontextmanager
async def account_store(
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    create_tables: bool = False,
) -> AsyncIterator[AccountRepository]:
    """Startup: load settings, verify the DB connection. Shutdown: dispose the pool.

    `create_tables` issues CREATE TABLE IF NOT EXISTS (local dev and tests only).
    """
    settings = load_settings(config_path)
    engine = build_engine(settings)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        if create_tables:
            await create_schema(engine)
        yield AccountRepository(SqlExecutor(build_session_factory(engine)))
    finally:
        await engine.dispose()


async def _check(config_path: str | Path) -> None:
    async with account_store(config_path):
        logger.info("Database reachable")


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config_path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    asyncio.run(_check(config_path))


if __name__ == "__main__":
    main()
