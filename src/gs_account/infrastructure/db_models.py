"""SQLAlchemy table mappings for the account store.

Repositories talk to these tables through SqlExecutor with raw statements; the
mappings exist to describe the schema and to create it for local development
and tests (`create_schema`). Server-side defaults matter: provisioning inserts
only the `id` into user_accesses and user_currencies.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, SmallInteger, String, false, text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Mapped, mapped_column

from src.gs_common.database import Base


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    username: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(72), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_verify: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    access_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


class UserAccessORM(Base):
    __tablename__ = "user_accesses"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    level: Mapped[int] = mapped_column(SmallInteger, nullable=False, server_default=text("0"))
    unban_time: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))


class UserCurrencyORM(Base):
    __tablename__ = "user_currencies"

    # Primary key doubles as the guard against duplicate lazy creation
    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    gold: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    cash: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))


class CharacterORM(Base):
    """Owned by the character store; only user_id / name / unmute_time are used here."""

    __tablename__ = "characters"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    character_name: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    unmute_time: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))


class ServerStatisticORM(Base):
    __tablename__ = "server_statistic"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    user_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))


async def create_schema(engine: AsyncEngine) -> None:
    """CREATE TABLE IF NOT EXISTS for every mapping above."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
