"""Shared test fixtures.

SQL-level tests run against a throwaway SQLite file through aiosqlite, with
the schema created from the table mappings.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.gs_account.auth.credentials import hash_password
from src.gs_account.infrastructure.db_models import create_schema
from src.gs_account.infrastructure.persistence import AccountRepository
from src.gs_common.database import build_session_factory
from src.gs_common.executor import SqlExecutor
from src.gs_common.statement_cache import StatementCache


@pytest.fixture
async def engine(tmp_path) -> AsyncEngine:
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}",
        connect_args={"timeout": 30},
    )
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def statement_cache() -> StatementCache:
    return StatementCache()


@pytest.fixture
def executor(engine: AsyncEngine, statement_cache: StatementCache) -> SqlExecutor:
    return SqlExecutor(build_session_factory(engine), cache=statement_cache)


@pytest.fixture
def repo(executor: SqlExecutor) -> AccountRepository:
    # Minimum bcrypt cost keeps the suite fast
    return AccountRepository(executor, password_hasher=lambda p: hash_password(p, rounds=4))

