"""SqlExecutor: uniform select/count/insert/update/upsert/increment primitives.

Every call names a logical key; the statement shape is rendered from the
table, columns and predicate structure and looked up in the StatementCache,
then executed with freshly bound values.

Transaction ownership: pass `db` to run inside a caller-managed session
(e.g. from `transaction()`). Without it the executor opens its own session and
transaction for the single call, commits on success and rolls back on error.

A cancelled or timed-out caller unwinds through the same `async with`: the
session rolls back and closes, and the pool resets the connection on check-in
(invalidating it when the reset itself fails) before anyone else gets it.
"""

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncResult, AsyncSession, async_sessionmaker

from src.gs_common.errors import ConstraintViolationError, DuplicateKeyError
from src.gs_common.predicates import Predicate, render, validate_identifier
from src.gs_common.statement_cache import (
    PreparedStatement,
    StatementCache,
    statement_cache,
)


class _Absent:
    """No row matched. Distinct from a stored NULL or zero."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

# Postgres unique_violation; primary keys report the same code
_UNIQUE_VIOLATION_SQLSTATE = "23505"
_SQLITE_UNIQUE_ERRORS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == _UNIQUE_VIOLATION_SQLSTATE
    if getattr(orig, "sqlite_errorname", None) in _SQLITE_UNIQUE_ERRORS:
        return True
    return str(orig).startswith("UNIQUE constraint failed")


def constraint_error(exc: IntegrityError, table: str | None = None) -> ConstraintViolationError:
    """Translate a driver IntegrityError, keeping duplicate keys distinguishable."""
    if _is_unique_violation(exc):
        return DuplicateKeyError(table, str(exc.orig))
    return ConstraintViolationError(table, str(exc.orig))


def _value_params(values: Mapping[str, Any]) -> tuple[list[str], dict[str, Any]]:
    columns = [validate_identifier(column) for column in values]
    return columns, {f"v_{column}": values[column] for column in columns}


class SqlExecutor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: StatementCache | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cache = cache if cache is not None else statement_cache

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session with an open transaction: commit on clean exit, rollback on error.

        An IntegrityError raised by the commit itself (deferred constraints) is
        translated like one raised by a statement.
        """
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError as exc:
            raise constraint_error(exc) from exc

    @asynccontextmanager
    async def _session(self, db: AsyncSession | None) -> AsyncIterator[AsyncSession]:
        if db is not None:
            yield db
            return
        async with self.transaction() as session:
            yield session

    def _prepare(self, key: str, shape: str) -> PreparedStatement:
        return self._cache.get_or_prepare(key, shape)

    @asynccontextmanager
    async def select_rows(
        self,
        key: str,
        table: str,
        columns: Sequence[str],
        predicate: Predicate | None = None,
        limit: int | None = None,
        db: AsyncSession | None = None,
    ) -> AsyncIterator[AsyncResult[Any]]:
        """Forward-only row stream, closed when the block exits (normally or not)."""
        where, params = render(predicate)
        selected = ", ".join(validate_identifier(column) for column in columns)
        shape = f"SELECT {selected} FROM {validate_identifier(table)}{where}"
        if limit is not None:
            shape += " LIMIT :limit"
            params["limit"] = limit
        stmt = self._prepare(key, shape)
        async with self._session(db) as session:
            result = await session.stream(stmt.clause, params)
            try:
                yield result
            finally:
                await result.close()

    async def select_scalar(
        self,
        key: str,
        table: str,
        column: str,
        predicate: Predicate | None = None,
        db: AsyncSession | None = None,
    ) -> Any:
        """First column of the first matching row, or ABSENT."""
        async with self.select_rows(key, table, [column], predicate, limit=1, db=db) as rows:
            row = await rows.first()
        return ABSENT if row is None else row[0]

    async def count(
        self,
        key: str,
        table: str,
        predicate: Predicate | None = None,
        db: AsyncSession | None = None,
    ) -> int:
        where, params = render(predicate)
        stmt = self._prepare(key, f"SELECT COUNT(*) FROM {validate_identifier(table)}{where}")
        async with self._session(db) as session:
            result = await session.execute(stmt.clause, params)
            return int(result.scalar_one())

    async def insert(
        self,
        key: str,
        table: str,
        values: Mapping[str, Any],
        db: AsyncSession | None = None,
    ) -> None:
        """Insert exactly one row.

        Raises DuplicateKeyError on a key conflict and ConstraintViolationError
        for any other integrity failure.
        """
        columns, params = _value_params(values)
        shape = (
            f"INSERT INTO {validate_identifier(table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':v_' + column for column in columns)})"
        )
        stmt = self._prepare(key, shape)
        async with self._session(db) as session:
            try:
                await session.execute(stmt.clause, params)
            except IntegrityError as exc:
                raise constraint_error(exc, table) from exc

    async def update(
        self,
        key: str,
        table: str,
        values: Mapping[str, Any],
        predicate: Predicate | None = None,
        db: AsyncSession | None = None,
    ) -> int:
        """Update every matching row; returns the row count (0 is fine)."""
        columns, params = _value_params(values)
        where, where_params = render(predicate)
        assignments = ", ".join(f"{column} = :v_{column}" for column in columns)
        stmt = self._prepare(
            key, f"UPDATE {validate_identifier(table)} SET {assignments}{where}"
        )
        async with self._session(db) as session:
            result = await session.execute(stmt.clause, {**params, **where_params})
            return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def upsert(
        self,
        key: str,
        table: str,
        conflict_column: str,
        values: Mapping[str, Any],
        db: AsyncSession | None = None,
    ) -> None:
        """Single-statement INSERT ... ON CONFLICT (col) DO UPDATE."""
        columns, params = _value_params(values)
        conflict = validate_identifier(conflict_column)
        if conflict not in columns:
            raise ValueError(f"Conflict column {conflict!r} must be one of the inserted values")
        updates = [column for column in columns if column != conflict]
        if updates:
            action = "DO UPDATE SET " + ", ".join(
                f"{column} = excluded.{column}" for column in updates
            )
        else:
            action = "DO NOTHING"
        shape = (
            f"INSERT INTO {validate_identifier(table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':v_' + column for column in columns)}) "
            f"ON CONFLICT ({conflict}) {action}"
        )
        stmt = self._prepare(key, shape)
        async with self._session(db) as session:
            await session.execute(stmt.clause, params)

    async def increment(
        self,
        key: str,
        table: str,
        column: str,
        delta: int,
        predicate: Predicate | None = None,
        db: AsyncSession | None = None,
    ) -> Any:
        """Atomic `column = column + delta`, returning the new value (or ABSENT)."""
        target = validate_identifier(column)
        where, params = render(predicate)
        shape = (
            f"UPDATE {validate_identifier(table)} SET {target} = {target} + :delta"
            f"{where} RETURNING {target}"
        )
        stmt = self._prepare(key, shape)
        async with self._session(db) as session:
            result = await session.execute(stmt.clause, {**params, "delta": delta})
            row = result.first()
        return ABSENT if row is None else row[0]
