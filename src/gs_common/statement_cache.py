"""Query identity cache.

Maps a stable logical operation name (e.g. "GET_GOLD") to the parameterized
statement it runs. The SQL text for a key never changes, so the driver's
per-connection prepared-statement cache (asyncpg) sees the same text on every
call and only new parameter values are bound.

Values are never part of the cached shape: registering a key a second time
with different SQL raises StatementShapeMismatchError.
"""

import logging
import threading
from dataclasses import dataclass, field

from sqlalchemy import TextClause, text

from src.gs_common.errors import StatementShapeMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedStatement:
    key: str
    sql: str
    clause: TextClause = field(compare=False, repr=False)


class StatementCache:
    """Process-wide insert-if-absent map; entries are never evicted."""

    def __init__(self) -> None:
        self._entries: dict[str, PreparedStatement] = {}
        self._lock = threading.Lock()

    def get_or_prepare(self, key: str, shape: str) -> PreparedStatement:
        entry = self._entries.get(key)
        if entry is None:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    entry = PreparedStatement(key=key, sql=shape, clause=text(shape))
                    self._entries[key] = entry
                    logger.debug("Prepared %s: %s", key, shape)
        if entry.sql != shape:
            raise StatementShapeMismatchError(key)
        return entry

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


statement_cache = StatementCache()
