"""
Per-connection prepared statement cache.

Statements are keyed by the SQL text the caller wrote. The cache is a
cachetools LRU; an evicted statement is remembered until the connection
deallocates it on the server, which happens before the next prepare.
"""
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass

import cachetools

logger = logging.getLogger(__name__)


@dataclass
class PreparedStatement:
    """A statement prepared on the server under `name`."""
    name: str
    sql: str
    param_oids: tuple[int, ...]

    def accepts(self, param_oids: tuple[int, ...]) -> bool:
        """Check the statement can run with parameters of these types.

        Untyped (OID 0) parameters fit any prepared type.
        """
        if len(param_oids) != len(self.param_oids):
            return False
        return all(new == 0 or new == old for new, old in zip(param_oids, self.param_oids))


class _EvictingLRUCache(cachetools.LRUCache):
    """LRUCache that reports the items it pushes out."""

    def __init__(self, maxsize: int, on_evict: Callable[[PreparedStatement], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self):
        key, stmt = super().popitem()
        self._on_evict(stmt)
        return key, stmt


class StatementCache:
    """LRU of prepared statements for one connection.

    Not thread-safe; a connection runs one statement at a time.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._evicted: list[PreparedStatement] = []
        self._cache = _EvictingLRUCache(maxsize, self._evicted.append)
        self._names = itertools.count(1)
        self._prefix = f'pga_{id(self):x}'

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, sql: str) -> bool:
        return sql in self._cache

    @property
    def maxsize(self) -> int:
        return self._cache.maxsize

    def get(self, sql: str) -> PreparedStatement | None:
        return self._cache.get(sql)

    def add(self, sql: str, numbered_sql: str, param_oids: tuple[int, ...]) -> PreparedStatement:
        """Record a new statement under a fresh name.

        May evict the least recently used statement.
        """
        stmt = PreparedStatement(f'{self._prefix}_{next(self._names)}', numbered_sql, param_oids)
        self._cache[sql] = stmt
        logger.debug(f'Cached statement {stmt.name} ({len(self._cache)}/{self.maxsize})')
        return stmt

    def discard(self, sql: str) -> None:
        """Forget a statement; it is queued for deallocation.
        """
        stmt = self._cache.pop(sql, None)
        if stmt is not None:
            self._evicted.append(stmt)

    def forget(self, sql: str) -> None:
        """Drop a statement that never reached the server."""
        self._cache.pop(sql, None)

    def pop_evicted(self) -> list[PreparedStatement]:
        """Take the statements waiting to be deallocated.
        """
        evicted = list(self._evicted)
        self._evicted.clear()
        return evicted

    def clear(self) -> list[PreparedStatement]:
        """Empty the cache, returning every statement still prepared.
        """
        for sql in list(self._cache):
            self.discard(sql)
        return self.pop_evicted()
