"""
Pull cursor over one statement result.

A `Cursor` owns a libpq result handle. Rows are decoded lazily, one per
`next()`, into lists of `Value`. The handle is released exactly once: when
iteration is exhausted, when the cursor is closed early (or its `with` block
exits), or when decoding a row fails.
"""
import logging
import time
from collections.abc import Iterator
from dataclasses import dataclass
from functools import wraps
from typing import Any, Self

from pgadapter.adapters.type_mapping import DecoderRegistry
from pgadapter.types import Value

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL, parameters and timing on a connection."""
    @wraps(func)
    def wrapper(self, sql: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{sql}\nargs: {args}')
        try:
            return func(self, sql, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


@dataclass(frozen=True, slots=True)
class ResultColumn:
    """Name and type OID of one result column."""
    name: str
    oid: int


def columns_from_result(result: Any) -> tuple[ResultColumn, ...]:
    """Capture the column descriptions of a libpq result.
    """
    columns = []
    for i in range(result.nfields):
        name = result.fname(i)
        columns.append(ResultColumn(name.decode() if name is not None else f'?column{i}?',
                                    result.ftype(i)))
    return tuple(columns)


class Cursor:
    """Single-pass iterator of decoded rows.

    Examples
        with cn.query('select id, name from person where age > %s', 30) as cur:
            for id_, name in cur:
                ...
    """

    def __init__(self, result: Any, registry: DecoderRegistry | None = None) -> None:
        self._result = result
        self._registry = registry or DecoderRegistry.get_instance()
        self._columns = columns_from_result(result)
        self._ntuples = result.ntuples
        self._row = 0

    def __iter__(self) -> Iterator[list[Value]]:
        return self

    def __next__(self) -> list[Value]:
        if self._result is None or self._row >= self._ntuples:
            self.close()
            raise StopIteration
        try:
            row = [self._registry.decode(col.oid, self._result.get_value(self._row, i))
                   for i, col in enumerate(self._columns)]
        except Exception:
            self.close()
            raise
        self._row += 1
        return row

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def columns(self) -> tuple[ResultColumn, ...]:
        """Column descriptions, captured when the statement completed."""
        return self._columns

    @property
    def names(self) -> list[str]:
        return [col.name for col in self._columns]

    @property
    def rowcount(self) -> int:
        """Number of rows in the result, consumed or not."""
        return self._ntuples

    @property
    def closed(self) -> bool:
        return self._result is None

    def close(self) -> None:
        """Release the result handle. Safe to call more than once.
        """
        if self._result is not None:
            result, self._result = self._result, None
            result.clear()
            logger.debug(f'Released result after {self._row}/{self._ntuples} rows')

    def fetchone(self) -> list[Value] | None:
        """Next row, or None once the cursor is exhausted."""
        return next(self, None)

    def fetchall(self) -> list[list[Value]]:
        """All remaining rows."""
        return list(self)

    def fetchdicts(self) -> list[dict[str, Any]]:
        """All remaining rows as dicts of plain Python values.
        """
        names = self.names
        return [dict(zip(names, [v.to_python() for v in row])) for row in self]
