"""
Transaction handling.
"""
import logging
import threading
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


_local = threading.local()


class IsolationLevel(Enum):
    READ_UNCOMMITTED = 'READ UNCOMMITTED'
    READ_COMMITTED = 'READ COMMITTED'
    REPEATABLE_READ = 'REPEATABLE READ'
    SERIALIZABLE = 'SERIALIZABLE'


# The server runs READ UNCOMMITTED as READ COMMITTED anyway
_SERVER_LEVELS = {
    IsolationLevel.READ_UNCOMMITTED: IsolationLevel.READ_COMMITTED,
    }


def begin_sql(isolation: IsolationLevel | str | None = None) -> str:
    """BEGIN statement for the nearest isolation level the server supports.
    """
    if isolation is None:
        return 'BEGIN'
    if isinstance(isolation, str):
        isolation = IsolationLevel(isolation.upper().replace('_', ' '))
    level = _SERVER_LEVELS.get(isolation, isolation)
    return f'BEGIN ISOLATION LEVEL {level.value}'


def _active() -> dict[int, bool]:
    if not hasattr(_local, 'active_transactions'):
        _local.active_transactions = {}
    return _local.active_transactions


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Transaction state is tracked per thread; nested transactions on the same
    connection within a thread are not supported.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from ...', args)
            tx.execute('update from ...', args)
    """

    def __init__(self, cn: Any, isolation: IsolationLevel | str | None = None) -> None:
        self.connection = cn
        self.isolation = isolation

        if id(cn) in _active():
            raise RuntimeError('Nested transactions are not supported')

    def __enter__(self):
        _active()[id(self.connection)] = True
        self.connection.in_transaction = True
        try:
            self.connection.command(begin_sql(self.isolation))
        except Exception:
            self._cleanup()
            raise
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                logger.warning('Rolling back the current transaction')
                self.connection.command('ROLLBACK')
            else:
                self.connection.command('COMMIT')
                logger.debug(f'Committed transaction for connection {id(self.connection)}')
        finally:
            self._cleanup()

    def _cleanup(self) -> None:
        _active().pop(id(self.connection), None)
        self.connection.in_transaction = False

    def command(self, sql: str) -> None:
        """Run a parameterless statement (DDL) within the transaction."""
        self.connection.command(sql)

    def execute(self, sql: str, *args) -> int:
        """Execute SQL within transaction context"""
        return self.connection.execute(sql, *args)

    def query(self, sql: str, *args):
        return self.connection.query(sql, *args)

    def select(self, sql: str, *args, **kwargs) -> Any:
        """Execute SELECT query within transaction context"""
        return self.connection.select(sql, *args, **kwargs)

    def select_row(self, sql: str, *args) -> dict[str, Any]:
        return self.connection.select_row(sql, *args)

    def select_scalar(self, sql: str, *args) -> Any:
        return self.connection.select_scalar(sql, *args)
