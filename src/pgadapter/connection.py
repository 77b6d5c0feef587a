"""
Database connection handling with SQLAlchemy and libpq.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class that runs statements on the libpq connection
   underneath a SQLAlchemy connection
3. Engine creation and management through a thread-safe registry

SQLAlchemy owns the connection lifecycle (pooled or not); statements go
straight to libpq (`psycopg.pq`) as prepared statements with text-format
parameters, and results are decoded into `Value` rows by a `Cursor`.

The ConnectionWrapper provides methods like:
- query(sql, *args) - Run a statement and return a pull `Cursor`
- execute(sql, *args) - Run a statement and return the affected row count
- command(sql) - Run parameterless SQL (DDL, transaction control)
- select(sql, *args) - Run a query and hand the rows to the data loader
- migrate(entities) - Plan and apply a schema migration
"""
import atexit
import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Self

import psycopg
import sqlalchemy as sa
from psycopg import pq
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from pgadapter.adapters import DecoderRegistry, EncodedParam, encode_params
from pgadapter.cache import PreparedStatement, StatementCache
from pgadapter.cursor import Cursor, dumpsql
from pgadapter.exceptions import ConnectionFailure, DatabaseError, QueryError
from pgadapter.migration.migrate import MigrationResult, apply_migration
from pgadapter.migration.migrate import migrate as plan_migration
from pgadapter.migration.model import EntityDef
from pgadapter.options import DatabaseOptions, use_iterdict_data_loader
from pgadapter.sql import quote_identifier, to_numbered_placeholders
from pgadapter.strategy import DatabaseStrategy, get_strategy
from pgadapter.upsert import insert_entity, insert_many, put_many
from pgadapter.upsert import repsert_many, upsert_entity
from pgadapter.version import ServerVersion, detect_server_version

__all__ = [
    'ConnectionWrapper',
    'connect',
    'configure_connection',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()

_ROWS = frozenset({pq.ExecStatus.TUPLES_OK})
_DONE = frozenset({pq.ExecStatus.COMMAND_OK, pq.ExecStatus.TUPLES_OK})
_PREPARED = frozenset({pq.ExecStatus.COMMAND_OK})


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    query = {'application_name': options.appname}
    if options.timeout:
        query['connect_timeout'] = str(options.timeout)

    return url_creator(
        drivername='postgresql+psycopg',
        username=options.username,
        password=options.password,
        host=options.hostname,
        port=options.port or None,
        database=options.database,
        query=query
    )


def get_engine_for_options(options: DatabaseOptions, use_pool: bool = False,
                           pool_size: int = 5, pool_recycle: int = 300,
                           pool_timeout: int = 30,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = f'{str(options)}_{use_pool}_{pool_size}_{pool_recycle}_{pool_timeout}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.hostname}/{options.database}')
            return _engine_registry[key]

        url = create_url_from_options(options)

        engine_kwargs: dict[str, Any] = {'echo': False}

        if not use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = pool_size
            engine_kwargs['pool_recycle'] = pool_recycle
            engine_kwargs['pool_timeout'] = pool_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.hostname}/{options.database}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for key, engine in list(_engine_registry.items()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def _pgconn_of(sa_connection: sa.engine.Connection) -> Any:
    return sa_connection.connection.driver_connection.pgconn


class ConnectionWrapper:
    """Runs statements on one libpq connection and tracks calls and timing.

    One statement is in flight at a time; the wrapper does no locking and
    must not be shared between threads.
    """

    def __init__(self, sa_connection: sa.engine.Connection | None = None,
                 options: DatabaseOptions | None = None,
                 pgconn: Any | None = None) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine if sa_connection else None
        self.options = options or DatabaseOptions()
        self.pgconn = pgconn if pgconn is not None else (
            _pgconn_of(sa_connection) if sa_connection else None)
        self.statements = StatementCache(self.options.statement_cache_size)
        self.registry = DecoderRegistry.get_instance()
        self.calls = 0
        self.time = 0
        self.in_transaction = False
        self.server_version: ServerVersion | None = None
        self.strategy: DatabaseStrategy | None = None

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Return the connection to the pool when exiting the context manager
        """
        try:
            self.close()
            logger.debug('Closed connection via context manager')
        except DatabaseError as e:
            logger.debug(f'Error closing connection in __exit__: {e}')

    def detect_version(self) -> ServerVersion:
        """Detect the server version and pick the matching strategy.
        """
        self.server_version = detect_server_version(self, self.options.server_version)
        self.strategy = get_strategy('postgresql', self.server_version)
        return self.server_version

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def is_pooled(self) -> bool:
        """Check if this connection is using SQLAlchemy's connection pooling
        """
        return self.engine is not None and not isinstance(self.engine.pool, NullPool)

    @property
    def closed(self) -> bool:
        return self.pgconn is None or self.pgconn.status == pq.ConnStatus.BAD

    def _error_message(self) -> str:
        if self.pgconn is None:
            return 'connection is closed'
        return self.pgconn.error_message.decode('utf-8', 'replace').strip()

    def _call(self, method: str, *args: Any) -> Any:
        """Call a libpq connection method by name, translating transport failures.

        Raises
            ConnectionFailure: If the wrapper is closed, or with libpq's last
            error message
        """
        if self.pgconn is None:
            raise ConnectionFailure('connection is closed')
        try:
            return getattr(self.pgconn, method)(*args)
        except psycopg.OperationalError as e:
            raise ConnectionFailure(self._error_message() or str(e)) from e

    def _check(self, result: Any, expected: frozenset, sql: str) -> None:
        """Raise for a result with an unexpected status, releasing it.
        """
        if result.status in expected:
            return
        message = result.error_message.decode('utf-8', 'replace').strip()
        status = pq.ExecStatus(result.status)
        result.clear()
        if self.pgconn.status == pq.ConnStatus.BAD:
            raise ConnectionFailure(message or self._error_message())
        if status in _DONE:
            raise QueryError(f'Unexpected result status {status.name} for: {sql}')
        raise QueryError(message or f'Statement failed with status {status.name}')

    def _deallocate(self, stmts: list[PreparedStatement]) -> None:
        for stmt in stmts:
            sql = f'DEALLOCATE {quote_identifier(stmt.name)}'
            try:
                result = self._call('exec_', sql.encode())
                self._check(result, _PREPARED, sql)
                result.clear()
            except QueryError as e:
                logger.warning(f'Could not deallocate {stmt.name}: {e}')

    def _prepare(self, sql: str, params: list[EncodedParam]) -> PreparedStatement:
        """Cached prepared statement for `sql` and these parameter types.

        A cached statement whose parameter types no longer fit is prepared
        again under a new name.
        """
        oids = tuple(p.oid for p in params)
        stmt = self.statements.get(sql)
        if stmt is not None and stmt.accepts(oids):
            return stmt
        if stmt is not None:
            logger.debug(f'Parameter types changed for {stmt.name}, preparing again')
            self.statements.discard(sql)

        numbered, count = to_numbered_placeholders(sql)
        if count != len(params):
            raise QueryError(f'Statement expects {count} parameters, got {len(params)}')

        stmt = self.statements.add(sql, numbered, oids)
        self._deallocate(self.statements.pop_evicted())
        try:
            result = self._call('prepare', stmt.name.encode(), numbered.encode(), oids)
            self._check(result, _PREPARED, numbered)
        except DatabaseError:
            self.statements.forget(sql)
            raise
        result.clear()
        return stmt

    def _run(self, sql: str, args: tuple[Any, ...]) -> Any:
        params = encode_params(args)
        stmt = self._prepare(sql, params)
        return self._call('exec_prepared', stmt.name.encode(), [p.data for p in params])

    @dumpsql
    def query(self, sql: str, *args: Any) -> Cursor:
        """Run a statement that returns rows.

        `%s` or `?` placeholders are bound to `args` in order.

        Returns
            A `Cursor` yielding lists of `Value`; close it (or use it as a
            context manager) if it is not read to the end

        Raises
            QueryError: If the statement fails or returns no rows
        """
        result = self._run(sql, args)
        self._check(result, _ROWS, sql)
        return Cursor(result, self.registry)

    @dumpsql
    def execute(self, sql: str, *args: Any) -> int:
        """Run a statement and return the number of rows it affected.
        """
        result = self._run(sql, args)
        self._check(result, _DONE, sql)
        count = result.command_tuples or 0
        result.clear()
        return count

    @dumpsql
    def command(self, sql: str) -> None:
        """Run parameterless SQL through the simple protocol.

        Used for DDL and transaction control, so placeholder-like text in
        the statement is sent as written.
        """
        result = self._call('exec_', sql.encode())
        self._check(result, _DONE, sql)
        result.clear()

    def select(self, sql: str, *args: Any, **kwargs: Any) -> Any:
        """Run a query and pass the rows to the configured data loader.
        """
        with self.query(sql, *args) as cursor:
            columns = cursor.columns
            data = cursor.fetchdicts()
        result = self.options.data_loader(data, columns, **kwargs)
        logger.debug(f'Select query returned {len(data)} rows')
        return result

    @use_iterdict_data_loader
    def select_row(self, sql: str, *args: Any) -> dict[str, Any]:
        """Run a query and return its single row as a dict.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        data = self.select(sql, *args)
        assert len(data) == 1, f'Expected one row, got {len(data)}'
        return data[0]

    @use_iterdict_data_loader
    def select_row_or_none(self, sql: str, *args: Any) -> dict[str, Any] | None:
        data = self.select(sql, *args)
        if len(data) == 1:
            return data[0]
        return None

    def select_scalar(self, sql: str, *args: Any) -> Any:
        """Run a query and return the single value of its single row.

        Raises AssertionError if the query returns zero or multiple rows.
        """
        row = self.select_row(sql, *args)
        assert len(row) == 1, f'Expected one column, got {len(row)}'
        return next(iter(row.values()))

    def select_column(self, sql: str, *args: Any) -> list[Any]:
        """Run a query and return its first column as a list.
        """
        with self.query(sql, *args) as cursor:
            return [row[0].to_python() for row in cursor]

    def insert_entity(self, entity: EntityDef, record: dict[str, Any]) -> Any:
        return insert_entity(self, entity, record)

    def insert_many(self, entity: EntityDef, records: list[dict[str, Any]], **kw: Any) -> list[Any]:
        return insert_many(self, entity, records, **kw)

    def upsert_entity(self, entity: EntityDef, record: dict[str, Any], unique: Any,
                      updates: dict[str, Any] | None = None) -> dict[str, Any]:
        return upsert_entity(self, entity, record, unique, updates)

    def put_many(self, entity: EntityDef, records: list[dict[str, Any]], **kw: Any) -> int:
        return put_many(self, entity, records, **kw)

    def repsert_many(self, entity: EntityDef, records: list[dict[str, Any]], **kw: Any) -> int:
        return repsert_many(self, entity, records, **kw)

    def migrate(self, entities: list[EntityDef], all_defs: list[EntityDef] | None = None,
                allow_unsafe: bool = False) -> MigrationResult:
        """Plan and apply the migration for `entities` in one transaction.

        `all_defs` defaults to `entities` and must contain every entity a
        reference points at.
        """
        plan = plan_migration(self, all_defs or entities, entities)
        return apply_migration(self, plan, allow_unsafe=allow_unsafe)

    def close(self) -> None:
        """Drop the statement cache and close the SQLAlchemy connection.

        A pooled connection outlives this wrapper, so its prepared
        statements are deallocated first.
        """
        if self.pgconn is None:
            return
        stmts = self.statements.clear()
        if self.is_pooled and not self.closed:
            self._deallocate(stmts)
        if self.sa_connection is not None and not self.sa_connection.closed:
            self.sa_connection.close()
        self.pgconn = None

        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')


def configure_connection(sa_connection: sa.engine.Connection) -> None:
    """Configure a SQLAlchemy connection with session settings.
    """
    get_strategy('postgresql').configure_connection(sa_connection.connection)


def connect(options: DatabaseOptions | dict[str, Any] | None = None,
            **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Connection pooling options:
        use_pool: Whether to use connection pooling (default: False)
        pool_max_connections: Maximum connections in pool (default: 5)
        pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
        pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    Returns
        ConnectionWrapper with the server version detected

    Raises
        ConnectionFailure: If the server cannot be reached
    """
    if isinstance(options, DatabaseOptions):
        options = replace(options, **kw) if kw else options
    else:
        options = DatabaseOptions(**{**(options or {}), **kw})

    engine = get_engine_for_options(options, use_pool=options.use_pool,
                                    pool_size=options.pool_max_connections,
                                    pool_recycle=options.pool_max_idle_time,
                                    pool_timeout=options.pool_wait_timeout)

    try:
        sa_connection = engine.connect()
    except sa.exc.OperationalError as e:
        raise ConnectionFailure(str(e.orig)) from e
    configure_connection(sa_connection)

    cn = ConnectionWrapper(sa_connection, options)
    try:
        cn.detect_version()
    except Exception:
        cn.close()
        raise
    logger.debug(f'Connected to {options.hostname}/{options.database} (server {cn.server_version})')
    return cn
