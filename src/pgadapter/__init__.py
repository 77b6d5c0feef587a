"""
PostgreSQL adapter: typed statement execution and schema migration.

Statements can be run either as:
- Module functions: pga.select(cn, sql, *args)
- ConnectionWrapper methods: cn.select(sql, *args)
"""
__version__ = '0.1.0'

from typing import Any

from pgadapter.connection import ConnectionWrapper, connect
from pgadapter.cursor import Cursor
from pgadapter.exceptions import ConnectionFailure, DatabaseError
from pgadapter.exceptions import DbConnectionError, IntegrityError
from pgadapter.exceptions import IntrospectionParseError, MigrationError
from pgadapter.exceptions import MissingPrecisionError, ProgrammingError
from pgadapter.exceptions import QueryError, TypeConversionError
from pgadapter.exceptions import UnsafeAlterationError, ValidationError
from pgadapter.exceptions import VersionDetectionError
from pgadapter.migration import EntityDef, FieldDef, ForeignDef, SqlType
from pgadapter.migration import UniqueDef, apply_migration, migrate
from pgadapter.migration import mock_migration
from pgadapter.options import DatabaseOptions
from pgadapter.transaction import IsolationLevel
from pgadapter.transaction import Transaction as transaction
from pgadapter.types import Value, ValueKind
from pgadapter.version import ServerVersion


def execute(cn: ConnectionWrapper, sql: str, *args: Any) -> int:
    """Execute a SQL statement and return affected row count.
    """
    return cn.execute(sql, *args)


delete = execute
insert = execute
update = execute


def query(cn: ConnectionWrapper, sql: str, *args: Any) -> Cursor:
    return cn.query(sql, *args)


def select(cn: ConnectionWrapper, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a SELECT query.
    """
    return cn.select(sql, *args, **kwargs)


def select_column(cn: ConnectionWrapper, sql: str, *args: Any) -> list[Any]:
    return cn.select_column(sql, *args)


def select_row(cn: ConnectionWrapper, sql: str, *args: Any) -> dict[str, Any]:
    """Execute a query and return a single row.

    Raises AssertionError if the query returns zero or multiple rows.
    """
    return cn.select_row(sql, *args)


def select_row_or_none(cn: ConnectionWrapper, sql: str, *args: Any) -> dict[str, Any] | None:
    return cn.select_row_or_none(sql, *args)


def select_scalar(cn: ConnectionWrapper, sql: str, *args: Any) -> Any:
    """Execute a query and return a single scalar value.

    Raises AssertionError if the query returns zero or multiple rows.
    """
    return cn.select_scalar(sql, *args)


__all__ = [
    'ConnectionFailure',
    'ConnectionWrapper',
    'Cursor',
    'DatabaseError',
    'DatabaseOptions',
    'DbConnectionError',
    'EntityDef',
    'FieldDef',
    'ForeignDef',
    'IntegrityError',
    'IntrospectionParseError',
    'IsolationLevel',
    'MigrationError',
    'MissingPrecisionError',
    'ProgrammingError',
    'QueryError',
    'ServerVersion',
    'SqlType',
    'TypeConversionError',
    'UniqueDef',
    'UnsafeAlterationError',
    'ValidationError',
    'Value',
    'ValueKind',
    'VersionDetectionError',
    'apply_migration',
    'connect',
    'delete',
    'execute',
    'insert',
    'migrate',
    'mock_migration',
    'query',
    'select',
    'select_column',
    'select_row',
    'select_row_or_none',
    'select_scalar',
    'transaction',
    'update',
    ]
