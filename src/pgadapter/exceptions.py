"""
Exception classes for the PostgreSQL adapter.
"""
import psycopg


class DatabaseError(Exception):
    """Base class for all pgadapter errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining the database connection.

    Carries the last error message recorded by libpq when one is available.
    Never retried here; retries belong to the caller or the pool.
    """


class QueryError(DatabaseError):
    """Statement failed or returned an unexpected result status.
    """


class TypeConversionError(DatabaseError):
    """Error converting a value between Python and its wire encoding.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class VersionDetectionError(DatabaseError):
    """Server version string could not be parsed.
    """


class IntrospectionParseError(DatabaseError):
    """A catalog row for a table could not be turned into a column or constraint.

    Fatal for the table it belongs to; sibling tables are still planned.
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class MissingPrecisionError(IntrospectionParseError):
    """A numeric column has no explicit precision and scale.
    """


class UnsafeAlterationError(DatabaseError):
    """An alteration that may destroy data and was not confirmed.

    Instances are collected as warnings by the migration runner, not raised.
    """

    def __init__(self, table: str, sql: str) -> None:
        super().__init__(f'Unsafe alteration on {table}: {sql}')
        self.table = table
        self.sql = sql


class MigrationError(DatabaseError):
    """One or more tables failed introspection.
    """

    def __init__(self, errors: list[IntrospectionParseError]) -> None:
        lines = '\n'.join(f'  {e}' for e in errors)
        super().__init__(f'Migration could not be planned:\n{lines}')
        self.errors = errors


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    ConnectionFailure,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    QueryError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    )
