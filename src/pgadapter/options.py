import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Self

import pandas as pd
import pyarrow as pa
from pgadapter.cursor import ResultColumn
from pgadapter.exceptions import ValidationError

__all__ = [
    'DatabaseOptions',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]

# Environment variables applied by `DatabaseOptions.apply_env()`
ENV_OVERRIDES = {
    'hostname': 'PGHOST',
    'port': 'PGPORT',
    'username': 'PGUSER',
    'password': 'PGPASS',
    'database': 'PGDATABASE',
    }


def use_iterdict_data_loader(func):
    """Temporarily use default dict loader over user-specified loader"""

    @wraps(func)
    def inner(*args, **kwargs):
        cn = args[0]

        if hasattr(cn, 'connection') and not hasattr(cn, 'options'):
            cn = cn.connection

        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader

        try:
            return func(*args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader, rows as dicts.
    """
    if not data:
        return []
    return list(data)


def _column_oids(columns: list[ResultColumn]) -> dict[str, int]:
    return {col.name: col.oid for col in columns}


def _empty_dataframe(columns) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=[col.name for col in columns])
    df.attrs['column_oids'] = _column_oids(columns)
    return df


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, with columns preserved for empty results.
    Column type OIDs are kept in `DataFrame.attrs['column_oids']`.
    """
    if not data:
        return _empty_dataframe(columns)

    df = pd.DataFrame.from_records(list(data), columns=[col.name for col in columns])
    df.attrs['column_oids'] = _column_oids(columns)
    return df


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """PyArrow-based pandas DataFrame loader.

    Always returns a DataFrame, with columns preserved for empty results.
    """
    if not data:
        return _empty_dataframe(columns)

    column_names = [col.name for col in columns]
    columns_data = [[row[col] for row in data] for col in column_names]
    df = pa.table(columns_data, names=column_names).to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_oids'] = _column_oids(columns)
    return df


def _scriptname() -> str | None:
    """Name of the running script without its extension, used as the default appname."""
    if not sys.argv or not sys.argv[0]:
        return None
    return os.path.splitext(os.path.basename(sys.argv[0]))[0] or None


@dataclass
class DatabaseOptions:
    """Options

    Server version:
    - server_version: version tuple, version string, or a callable taking the
      connection and returning either. Skips `SHOW server_version`, for
      servers (such as Redshift) that cannot report it.

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    server_version: tuple[int, ...] | str | Callable[..., Any] | None = None
    statement_cache_size: int = 100
    data_loader: Callable[..., Any] | None = None
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        self.appname = self.appname or _scriptname() or 'python_console'
        self.port = int(self.port or 0)
        if not 0 <= self.port <= 65535:
            raise ValidationError(f'port must be between 0 and 65535, got {self.port}')
        if self.statement_cache_size < 1:
            raise ValidationError('statement_cache_size must be at least 1')
        if self.use_pool and self.pool_max_connections < 1:
            raise ValidationError('pool_max_connections must be at least 1')
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader

    def apply_env(self, environ: dict[str, str] | None = None) -> Self:
        """Override connection settings from the PG* environment variables.

        PGHOST, PGPORT, PGUSER, PGPASS and PGDATABASE take precedence over
        the configured values when set.
        """
        environ = os.environ if environ is None else environ
        for field, var in ENV_OVERRIDES.items():
            if var in environ:
                setattr(self, field, environ[var])
        self.__post_init__()
        return self
