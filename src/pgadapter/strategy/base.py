"""
Base strategy interface for SQL generation.

A strategy owns the statements whose shape depends on the server: inserts
returning generated keys, native upserts and bulk conflict-resolution
inserts. Operations the server cannot run natively return None; callers
decide what to do instead, nothing is emulated here.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pgadapter.sql import quote_identifier as sql_quote_identifier
from pgadapter.version import ServerVersion, coerce_version

if TYPE_CHECKING:
    from pgadapter.migration.model import EntityDef

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for server-specific SQL generation.
    """

    def __init__(self, server_version: ServerVersion | tuple[int, ...] | str) -> None:
        self.server_version = coerce_version(server_version)

    def quote_identifier(self, identifier: str) -> str:
        return sql_quote_identifier(identifier)

    @property
    @abstractmethod
    def supports_upsert(self) -> bool:
        """Whether ON CONFLICT statements are available."""

    @abstractmethod
    def insert_sql(self, entity: 'EntityDef') -> str:
        """Single row insert returning the generated key."""

    @abstractmethod
    def insert_many_sql(self, entity: 'EntityDef', count: int) -> str:
        """Multi row insert returning the generated keys."""

    @abstractmethod
    def upsert_sql(self, entity: 'EntityDef', unique_columns: tuple[str, ...],
                   update: str) -> str | None:
        """Insert or update one row on a unique conflict."""

    @abstractmethod
    def put_many_sql(self, entity: 'EntityDef', count: int) -> str | None:
        """Insert or overwrite rows conflicting on any unique."""

    @abstractmethod
    def repsert_many_sql(self, entity: 'EntityDef', count: int) -> str | None:
        """Insert or overwrite rows conflicting on the key."""

    @abstractmethod
    def configure_connection(self, conn: Any) -> None:
        """Prepare a freshly opened driver connection."""
