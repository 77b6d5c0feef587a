"""
Strategy factory for server-specific SQL generation.
"""
from functools import lru_cache

from pgadapter.strategy.base import _STRATEGY_REGISTRY
from pgadapter.strategy.base import DatabaseStrategy as DatabaseStrategy
from pgadapter.strategy.base import register_strategy as register_strategy
from pgadapter.strategy.postgres import PostgresStrategy as PostgresStrategy
from pgadapter.version import MINIMUM_VERSION, ServerVersion, coerce_version


def _validate_dialect(dialect: str) -> None:
    """Raise ValueError if dialect is not registered."""
    if dialect not in _STRATEGY_REGISTRY:
        available = list(_STRATEGY_REGISTRY.keys())
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {available}')


@lru_cache(maxsize=8)
def _get_strategy(dialect: str, server_version: ServerVersion) -> DatabaseStrategy:
    """Get cached strategy instance for a dialect and server version."""
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect](server_version)


def get_strategy(dialect: str = 'postgresql',
                 server_version: ServerVersion | tuple[int, ...] | str = MINIMUM_VERSION
                 ) -> DatabaseStrategy:
    """Get strategy instance for a dialect name and server version.
    """
    return _get_strategy(dialect, coerce_version(server_version))


def get_available_dialects() -> list[str]:
    """Return list of registered dialect names."""
    return list(_STRATEGY_REGISTRY.keys())
