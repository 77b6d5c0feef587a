"""
Fixtures for PostgreSQL-specific integration tests.
"""
import pytest


@pytest.fixture
def schema(conn, entities):
    """The shared entities migrated into a clean database."""
    result = conn.migrate(entities)
    assert result.applied
    return conn
