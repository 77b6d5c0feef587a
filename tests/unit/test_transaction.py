"""Tests for explicit transactions over the simple protocol.
"""
import pytest
from pgadapter.transaction import IsolationLevel, Transaction, begin_sql


@pytest.mark.parametrize(('isolation', 'expected'), [
    (None, 'BEGIN'),
    (IsolationLevel.READ_UNCOMMITTED, 'BEGIN ISOLATION LEVEL READ COMMITTED'),
    (IsolationLevel.READ_COMMITTED, 'BEGIN ISOLATION LEVEL READ COMMITTED'),
    (IsolationLevel.REPEATABLE_READ, 'BEGIN ISOLATION LEVEL REPEATABLE READ'),
    (IsolationLevel.SERIALIZABLE, 'BEGIN ISOLATION LEVEL SERIALIZABLE'),
    ('serializable', 'BEGIN ISOLATION LEVEL SERIALIZABLE'),
    ('read_uncommitted', 'BEGIN ISOLATION LEVEL READ COMMITTED'),
])
def test_begin_sql(isolation, expected):
    """READ UNCOMMITTED is issued as READ COMMITTED."""
    assert begin_sql(isolation) == expected


def test_commit(cn, pgconn):
    with Transaction(cn) as tx:
        assert cn.in_transaction
        tx.execute('update t set a = %s', 1)
    assert pgconn.commands == ['BEGIN', 'COMMIT']
    assert not cn.in_transaction


def test_rollback_on_error(cn, pgconn, caplog):
    with pytest.raises(ValueError):
        with Transaction(cn, IsolationLevel.SERIALIZABLE):
            raise ValueError('boom')
    assert pgconn.commands == ['BEGIN ISOLATION LEVEL SERIALIZABLE', 'ROLLBACK']
    assert 'Rolling back' in caplog.text
    assert not cn.in_transaction


def test_nested_not_supported(cn):
    with Transaction(cn):
        with pytest.raises(RuntimeError, match='Nested transactions'):
            Transaction(cn)


def test_sequential_transactions(cn, pgconn):
    with Transaction(cn):
        pass
    with Transaction(cn):
        pass
    assert pgconn.commands == ['BEGIN', 'COMMIT', 'BEGIN', 'COMMIT']
