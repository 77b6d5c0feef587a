import pgadapter as pga
import pytest
from pgadapter.transaction import IsolationLevel

pytestmark = pytest.mark.postgresql


def count(cn):
    return pga.select_scalar(cn, 'select count(*) from test_table')


def test_commit(conn):
    with pga.transaction(conn) as tx:
        tx.execute('insert into test_table (name, value) values (%s, %s)', 'Hank', 90)
        assert tx.select_scalar('select count(*) from test_table') == 7
    assert count(conn) == 7


def test_rollback(conn):
    with pytest.raises(RuntimeError), pga.transaction(conn) as tx:
        tx.execute('delete from test_table')
        assert tx.select_scalar('select count(*) from test_table') == 0
        raise RuntimeError('abort')
    assert count(conn) == 6
    assert not conn.in_transaction


def test_failed_statement_rolls_back(conn):
    with pytest.raises(pga.QueryError), pga.transaction(conn) as tx:
        tx.execute('update test_table set value = 0')
        tx.execute('insert into test_table (name, value) values (%s, %s)', 'Alice', 1)
    assert pga.select_scalar(conn, 'select sum(value) from test_table') == 260


@pytest.mark.parametrize('isolation', list(IsolationLevel))
def test_isolation_levels(conn, isolation):
    expected = 'read committed' if isolation is IsolationLevel.READ_UNCOMMITTED \
        else isolation.value.lower()
    with pga.transaction(conn, isolation) as tx:
        assert tx.select_scalar('show transaction_isolation') == expected


def test_autocommit_outside_transaction(conn, psql_docker):
    """Statements outside a transaction are visible to other connections."""
    conn.execute('update test_table set value = %s where name = %s', 11, 'Alice')
    other = pga.connect(psql_docker)
    try:
        assert pga.select_scalar(other, 'select value from test_table where name = %s', 'Alice') == 11
    finally:
        other.close()


if __name__ == '__main__':
    __import__('pytest').main([__file__])
