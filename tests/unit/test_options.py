import pytest
from pgadapter.exceptions import ValidationError
from pgadapter.options import DatabaseOptions, iterdict_data_loader
from pgadapter.options import pandas_numpy_data_loader


def test_init_defaults():
    """Test default initialization"""
    options = DatabaseOptions(
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=1234,
        timeout=30
    )

    assert options.appname is not None
    assert options.server_version is None
    assert options.statement_cache_size == 100
    assert options.data_loader == pandas_numpy_data_loader

    assert options.use_pool is False
    assert options.pool_max_connections == 5
    assert options.pool_max_idle_time == 300
    assert options.pool_wait_timeout == 30


def test_pooling_options():
    """Test connection pooling options"""
    options = DatabaseOptions(
        hostname='testhost',
        database='testdb',
        use_pool=True,
        pool_max_connections=10,
        pool_max_idle_time=600,
        pool_wait_timeout=60
    )

    assert options.use_pool is True
    assert options.pool_max_connections == 10
    assert options.pool_max_idle_time == 600
    assert options.pool_wait_timeout == 60


@pytest.mark.parametrize('kwargs', [
    {'port': 70000},
    {'port': -1},
    {'statement_cache_size': 0},
    {'use_pool': True, 'pool_max_connections': 0},
])
def test_validation(kwargs):
    """Test validation rules"""
    with pytest.raises(ValidationError):
        DatabaseOptions(hostname='testhost', database='testdb', **kwargs)


def test_explicit_loader_and_appname():
    options = DatabaseOptions(appname='nightly', data_loader=iterdict_data_loader)
    assert options.appname == 'nightly'
    assert options.data_loader is iterdict_data_loader


def test_apply_env():
    """PG* variables win over configured values"""
    options = DatabaseOptions(hostname='configured', port=5432, database='db')
    options.apply_env({'PGHOST': 'envhost', 'PGPORT': '6543', 'PGUSER': 'bob'})
    assert options.hostname == 'envhost'
    assert options.port == 6543
    assert options.username == 'bob'
    assert options.database == 'db'


def test_apply_env_validates():
    with pytest.raises(ValidationError):
        DatabaseOptions().apply_env({'PGPORT': '99999'})


if __name__ == '__main__':
    __import__('pytest').main([__file__])
