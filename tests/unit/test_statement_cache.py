"""Tests for the per-connection prepared statement cache.
"""
from pgadapter.cache import PreparedStatement, StatementCache


class TestAccepts:

    def test_same_types(self):
        assert PreparedStatement('s', 'q', (20, 25)).accepts((20, 25))

    def test_untyped_fits_anything(self):
        assert PreparedStatement('s', 'q', (20, 25)).accepts((0, 25))

    def test_different_type(self):
        assert not PreparedStatement('s', 'q', (20, 25)).accepts((25, 25))

    def test_typed_after_untyped(self):
        """A NULL prepared as unknown cannot take a typed value later."""
        assert not PreparedStatement('s', 'q', (0,)).accepts((20,))

    def test_different_count(self):
        assert not PreparedStatement('s', 'q', (20,)).accepts((20, 20))


def test_add_and_get():
    cache = StatementCache(maxsize=2)
    stmt = cache.add('select %s', 'select $1', (20,))
    assert cache.get('select %s') is stmt
    assert 'select %s' in cache
    assert len(cache) == 1
    assert cache.get('other') is None


def test_names_are_unique():
    cache = StatementCache()
    names = {cache.add(f'select {i}', f'select {i}', ()).name for i in range(5)}
    assert len(names) == 5


def test_eviction_queues_deallocation():
    cache = StatementCache(maxsize=2)
    first = cache.add('a', 'a', ())
    cache.add('b', 'b', ())
    cache.get('a')
    second = cache.get('b')
    cache.get('a')
    cache.add('c', 'c', ())
    assert 'b' not in cache
    assert cache.pop_evicted() == [second]
    assert cache.pop_evicted() == []
    assert cache.get('a') is first


def test_discard_queues_deallocation():
    cache = StatementCache()
    stmt = cache.add('a', 'a', ())
    cache.discard('a')
    cache.discard('missing')
    assert 'a' not in cache
    assert cache.pop_evicted() == [stmt]


def test_forget_does_not_queue():
    cache = StatementCache()
    cache.add('a', 'a', ())
    cache.forget('a')
    assert len(cache) == 0
    assert cache.pop_evicted() == []


def test_clear_returns_everything_prepared():
    cache = StatementCache(maxsize=1)
    a = cache.add('a', 'a', ())
    b = cache.add('b', 'b', ())
    assert sorted(s.name for s in cache.clear()) == sorted([a.name, b.name])
    assert len(cache) == 0
    assert cache.pop_evicted() == []
