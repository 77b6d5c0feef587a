"""Tests for entity inserts and upserts over the fake connection.
"""
import pytest
from pgadapter.exceptions import ValidationError
from pgadapter.types import INT4_OID, INT8_OID, TEXT_OID
from pgadapter.upsert import MAX_PARAMS, _batches

from tests.fixtures.entities import MEMBERSHIP, PERSON, POST
from tests.fixtures.mocks import FakePGresult


def ids(*values):
    return FakePGresult.rows([('id', INT8_OID)], [[v] for v in values])


def person_row(id, name, age):
    return FakePGresult.rows([('id', INT8_OID), ('name', TEXT_OID), ('age', INT4_OID)],
                             [[id, name, age]])


def sent(pgconn):
    """SQL of every prepared statement, in prepare order."""
    return [sql for sql, _ in pgconn.prepared.values()]


class TestInsert:

    def test_insert_entity(self, cn, pgconn):
        pgconn.queue(ids(7))
        assert cn.insert_entity(PERSON, {'name': 'Ann', 'age': 30}) == 7
        assert sent(pgconn) == ['INSERT INTO "person"("name","age") VALUES($1,$2) RETURNING "id"']
        assert pgconn.executed[0][1] == [b'Ann', b'30']

    def test_missing_values_are_null(self, cn, pgconn):
        pgconn.queue(ids(8))
        assert cn.insert_entity(PERSON, {'name': 'Bob'}) == 8
        assert pgconn.executed[0][1] == [b'Bob', None]

    def test_composite_key(self, cn, pgconn):
        """The key of a composite-key row comes from the record."""
        key = cn.insert_entity(MEMBERSHIP, {'person_id': 1, 'club': 'chess'})
        assert key == (1, 'chess')
        assert 'RETURNING' not in sent(pgconn)[0]

    def test_insert_many(self, cn, pgconn):
        pgconn.queue(ids(1, 2, 3))
        rows = [{'person_id': 1, 'title': f't{i}'} for i in range(3)]
        assert cn.insert_many(POST, rows) == [1, 2, 3]
        assert len(pgconn.executed[0][1]) == 9

    def test_insert_many_batches(self, cn, pgconn):
        pgconn.queue(ids(1, 2), ids(3))
        rows = [{'name': n} for n in 'abc']
        assert cn.insert_many(PERSON, rows, batch_size=2) == [1, 2, 3]
        assert len(pgconn.executed) == 2

    def test_insert_many_composite(self, cn, pgconn):
        pgconn.queue(FakePGresult.rows([('person_id', INT8_OID), ('club', TEXT_OID)],
                                       [[1, 'chess']]))
        assert cn.insert_many(MEMBERSHIP, [{'person_id': 1, 'club': 'chess'}]) == [(1, 'chess')]

    def test_insert_many_empty(self, cn, pgconn):
        assert cn.insert_many(PERSON, []) == []
        assert pgconn.executed == []


class TestUpsertEntity:

    def test_with_updates(self, cn, pgconn):
        pgconn.queue(person_row(1, 'Ann', 31))
        row = cn.upsert_entity(PERSON, {'name': 'Ann', 'age': 30}, 'unique_person_name',
                               updates={'age': 31})
        assert row == {'id': 1, 'name': 'Ann', 'age': 31}
        assert sent(pgconn) == [
            'INSERT INTO "person"("name","age") VALUES ($1,$2)'
            ' ON CONFLICT ("name") DO UPDATE SET "age"=$3'
            ' WHERE "person"."name" =$4 RETURNING *']
        assert pgconn.executed[0][1] == [b'Ann', b'30', b'31', b'Ann']

    def test_overwrite(self, cn, pgconn):
        """Without updates the record's own values replace the stored row."""
        pgconn.queue(person_row(1, 'Ann', 30))
        cn.upsert_entity(PERSON, {'name': 'Ann', 'age': 30}, ['name'])
        assert 'DO UPDATE SET "name"=EXCLUDED."name", "age"=EXCLUDED."age"' in sent(pgconn)[0]
        assert pgconn.executed[0][1] == [b'Ann', b'30', b'Ann']

    def test_by_unique_def(self, cn, pgconn):
        pgconn.queue(person_row(1, 'Ann', None))
        assert cn.upsert_entity(PERSON, {'name': 'Ann'}, PERSON.uniques[0])['age'] is None

    def test_unknown_unique(self, cn):
        with pytest.raises(ValidationError, match='no unique constraint'):
            cn.upsert_entity(PERSON, {'name': 'Ann'}, 'unique_person_age')

    def test_old_server(self, make_cn, pgconn):
        cn = make_cn(server_version=(9, 4))
        with pytest.raises(ValidationError, match='9.5'):
            cn.upsert_entity(PERSON, {'name': 'Ann'}, 'unique_person_name')
        assert pgconn.prepared == {}


class TestBulk:

    def test_put_many(self, cn, pgconn):
        pgconn.queue(FakePGresult.command(2))
        assert cn.put_many(PERSON, [{'name': 'a', 'age': 1}, {'name': 'b', 'age': 2}]) == 2
        assert pgconn.executed[0][1] == [b'a', b'1', b'b', b'2']

    def test_put_many_sums_batches(self, cn, pgconn):
        pgconn.queue(*[FakePGresult.command(1) for _ in range(3)])
        assert cn.put_many(PERSON, [{'name': n} for n in 'abc'], batch_size=1) == 3
        assert len(pgconn.executed) == 3

    def test_put_many_without_unique(self, cn):
        with pytest.raises(ValidationError):
            cn.put_many(POST, [{'person_id': 1, 'title': 'x'}])

    def test_repsert_many(self, cn, pgconn):
        pgconn.queue(FakePGresult.command(1))
        assert cn.repsert_many(PERSON, [{'id': 5, 'name': 'e', 'age': None}]) == 1
        assert pgconn.executed[0][1] == [b'5', b'e', None]
        assert 'ON CONFLICT ("id")' in sent(pgconn)[0]

    @pytest.mark.parametrize('method', ['put_many', 'repsert_many'])
    def test_old_server(self, make_cn, pgconn, method):
        cn = make_cn(server_version='9.4.26')
        with pytest.raises(ValidationError, match='needs server 9.5'):
            getattr(cn, method)(PERSON, [{'id': 1, 'name': 'a'}])
        assert pgconn.executed == []

    @pytest.mark.parametrize('method', ['put_many', 'repsert_many'])
    def test_empty(self, cn, pgconn, method):
        assert getattr(cn, method)(PERSON, []) == 0
        assert pgconn.executed == []


def test_batches_respect_parameter_limit():
    rows = [{}] * (MAX_PARAMS + 1)
    sizes = [len(b) for b in _batches(rows, 1, 10 ** 6)]
    assert sizes == [MAX_PARAMS, 1]
    assert [len(b) for b in _batches(rows[:10], 3, 4)] == [4, 4, 2]
