"""
Entity definitions shared by the migration and upsert tests.

    person       id, name (unique), age
    post         id, person_id -> person (on delete cascade), title, body
    membership   composite key (person_id, club)
"""
import pytest
from pgadapter.migration.model import CascadeAction, EntityDef, FieldDef
from pgadapter.migration.model import SqlType, UniqueDef

PERSON = EntityDef(
    name='person',
    fields=(
        FieldDef('name', SqlType.string(), max_len=100),
        FieldDef('age', SqlType.int32(), nullable=True),
        ),
    uniques=(UniqueDef('unique_person_name', ('name',)),),
    )

POST = EntityDef(
    name='post',
    fields=(
        FieldDef('person_id', SqlType.int64(), references='person',
                 on_delete=CascadeAction.CASCADE),
        FieldDef('title', SqlType.string()),
        FieldDef('body', SqlType.string(), nullable=True),
        ),
    )

MEMBERSHIP = EntityDef(
    name='membership',
    fields=(
        FieldDef('person_id', SqlType.int64()),
        FieldDef('club', SqlType.string(), max_len=50),
        FieldDef('since', SqlType.day(), nullable=True),
        ),
    primary=('person_id', 'club'),
    )

ALL_DEFS = [PERSON, POST, MEMBERSHIP]


@pytest.fixture
def entities():
    return list(ALL_DEFS)
