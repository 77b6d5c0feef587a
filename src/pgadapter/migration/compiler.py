"""
Compile entity descriptions into desired columns and constraints.
"""
import dataclasses
import logging

from pgadapter.exceptions import ValidationError
from pgadapter.migration.model import Column, EntityDef, FieldCascade, FieldDef
from pgadapter.migration.model import ForeignDef, ForeignKeyRef, SqlType
from pgadapter.migration.model import TypeKind, UniqueConstraint

logger = logging.getLogger(__name__)

# Server limit on identifier length, in bytes
MAX_IDENTIFIER_LENGTH = 63


def _nbytes(s: str) -> int:
    return len(s.encode())


def shorten_names(table: str, column: str, overhead: int) -> tuple[str, str]:
    """Trim the longer of two names, one character at a time, until both
    plus `overhead` bytes fit in an identifier. Ties trim the column.

    Matches the truncation the server applies when it names a constraint.
    """
    while _nbytes(table) + _nbytes(column) + overhead > MAX_IDENTIFIER_LENGTH:
        if _nbytes(table) > _nbytes(column):
            table = table[:-1]
        else:
            column = column[:-1]
    return table, column


def ref_name(table: str, column: str) -> str:
    """Default foreign key constraint name, `<table>_<column>_fkey`.

    Long names are truncated the same way the server truncates them, so a
    name read back from the catalog matches the one generated here.
    """
    table, column = shorten_names(table, column, len('_') + len('_fkey'))
    return f'{table}_{column}_fkey'


def safe_to_remove(entity: EntityDef, column: str) -> bool:
    """Whether the entity marks `column` as removable without confirmation.
    """
    return any(f.safe_to_remove for f in entity.key_and_fields if f.name == column)


def find_entity(all_defs: list[EntityDef], table: str) -> EntityDef:
    """Look up an entity by table name.

    Raises
        ValidationError: If no entity maps to the table
    """
    for entity in all_defs:
        if entity.name == table:
            return entity
    raise ValidationError(f'No entity definition for referenced table {table!r}')


def _field_type(f: FieldDef) -> SqlType:
    if f.max_len is not None and f.sql_type.kind is TypeKind.STRING:
        return SqlType.string(f.max_len)
    return f.sql_type


def _field_column(entity: EntityDef, f: FieldDef) -> Column:
    reference = None
    if f.references is not None:
        reference = ForeignKeyRef(
            table=f.references,
            constraint_name=f.constraint_name or ref_name(entity.name, f.name),
            cascade=FieldCascade(on_update=f.on_update, on_delete=f.on_delete),
            )
    return Column(
        name=f.name,
        nullable=f.nullable,
        sql_type=_field_type(f),
        default=f.default,
        generated=f.generated,
        reference=reference,
        )


def mk_columns(all_defs: list[EntityDef], entity: EntityDef
               ) -> tuple[list[Column], list[UniqueConstraint], list[ForeignDef]]:
    """Desired columns, unique constraints and composite foreign keys.

    The id column comes first unless the entity has a composite key. Composite
    foreign keys get a constraint name and target columns filled in.
    """
    columns = []
    if not entity.has_composite_key:
        id_field = entity.id_field
        columns.append(Column(
            name=id_field.name,
            nullable=False,
            sql_type=_field_type(id_field),
            default=id_field.default,
            ))
    columns.extend(_field_column(entity, f) for f in entity.fields)

    names = [c.name for c in columns]
    if len(set(names)) != len(names):
        raise ValidationError(f'Duplicate column names in {entity.name}: {names}')

    uniques = [UniqueConstraint(u.name, tuple(u.columns)) for u in entity.uniques]

    foreigns = []
    for fdef in entity.foreigns:
        name = fdef.constraint_name or ref_name(entity.name, '_'.join(fdef.columns))
        ref_columns = fdef.ref_columns or find_entity(all_defs, fdef.ref_table).key_columns
        foreigns.append(dataclasses.replace(fdef, constraint_name=name,
                                            ref_columns=tuple(ref_columns)))

    logger.debug(f'Compiled {entity.name}: {len(columns)} columns, '
                 f'{len(uniques)} uniques, {len(foreigns)} foreign keys')
    return columns, uniques, foreigns
