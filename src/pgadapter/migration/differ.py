"""
Compute the alterations that bring a live table to its desired shape.

Column operations for one column are emitted in dependency order:

    DropForeignKey   a constraint can block a type change
    SetType
    SetDefault / ClearDefault
    Backfill, SetNullable
    AddForeignKey    once the column has its final type

All column operations come before table (constraint) operations. The output
only depends on the input order of the desired and live lists.
"""
import logging

from pgadapter.migration.compiler import find_entity, safe_to_remove
from pgadapter.migration.model import AddColumn, AddForeignKey
from pgadapter.migration.model import AddUniqueConstraint, Backfill
from pgadapter.migration.model import ClearDefault, Column, ColumnOp
from pgadapter.migration.model import DropColumn, DropConstraint
from pgadapter.migration.model import DropForeignKey, EntityDef, SetDefault
from pgadapter.migration.model import SetNullable, SetType, SqlType, TableOp
from pgadapter.migration.model import TypeKind, UniqueConstraint
from pgadapter.sql import quote_identifier

logger = logging.getLogger(__name__)

# Constraints with this prefix are managed by hand and never dropped
MANUAL_PREFIX = '__manual_'

ColumnAlter = tuple[str, ColumnOp]


def _is_legacy_timestamp(old: SqlType) -> bool:
    return old.kind is TypeKind.OTHER and old.name.lower() == 'timestamp'


def _add_reference(all_defs: list[EntityDef], entity: EntityDef,
                   column: Column) -> list[ColumnAlter]:
    """AddForeignKey for a column's desired reference, if it applies.

    Skipped for references to the entity's own table and for the id column.
    """
    ref = column.reference
    if ref is None:
        return []
    target = find_entity(all_defs, ref.table)
    if ref.table == entity.name:
        return []
    if not entity.has_composite_key and column.name == entity.id_field.name:
        return []
    op = AddForeignKey(ref.constraint_name, (column.name,), ref.table,
                       target.key_columns, ref.cascade)
    return [(column.name, op)]


def find_alters(all_defs: list[EntityDef], entity: EntityDef, new: Column,
                old_columns: list[Column]) -> tuple[list[ColumnAlter], list[Column]]:
    """Alterations for one desired column.

    Returns the alterations and the live columns left to match.
    """
    old = next((c for c in old_columns if c.name == new.name), None)
    if old is None:
        return [(new.name, AddColumn(new)), *_add_reference(all_defs, entity, new)], old_columns
    remaining = [c for c in old_columns if c.name != new.name]
    name = new.name

    drop_ref, add_ref = [], []
    new_ref_name = new.reference.constraint_name if new.reference else None
    old_ref_name = old.reference.constraint_name if old.reference else None
    if new_ref_name != old_ref_name:
        if old.reference is not None:
            drop_ref = [(name, DropForeignKey(old.reference.constraint_name))]
        add_ref = _add_reference(all_defs, entity, new)

    mod_type = []
    if not new.sql_type.matches(old.sql_type):
        using = None
        if new.sql_type.kind is TypeKind.DAYTIME and _is_legacy_timestamp(old.sql_type):
            using = f"{quote_identifier(name)} AT TIME ZONE 'UTC'"
        mod_type = [(name, SetType(new.sql_type, using))]

    mod_default = []
    sequence_default = old.default is not None and old.default.startswith('nextval')
    if new.default != old.default and not sequence_default:
        op = ClearDefault() if new.default is None else SetDefault(new.default)
        mod_default = [(name, op)]

    mod_null = []
    if name not in entity.key_columns:
        if new.nullable and not old.nullable:
            mod_null = [(name, SetNullable(True))]
        elif not new.nullable and old.nullable:
            if new.default is not None:
                mod_null.append((name, Backfill(new.default)))
            mod_null.append((name, SetNullable(False)))

    return drop_ref + mod_type + mod_default + mod_null + add_ref, remaining


def _alter_uniques(new_uniques: list[UniqueConstraint],
                   old_uniques: list[UniqueConstraint]) -> list[TableOp]:
    ops = []
    old_by_name = {u.name: u for u in old_uniques}
    for unique in new_uniques:
        old = old_by_name.pop(unique.name, None)
        if old is None:
            ops.append(AddUniqueConstraint(unique.name, unique.columns))
        elif sorted(unique.columns) != sorted(old.columns):
            ops.append(DropConstraint(unique.name))
            ops.append(AddUniqueConstraint(unique.name, unique.columns))
    ops.extend(DropConstraint(name) for name in sorted(old_by_name)
               if not name.startswith(MANUAL_PREFIX))
    return ops


def get_alters(all_defs: list[EntityDef], entity: EntityDef,
               new: tuple[list[Column], list[UniqueConstraint]],
               old: tuple[list[Column], list[UniqueConstraint]]
               ) -> tuple[list[ColumnAlter], list[TableOp]]:
    """Column and table alterations turning `old` into `new`.

    Live columns without a desired counterpart are dropped; the drop is safe
    only when the entity marks the column as removable.

    Raises
        ValidationError: If a desired reference targets an unknown entity
    """
    new_columns, new_uniques = new
    old_columns, old_uniques = old

    column_alters = []
    for column in new_columns:
        alters, old_columns = find_alters(all_defs, entity, column, old_columns)
        column_alters.extend(alters)
    column_alters.extend((c.name, DropColumn(safe_to_remove(entity, c.name)))
                         for c in old_columns)

    table_alters = _alter_uniques(new_uniques, old_uniques)
    logger.debug(f'{entity.name}: {len(column_alters)} column and '
                 f'{len(table_alters)} table alterations')
    return column_alters, table_alters
