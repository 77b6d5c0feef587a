"""
Plan and apply schema migrations.

Usage:
    plan = migrate(cn, entities)
    for stmt in plan.statements:
        print(stmt.unsafe, stmt.sql)
    result = apply_migration(cn, plan)

`apply_migration` withholds the whole plan when it contains an unsafe
statement (a column drop that was not marked as removable) unless
`allow_unsafe=True` is passed.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from pgadapter.exceptions import IntrospectionParseError, MigrationError
from pgadapter.exceptions import UnsafeAlterationError, ValidationError
from pgadapter.migration.compiler import find_entity, mk_columns
from pgadapter.migration.compiler import safe_to_remove
from pgadapter.migration.differ import get_alters
from pgadapter.migration.introspect import does_table_exist, get_columns
from pgadapter.migration.model import AddForeignKey, AddTable
from pgadapter.migration.model import AddUniqueConstraint, AlterColumn
from pgadapter.migration.model import AlterDB, AlterTable, Column, EntityDef
from pgadapter.migration.model import ForeignDef, Statement, TableMigration
from pgadapter.migration.model import UniqueConstraint
from pgadapter.migration.render import render
from pgadapter.sql import quote_identifier
from pgadapter.transaction import Transaction

logger = logging.getLogger(__name__)

EXTENSION_SQL = 'SELECT COUNT(*) FROM pg_catalog.pg_extension WHERE extname = %s'


@dataclass
class MigrationPlan:
    """Per-table migration statements in execution order."""
    tables: list[TableMigration] = field(default_factory=list)

    @property
    def statements(self) -> list[Statement]:
        return [s for t in self.tables for s in t.statements]

    @property
    def unsafe(self) -> list[UnsafeAlterationError]:
        """Unsafe statements as warning objects."""
        return [UnsafeAlterationError(t.table, s.sql)
                for t in self.tables for s in t.statements if s.unsafe]

    @property
    def errors(self) -> list[IntrospectionParseError]:
        return [e for t in self.tables for e in t.errors]

    @property
    def sql(self) -> list[str]:
        return [s.sql for s in self.statements]

    def __bool__(self) -> bool:
        return bool(self.statements) or bool(self.errors)


@dataclass
class MigrationResult:
    """Outcome of `apply_migration`."""
    executed: list[str] = field(default_factory=list)
    warnings: list[UnsafeAlterationError] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return bool(self.executed)


def _add_reference(all_defs: list[EntityDef], entity: EntityDef,
                   column: Column) -> AlterDB | None:
    ref = column.reference
    if ref.table == entity.name:
        return None
    if not entity.has_composite_key and column.name == entity.id_field.name:
        return None
    target = find_entity(all_defs, ref.table)
    return AlterColumn(entity.name, column.name, AddForeignKey(
        ref.constraint_name, (column.name,), ref.table, target.key_columns, ref.cascade))


def _add_foreign(entity: EntityDef, fdef: ForeignDef) -> AlterDB:
    op = AddForeignKey(fdef.constraint_name, tuple(fdef.columns), fdef.ref_table,
                       tuple(fdef.ref_columns), fdef.cascade)
    return AlterColumn(entity.name, fdef.columns[0], op)


def create_table_alters(all_defs: list[EntityDef], entity: EntityDef,
                        columns: list[Column], uniques: list[UniqueConstraint],
                        foreigns: list[ForeignDef]) -> list[AlterDB]:
    """Alterations creating a table from scratch.

    The table itself comes first, followed by one statement per unique
    constraint and per foreign key.
    """
    if entity.has_composite_key:
        add = AddTable(entity.name, tuple(columns), primary=tuple(entity.primary))
    else:
        id_name = entity.id_field.name
        id_column = next((c for c in columns if c.name == id_name), None)
        if id_column is None:
            raise ValidationError(f'{entity.name}: id column {id_name!r} cannot be marked removable')
        add = AddTable(entity.name, tuple(c for c in columns if c.name != id_name),
                       id_column=id_column)
    alters: list[AlterDB] = [add]
    alters.extend(AlterTable(entity.name, AddUniqueConstraint(u.name, u.columns))
                  for u in uniques)
    for column in columns:
        if column.reference is not None and (alter := _add_reference(all_defs, entity, column)):
            alters.append(alter)
    alters.extend(_add_foreign(entity, fdef) for fdef in foreigns)
    return alters


def plan_alterations(all_defs: list[EntityDef], entity: EntityDef, exists: bool,
                     old_columns: list[Column], old_uniques: list[UniqueConstraint]
                     ) -> list[AlterDB]:
    """Alterations for one entity against a live snapshot.
    """
    columns, uniques, foreigns = mk_columns(all_defs, entity)
    columns = [c for c in columns if not safe_to_remove(entity, c.name)]
    if not exists:
        return create_table_alters(all_defs, entity, columns, uniques, foreigns)
    column_alters, table_alters = get_alters(
        all_defs, entity, (columns, uniques), (old_columns, old_uniques))
    return ([AlterColumn(entity.name, name, op) for name, op in column_alters]
            + [AlterTable(entity.name, op) for op in table_alters])


def migrate_entity(cn: Any, all_defs: list[EntityDef], entity: EntityDef) -> TableMigration:
    """Introspect one table and plan its statements.

    Introspection errors are returned in the `TableMigration` instead of
    being raised.
    """
    desired, _, _ = mk_columns(all_defs, entity)
    rows = get_columns(cn, entity, desired)
    errors = [r for r in rows if isinstance(r, IntrospectionParseError)]
    if errors:
        logger.warning(f'{len(errors)} introspection errors for {entity.name}')
        return TableMigration(entity.name, errors=errors)

    old_columns = [r for r in rows if isinstance(r, Column)]
    old_uniques = [r for r in rows if isinstance(r, UniqueConstraint)]
    exists = bool(rows) or does_table_exist(cn, entity.name)
    alters = plan_alterations(all_defs, entity, exists, old_columns, old_uniques)
    return TableMigration(entity.name, [render(a) for a in alters])


def migrate(cn: Any, all_defs: list[EntityDef],
            entities: list[EntityDef] | None = None) -> MigrationPlan:
    """Plan migrations for `entities` (default: all of `all_defs`).

    `all_defs` must include every entity a reference can point at.
    """
    plan = MigrationPlan()
    for entity in entities if entities is not None else all_defs:
        plan.tables.append(migrate_entity(cn, all_defs, entity))
    logger.debug(f'Planned {len(plan.statements)} statements for {len(plan.tables)} tables')
    return plan


def mock_migration(entities: list[EntityDef]) -> list[str]:
    """Statements a brand-new database would receive. No connection is used.
    """
    sql = []
    for entity in entities:
        alters = plan_alterations(entities, entity, False, [], [])
        sql.extend(render(a).sql for a in alters)
    return sql


def migrate_enable_extension(cn: Any, name: str) -> list[Statement]:
    """Statement enabling an extension, or nothing if it is already enabled.
    """
    if cn.select_scalar(EXTENSION_SQL, name) == 0:
        return [Statement(f'CREATe EXTENSION {quote_identifier(name)}')]
    return []


def apply_migration(cn: Any, plan: MigrationPlan, allow_unsafe: bool = False) -> MigrationResult:
    """Run a plan in a single transaction.

    Raises
        MigrationError: If any table failed introspection
    """
    if plan.errors:
        raise MigrationError(plan.errors)

    warnings = plan.unsafe
    if warnings and not allow_unsafe:
        for warning in warnings:
            logger.warning(f'Withheld unsafe statement on {warning.table}: {warning.sql}')
        return MigrationResult(warnings=warnings)

    executed = []
    with Transaction(cn) as tx:
        for stmt in plan.statements:
            tx.command(stmt.sql)
            executed.append(stmt.sql)
    logger.debug(f'Applied {len(executed)} migration statements')
    return MigrationResult(executed=executed, warnings=warnings)
