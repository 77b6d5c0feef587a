"""
Schema reconciliation: compare declared entities with the live schema and
produce ordered, safety-classified DDL.
"""
from pgadapter.migration.compiler import mk_columns, ref_name, safe_to_remove
from pgadapter.migration.differ import get_alters
from pgadapter.migration.introspect import does_table_exist, get_columns
from pgadapter.migration.migrate import MigrationPlan, MigrationResult
from pgadapter.migration.migrate import apply_migration, migrate
from pgadapter.migration.migrate import migrate_enable_extension, mock_migration
from pgadapter.migration.model import CascadeAction, Column, EntityDef
from pgadapter.migration.model import FieldDef, ForeignDef, ForeignKeyRef
from pgadapter.migration.model import SqlType, Statement, UniqueConstraint
from pgadapter.migration.model import UniqueDef
from pgadapter.migration.render import render

__all__ = [
    'CascadeAction',
    'Column',
    'EntityDef',
    'FieldDef',
    'ForeignDef',
    'ForeignKeyRef',
    'MigrationPlan',
    'MigrationResult',
    'SqlType',
    'Statement',
    'UniqueConstraint',
    'UniqueDef',
    'apply_migration',
    'does_table_exist',
    'get_alters',
    'get_columns',
    'migrate',
    'migrate_enable_extension',
    'mk_columns',
    'mock_migration',
    'ref_name',
    'render',
    'safe_to_remove',
    ]
