"""
Render alterations as DDL text.

Statements are assembled with `SqlBuilder`; identifiers only enter through
`ident()`/`idents()`, which quote with `pgadapter.sql.quote_identifier`.
Expressions (defaults, generated columns, type text) are taken verbatim.
"""
from typing import Self

from pgadapter.migration.model import AddColumn, AddForeignKey, AddTable
from pgadapter.migration.model import AddUniqueConstraint, AlterColumn
from pgadapter.migration.model import AlterDB, AlterTable, Backfill
from pgadapter.migration.model import ClearDefault, Column, DropColumn
from pgadapter.migration.model import DropConstraint, DropForeignKey
from pgadapter.migration.model import FieldCascade, SetDefault, SetNullable
from pgadapter.migration.model import SetType, SqlType, Statement, TypeKind
from pgadapter.sql import quote_identifier


class SqlBuilder:
    """Append-only statement builder.

    Examples
        >>> SqlBuilder().kw('DROP TABLE ').ident('a"b').build()
        'DROP TABLE "a""b"'
    """

    def __init__(self) -> None:
        self._parts: list[str] = []

    def kw(self, text: str) -> Self:
        """Keywords and punctuation, spacing included."""
        self._parts.append(text)
        return self

    def expr(self, text: str) -> Self:
        """A trusted SQL expression or type name."""
        self._parts.append(text)
        return self

    def ident(self, name: str) -> Self:
        self._parts.append(quote_identifier(name))
        return self

    def idents(self, names, sep: str = ',') -> Self:
        self._parts.append(sep.join(quote_identifier(n) for n in names))
        return self

    def build(self) -> str:
        return ''.join(self._parts)


def _column(sql: SqlBuilder, column: Column) -> SqlBuilder:
    sql.ident(column.name).kw(' ').expr(column.sql_type.render())
    sql.kw(' NULL' if column.nullable else ' NOT NULL')
    if column.default is not None:
        sql.kw(' DEFAULT ').expr(column.default)
    if column.generated is not None:
        sql.kw(' GENERATED ALWAYS AS (').expr(column.generated).kw(') STORED')
    return sql


def _serial(sql_type: SqlType, default: str | None) -> str:
    if default is None and sql_type.kind is TypeKind.INT64:
        return ' SERIAL8 '
    if default is None and sql_type.kind is TypeKind.INT32:
        return ' SERIAL4 '
    return ' ' + sql_type.render()


def _cascade(sql: SqlBuilder, cascade: FieldCascade) -> SqlBuilder:
    if cascade.on_delete is not None:
        sql.kw(' ON DELETE ').kw(cascade.on_delete.value)
    if cascade.on_update is not None:
        sql.kw(' ON UPDATE ').kw(cascade.on_update.value)
    return sql


def render_create_table(alter: AddTable) -> str:
    # lower case e marks generated CREATE statements
    sql = SqlBuilder().kw('CREATe TABLE ').ident(alter.table).kw('(')
    if alter.primary is not None:
        sql.kw(' PRIMARY KEY (').idents(alter.primary).kw(')')
    else:
        id_column = alter.id_column
        sql.ident(id_column.name).kw(_serial(id_column.sql_type, id_column.default))
        sql.kw(' PRIMARY KEY UNIQUE')
        if id_column.default is not None:
            sql.kw(' DEFAULT ').expr(id_column.default)
    for column in alter.columns:
        _column(sql.kw(','), column)
    return sql.kw(')').build()


def render_alter_column(alter: AlterColumn) -> str:
    sql = SqlBuilder()
    table, name = alter.table, alter.column
    match alter.op:
        case SetType(sql_type=sql_type, using=using):
            sql.kw('ALTER TABLE ').ident(table).kw(' ALTER COLUMN ').ident(name)
            sql.kw(' TYPE ').expr(sql_type.render())
            if using is not None:
                sql.kw(' USING ').expr(using)
        case SetNullable(nullable=True):
            sql.kw('ALTER TABLE ').ident(table).kw(' ALTER COLUMN ').ident(name).kw(' DROP NOT NULL')
        case SetNullable(nullable=False):
            sql.kw('ALTER TABLE ').ident(table).kw(' ALTER COLUMN ').ident(name).kw(' SET NOT NULL')
        case AddColumn(column=column):
            _column(sql.kw('ALTER TABLE ').ident(table).kw(' ADD COLUMN '), column)
        case DropColumn():
            sql.kw('ALTER TABLE ').ident(table).kw(' DROP COLUMN ').ident(name)
        case SetDefault(expr=expr):
            sql.kw('ALTER TABLE ').ident(table).kw(' ALTER COLUMN ').ident(name)
            sql.kw(' SET DEFAULT ').expr(expr)
        case ClearDefault():
            sql.kw('ALTER TABLE ').ident(table).kw(' ALTER COLUMN ').ident(name).kw(' DROP DEFAULT')
        case Backfill(expr=expr):
            sql.kw('UPDATE ').ident(table).kw(' SET ').ident(name).kw('=').expr(expr)
            sql.kw(' WHERE ').ident(name).kw(' IS NULL')
        case AddForeignKey(name=fk, columns=columns, ref_table=ref_table,
                           ref_columns=ref_columns, cascade=cascade):
            sql.kw('ALTER TABLE ').ident(table).kw(' ADD CONSTRAINT ').ident(fk)
            sql.kw(' FOREIGN KEY(').idents(columns).kw(') REFERENCES ').ident(ref_table)
            sql.kw('(').idents(ref_columns).kw(')')
            _cascade(sql, cascade)
        case DropForeignKey(name=fk):
            sql.kw('ALTER TABLE ').ident(table).kw(' DROP CONSTRAINT ').ident(fk)
        case _:
            raise TypeError(f'Unknown column alteration: {alter.op!r}')
    return sql.build()


def render_alter_table(alter: AlterTable) -> str:
    sql = SqlBuilder().kw('ALTER TABLE ').ident(alter.table)
    match alter.op:
        case AddUniqueConstraint(name=name, columns=columns):
            sql.kw(' ADD CONSTRAINT ').ident(name).kw(' UNIQUE(').idents(columns).kw(')')
        case DropConstraint(name=name):
            sql.kw(' DROP CONSTRAINT ').ident(name)
        case _:
            raise TypeError(f'Unknown table alteration: {alter.op!r}')
    return sql.build()


def render(alter: AlterDB) -> Statement:
    """Render one alteration.

    Only a column drop that the entity did not mark as removable is unsafe.
    """
    match alter:
        case AddTable():
            return Statement(render_create_table(alter))
        case AlterColumn(op=DropColumn(safe=safe)):
            return Statement(render_alter_column(alter), unsafe=not safe)
        case AlterColumn():
            return Statement(render_alter_column(alter))
        case AlterTable():
            return Statement(render_alter_table(alter))
    raise TypeError(f'Unknown alteration: {alter!r}')
