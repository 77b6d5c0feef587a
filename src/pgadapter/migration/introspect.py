"""
Read the live shape of a table from the catalog.

Each catalog row becomes a `Column`, a `UniqueConstraint` or an
`IntrospectionParseError`. Errors are collected per row so a single bad row
does not hide the others.
"""
import logging
from typing import Any

from pgadapter.exceptions import IntrospectionParseError
from pgadapter.exceptions import MissingPrecisionError
from pgadapter.migration.model import CascadeAction, Column, EntityDef
from pgadapter.migration.model import FieldCascade, ForeignKeyRef, SqlType
from pgadapter.migration.model import UniqueConstraint

logger = logging.getLogger(__name__)

COLUMNS_SQL = """
SELECT column_name
      ,is_nullable
      ,COALESCE(domain_name, udt_name)
      ,column_default
      ,generation_expression
      ,numeric_precision
      ,numeric_scale
      ,character_maximum_length
FROM information_schema.columns
WHERE table_catalog=current_database()
AND table_schema=current_schema()
AND table_name=%s
ORDER BY ordinal_position
"""

# Domains keep their own name (COALESCE above) so a column declared with a
# domain type is compared against the domain, not its base type.

CONSTRAINTS_SQL = """
SELECT c.constraint_name
      ,c.column_name
FROM information_schema.key_column_usage AS c
    ,information_schema.table_constraints AS k
WHERE c.table_catalog=current_database()
AND c.table_catalog=k.table_catalog
AND c.table_schema=current_schema()
AND c.table_schema=k.table_schema
AND c.table_name=%s
AND c.table_name=k.table_name
AND c.constraint_name=k.constraint_name
AND NOT k.constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY')
ORDER BY c.constraint_name, c.column_name
"""

REFERENCE_SQL = """
SELECT DISTINCT ccu.table_name
      ,tc.constraint_name
      ,rc.update_rule
      ,rc.delete_rule
FROM information_schema.constraint_column_usage ccu
INNER JOIN information_schema.key_column_usage kcu
    ON ccu.constraint_name = kcu.constraint_name
INNER JOIN information_schema.table_constraints tc
    ON tc.constraint_name = kcu.constraint_name
LEFT JOIN information_schema.referential_constraints AS rc
    ON rc.constraint_name = ccu.constraint_name
WHERE tc.constraint_type='FOREIGN KEY'
AND kcu.ordinal_position=1
AND kcu.table_name=%s
AND kcu.column_name=%s
AND tc.constraint_name=%s
"""

TABLE_EXISTS_SQL = """
SELECT COUNT(*) FROM pg_catalog.pg_tables
WHERE schemaname != 'pg_catalog'
AND schemaname != 'information_schema'
AND tablename=%s
"""

_SIMPLE_TYPES = {
    'int4': SqlType.int32(),
    'int8': SqlType.int64(),
    'date': SqlType.day(),
    'bool': SqlType.boolean(),
    'timestamptz': SqlType.daytime(),
    'float4': SqlType.real(),
    'float8': SqlType.real(),
    'bytea': SqlType.blob(),
    'time': SqlType.time(),
    'interval': SqlType.interval(),
    }

_CASCADE_RULES = {
    'NO ACTION': None,
    'CASCADE': CascadeAction.CASCADE,
    'SET NULL': CascadeAction.SET_NULL,
    'SET DEFAULT': CascadeAction.SET_DEFAULT,
    'RESTRICT': CascadeAction.RESTRICT,
    }

_CAST_SUFFIXES = ('::character varying', '::text')

IntrospectedRow = Column | UniqueConstraint | IntrospectionParseError


def strip_suffixes(expr: str | None) -> str | None:
    """Drop the first matching trailing text cast the server adds to defaults.
    """
    if expr is None:
        return None
    for suffix in _CAST_SUFFIXES:
        if expr.endswith(suffix):
            return expr[:-len(suffix)]
    return expr


def _text(value: Any) -> Any:
    return value.decode() if isinstance(value, bytes) else value


def parse_type(table: str, column: str, type_name: str, precision: Any,
               scale: Any, max_len: Any) -> SqlType:
    """Map a catalog type name to a logical type.

    Raises
        MissingPrecisionError: For a numeric column without precision and scale
        IntrospectionParseError: For a numeric precision or scale that is not an integer
    """
    if type_name in _SIMPLE_TYPES:
        return _SIMPLE_TYPES[type_name]
    if type_name in {'varchar', 'text'}:
        return SqlType.string(max_len if isinstance(max_len, int) else None)
    if type_name == 'numeric':
        if precision is None and scale is None:
            raise MissingPrecisionError(
                f'No precision and scale were specified for the column: {column} in table: {table}.'
                ' The server default allows up to 16383 digits before and 16383 after the decimal'
                ' point, which is probably not what you intended. Specify the values as'
                ' numeric(total_digits, digits_after_decimal_place).', table)
        if not isinstance(precision, int) or not isinstance(scale, int):
            raise IntrospectionParseError(
                f'Can not get numeric field precision for the column: {column} in table: {table}.'
                f' Expected an integer for both precision and scale, got: {precision!r} and'
                f' {scale!r}, respectively.', table)
        return SqlType.numeric(precision, scale)
    if isinstance(max_len, int):
        return SqlType.other(f'{type_name}({max_len})')
    return SqlType.other(type_name)


def _parse_cascade(table: str, rule: Any) -> CascadeAction | None:
    rule = _text(rule)
    if rule is None:
        return None
    if rule not in _CASCADE_RULES:
        raise IntrospectionParseError(f'Unexpected referential action {rule!r} in table: {table}', table)
    return _CASCADE_RULES[rule]


def get_reference(cn: Any, table: str, column: str, constraint_name: str) -> ForeignKeyRef | None:
    """Live reference of a column under an expected constraint name.

    Raises
        IntrospectionParseError: If more than one constraint matches
    """
    with cn.query(REFERENCE_SQL, table, column, constraint_name) as cursor:
        rows = [[v.to_python() for v in row] for row in cursor]
    if not rows:
        return None
    if len(rows) > 1:
        raise IntrospectionParseError(
            f'Expected a single result for foreign key query for table: {table}'
            f' and column: {column} but got: {rows}', table)
    ref_table, name, update_rule, delete_rule = (_text(v) for v in rows[0])
    cascade = FieldCascade(on_update=_parse_cascade(table, update_rule),
                           on_delete=_parse_cascade(table, delete_rule))
    return ForeignKeyRef(ref_table, name, cascade)


def parse_column(cn: Any, table: str, row: list[Any],
                 expected_refs: dict[str, str]) -> Column:
    """Build a live column from one `COLUMNS_SQL` row.
    """
    if len(row) != 8 or not isinstance(_text(row[0]), str):
        raise IntrospectionParseError(f'Invalid result from information_schema: {row!r}', table)
    name, is_nullable, type_name, default, generated, precision, scale, max_len = (
        _text(v) for v in row)
    for label, value in (('default', default), ('generated', generated)):
        if value is not None and not isinstance(value, str):
            raise IntrospectionParseError(f'Invalid {label} column: {value!r}', table)

    sql_type = parse_type(table, name, type_name, precision, scale, max_len)
    reference = None
    if name in expected_refs:
        reference = get_reference(cn, table, name, expected_refs[name])
    return Column(
        name=name,
        nullable=is_nullable == 'YES',
        sql_type=sql_type,
        default=strip_suffixes(default),
        generated=strip_suffixes(generated),
        reference=reference,
        )


def get_columns(cn: Any, entity: EntityDef, desired: list[Column]) -> list[IntrospectedRow]:
    """Live columns and unique constraints of the entity's table.

    `desired` only supplies the expected foreign key constraint names; it
    does not filter the result.
    """
    table = entity.name
    expected_refs = {c.name: c.reference.constraint_name for c in desired if c.reference}

    with cn.query(COLUMNS_SQL, table) as cursor:
        rows = [[v.to_python() for v in row] for row in cursor]

    results: list[IntrospectedRow] = []
    for row in rows:
        try:
            results.append(parse_column(cn, table, row, expected_refs))
        except IntrospectionParseError as e:
            logger.debug(f'Failed to parse column of {table}: {e}')
            results.append(e)

    with cn.query(CONSTRAINTS_SQL, table) as cursor:
        pairs = [(_text(row[0].to_python()), _text(row[1].to_python())) for row in cursor]
    grouped: dict[str, list[str]] = {}
    for constraint, column in pairs:
        grouped.setdefault(constraint, []).append(column)
    results.extend(UniqueConstraint(name, tuple(cols)) for name, cols in grouped.items())

    return results


def does_table_exist(cn: Any, table: str) -> bool:
    """Whether a user table of this name exists.
    """
    count = cn.select_scalar(TABLE_EXISTS_SQL, table)
    if count not in {0, 1}:
        raise IntrospectionParseError(f'Unexpected table count {count!r} for {table}', table)
    return count == 1
