"""Insert and upsert operations for declared entities.

Statements come from the connection's strategy, so their availability
follows the detected server version. Native upserts need 9.5 or later;
on older servers these functions raise `ValidationError` instead of
emulating the operation.
"""
import logging
from collections.abc import Iterator, Sequence
from typing import Any

from pgadapter.exceptions import ValidationError
from pgadapter.migration.model import EntityDef, FieldDef, UniqueDef
from pgadapter.strategy.postgres import insert_fields

logger = logging.getLogger(__name__)

# Server limit on bind parameters per statement
MAX_PARAMS = 65535


def _batches(rows: Sequence[dict[str, Any]], width: int,
             batch_size: int) -> Iterator[Sequence[dict[str, Any]]]:
    size = max(1, min(batch_size, MAX_PARAMS // max(1, width)))
    for i in range(0, len(rows), size):
        yield rows[i:i + size]


def _values(record: dict[str, Any], fields: Sequence[FieldDef]) -> list[Any]:
    return [record.get(f.name) for f in fields]


def _put_fields(fields: Sequence[FieldDef]) -> list[FieldDef]:
    return [f for f in fields if f.generated is None and not f.safe_to_remove]


def _unique_columns(entity: EntityDef, unique: UniqueDef | str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(unique, UniqueDef):
        return tuple(unique.columns)
    if isinstance(unique, str):
        for u in entity.uniques:
            if u.name == unique:
                return tuple(u.columns)
        raise ValidationError(f'{entity.name}: no unique constraint named {unique!r}')
    return tuple(unique)


def _unsupported(cn: Any, operation: str) -> ValidationError:
    return ValidationError(f'{operation} needs server 9.5 or later, connected to {cn.server_version}')


def insert_entity(cn: Any, entity: EntityDef, record: dict[str, Any]) -> Any:
    """Insert one row and return its key.

    Returns
        The generated id, or the tuple of key values for a composite key
    """
    sql = cn.strategy.insert_sql(entity)
    values = _values(record, insert_fields(entity))
    if entity.has_composite_key:
        cn.execute(sql, *values)
        return tuple(record[k] for k in entity.key_columns)
    return cn.select_scalar(sql, *values)


def insert_many(cn: Any, entity: EntityDef, records: Sequence[dict[str, Any]],
                batch_size: int = 500) -> list[Any]:
    """Insert rows in batches, returning their keys in input order.
    """
    if not records:
        logger.debug('Skipping insert of empty rows')
        return []
    fields = insert_fields(entity)
    keys = []
    for batch in _batches(records, len(fields), batch_size):
        sql = cn.strategy.insert_many_sql(entity, len(batch))
        args = [v for record in batch for v in _values(record, fields)]
        with cn.query(sql, *args) as cursor:
            for row in cursor:
                values = [v.to_python() for v in row]
                keys.append(tuple(values) if entity.has_composite_key else values[0])
    logger.debug(f'Inserted {len(keys)} rows into {entity.name}')
    return keys


def upsert_entity(cn: Any, entity: EntityDef, record: dict[str, Any],
                  unique: UniqueDef | str | Sequence[str],
                  updates: dict[str, Any] | None = None) -> dict[str, Any]:
    """Insert a row, or update the row it conflicts with on `unique`.

    Without `updates` the conflicting row is overwritten with the record's
    values; with `updates` only those columns are set.

    Returns
        The stored row as a dict

    Raises
        ValidationError: On servers without native upsert
    """
    columns = _unique_columns(entity, unique)
    q = cn.strategy.quote_identifier
    if updates:
        update_sql = ', '.join(f'{q(name)}=%s' for name in updates)
        update_args = list(updates.values())
    else:
        update_sql = ', '.join(f'{q(f.name)}=EXCLUDED.{q(f.name)}' for f in insert_fields(entity))
        update_args = []
    sql = cn.strategy.upsert_sql(entity, columns, update_sql)
    if sql is None:
        raise _unsupported(cn, 'upsert')
    args = _values(record, insert_fields(entity)) + update_args + [record[c] for c in columns]
    return cn.select_row(sql, *args)


def put_many(cn: Any, entity: EntityDef, records: Sequence[dict[str, Any]],
             batch_size: int = 500) -> int:
    """Insert rows, overwriting existing rows that conflict on a unique.

    Returns
        Number of rows affected
    """
    if not records:
        logger.debug('Skipping put of empty rows')
        return 0
    if not cn.strategy.supports_upsert:
        raise _unsupported(cn, 'put many')
    fields = _put_fields(entity.fields)
    total = 0
    for batch in _batches(records, len(fields), batch_size):
        sql = cn.strategy.put_many_sql(entity, len(batch))
        total += cn.execute(sql, *[v for record in batch for v in _values(record, fields)])
    logger.debug(f'Put {total} rows into {entity.name}')
    return total


def repsert_many(cn: Any, entity: EntityDef, records: Sequence[dict[str, Any]],
                 batch_size: int = 500) -> int:
    """Insert rows with explicit keys, replacing rows with the same key.

    Returns
        Number of rows affected
    """
    if not records:
        logger.debug('Skipping repsert of empty rows')
        return 0
    if not cn.strategy.supports_upsert:
        raise _unsupported(cn, 'repsert many')
    fields = _put_fields(entity.key_and_fields)
    total = 0
    for batch in _batches(records, len(fields), batch_size):
        sql = cn.strategy.repsert_many_sql(entity, len(batch))
        total += cn.execute(sql, *[v for record in batch for v in _values(record, fields)])
    logger.debug(f'Repserted {total} rows into {entity.name}')
    return total
