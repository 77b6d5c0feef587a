"""
PostgreSQL-specific strategy implementation.

Native upserts (`INSERT ... ON CONFLICT`) need server 9.5 or later. Below
that the upsert, put-many and repsert-many generators return None.
"""
import logging
from typing import TYPE_CHECKING, Any

from pgadapter.exceptions import ValidationError
from pgadapter.sql import make_placeholders
from pgadapter.strategy.base import DatabaseStrategy, register_strategy
from pgadapter.version import UPSERT_VERSION

if TYPE_CHECKING:
    from pgadapter.migration.model import EntityDef, FieldDef

logger = logging.getLogger(__name__)

# Fixed so interval and timestamp text can be parsed by the decoders
SESSION_SETTINGS = (
    "SET datestyle TO 'ISO'",
    "SET intervalstyle TO 'postgres'",
    )


def insert_fields(entity: 'EntityDef') -> list['FieldDef']:
    """Fields an insert supplies values for.

    Generated columns and fields marked as removable are left out; the
    serial id of a single-key table is filled by the server.
    """
    return [f for f in entity.fields if f.generated is None and not f.safe_to_remove]


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL statements for one server version.
    """

    @property
    def supports_upsert(self) -> bool:
        return self.server_version >= UPSERT_VERSION

    def _columns(self, fields, sep: str = ',') -> str:
        return sep.join(self.quote_identifier(f.name) for f in fields)

    def insert_sql(self, entity: 'EntityDef') -> str:
        """Insert one row.

        Tables with a single key column return it; composite keys are
        already known to the caller, so nothing is returned.
        """
        table = self.quote_identifier(entity.name)
        fields = insert_fields(entity)
        if not fields:
            sql = f'INSERT INTO {table} DEFAULT VALUES'
        else:
            placeholders = ','.join(['%s'] * len(fields))
            sql = f'INSERT INTO {table}({self._columns(fields)}) VALUES({placeholders})'
        if entity.has_composite_key:
            return sql
        return f'{sql} RETURNING {self.quote_identifier(entity.id_field.name)}'

    def insert_many_sql(self, entity: 'EntityDef', count: int) -> str:
        """Insert `count` rows, returning their keys in row order.
        """
        fields = insert_fields(entity)
        if not fields:
            raise ValidationError(f'{entity.name}: bulk insert needs at least one field')
        row = ','.join(['%s'] * len(fields))
        keys = ', '.join(self.quote_identifier(k) for k in entity.key_columns)
        return (f'INSERT INTO {self.quote_identifier(entity.name)}({self._columns(fields)})'
                f' VALUES ({"),(".join([row] * count)}) RETURNING {keys}')

    def upsert_sql(self, entity: 'EntityDef', unique_columns: tuple[str, ...],
                   update: str) -> str | None:
        """Insert one row, or apply `update` to the row it conflicts with.

        `update` is the SET list (for example `"n"=%s`). Parameters are the
        field values, those of `update`, then one per unique column.
        """
        if not self.supports_upsert:
            logger.debug(f'Server {self.server_version} has no native upsert')
            return None
        if not unique_columns:
            raise ValidationError(f'{entity.name}: upsert needs unique columns')
        table = self.quote_identifier(entity.name)
        fields = insert_fields(entity)
        where = ' AND '.join(f'{table}.{self.quote_identifier(c)} =%s' for c in unique_columns)
        conflict = ','.join(self.quote_identifier(c) for c in unique_columns)
        return (f'INSERT INTO {table}({self._columns(fields)})'
                f' VALUES ({",".join(["%s"] * len(fields))})'
                f' ON CONFLICT ({conflict}) DO UPDATE SET {update}'
                f' WHERE {where} RETURNING *')

    def _put_many(self, entity: 'EntityDef', conflict: list[str], fields, count: int) -> str:
        fields = [f for f in fields if f.generated is None and not f.safe_to_remove]
        columns = self._columns(fields, ', ')
        row = f'({make_placeholders(len(fields))})'
        updates = ', '.join(f'{c}=EXCLUDED.{c}' for c in
                            (self.quote_identifier(f.name) for f in fields))
        return (f'INSERT INTO {self.quote_identifier(entity.name)}({columns})'
                f' VALUES {", ".join([row] * count)}'
                f' ON CONFLICT ({", ".join(conflict)}) DO UPDATE SET {updates}')

    def put_many_sql(self, entity: 'EntityDef', count: int) -> str | None:
        """Insert `count` rows, overwriting rows that conflict on a unique.

        Raises
            ValidationError: If the entity declares no unique constraint
        """
        if not self.supports_upsert:
            logger.debug(f'Server {self.server_version} has no native upsert')
            return None
        conflict = [self.quote_identifier(c) for u in entity.uniques for c in u.columns]
        if not conflict:
            raise ValidationError(f'{entity.name}: put many needs a unique constraint')
        return self._put_many(entity, conflict, entity.fields, count)

    def repsert_many_sql(self, entity: 'EntityDef', count: int) -> str | None:
        """Insert `count` rows with explicit keys, overwriting existing ones.
        """
        if not self.supports_upsert:
            logger.debug(f'Server {self.server_version} has no native upsert')
            return None
        conflict = [self.quote_identifier(c) for c in entity.key_columns]
        return self._put_many(entity, conflict, entity.key_and_fields, count)

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for PostgreSQL.

        Transactions are issued explicitly, so the driver runs in autocommit.
        """
        raw_conn = conn
        if hasattr(conn, 'driver_connection'):
            raw_conn = conn.driver_connection
        raw_conn.autocommit = True
        for sql in SESSION_SETTINGS:
            raw_conn.execute(sql)
        logger.debug('Configured session datestyle and intervalstyle')
