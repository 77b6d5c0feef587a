"""
Schema model used by migrations.

Two sides meet here. The desired side is described by `EntityDef`s (what the
application declares); both the desired and the live side are normalized into
`Column` and `UniqueConstraint` values that the differ compares. Differences
are expressed as alteration operations, a closed set of frozen dataclasses
combined into the `ColumnOp`, `TableOp` and `AlterDB` unions.
"""
from dataclasses import dataclass, field
from enum import Enum, auto


class TypeKind(Enum):
    """Logical column types."""
    STRING = auto()
    INT32 = auto()
    INT64 = auto()
    REAL = auto()
    NUMERIC = auto()
    BOOL = auto()
    DAY = auto()
    TIME = auto()
    DAYTIME = auto()
    BLOB = auto()
    INTERVAL = auto()
    OTHER = auto()


_TYPE_NAMES = {
    TypeKind.STRING: 'VARCHAR',
    TypeKind.INT32: 'INT4',
    TypeKind.INT64: 'INT8',
    TypeKind.REAL: 'DOUBLE PRECISION',
    TypeKind.BOOL: 'BOOLEAN',
    TypeKind.DAY: 'DATE',
    TypeKind.TIME: 'TIME',
    TypeKind.DAYTIME: 'TIMESTAMP WITH TIME ZONE',
    TypeKind.BLOB: 'BYTEA',
    TypeKind.INTERVAL: 'INTERVAL',
    }


@dataclass(frozen=True)
class SqlType:
    """A logical column type. Build instances through the classmethods.
    """
    kind: TypeKind
    max_len: int | None = None
    precision: int | None = None
    scale: int | None = None
    name: str | None = None

    @classmethod
    def string(cls, max_len: int | None = None) -> 'SqlType':
        return cls(TypeKind.STRING, max_len=max_len)

    @classmethod
    def int32(cls) -> 'SqlType':
        return cls(TypeKind.INT32)

    @classmethod
    def int64(cls) -> 'SqlType':
        return cls(TypeKind.INT64)

    @classmethod
    def real(cls) -> 'SqlType':
        return cls(TypeKind.REAL)

    @classmethod
    def numeric(cls, precision: int, scale: int) -> 'SqlType':
        return cls(TypeKind.NUMERIC, precision=precision, scale=scale)

    @classmethod
    def boolean(cls) -> 'SqlType':
        return cls(TypeKind.BOOL)

    @classmethod
    def day(cls) -> 'SqlType':
        return cls(TypeKind.DAY)

    @classmethod
    def time(cls) -> 'SqlType':
        return cls(TypeKind.TIME)

    @classmethod
    def daytime(cls) -> 'SqlType':
        return cls(TypeKind.DAYTIME)

    @classmethod
    def blob(cls) -> 'SqlType':
        return cls(TypeKind.BLOB)

    @classmethod
    def interval(cls) -> 'SqlType':
        return cls(TypeKind.INTERVAL)

    @classmethod
    def other(cls, name: str) -> 'SqlType':
        """Opaque type rendered verbatim, e.g. `jsonb` or `uuid`."""
        return cls(TypeKind.OTHER, name=name)

    def render(self) -> str:
        """Canonical type text used in DDL."""
        match self.kind:
            case TypeKind.STRING if self.max_len is not None:
                return f'VARCHAR({self.max_len})'
            case TypeKind.NUMERIC:
                return f'NUMERIC({self.precision},{self.scale})'
            case TypeKind.OTHER:
                # integer is an alias the server reports back as int4
                return 'INT4' if self.name.lower() == 'integer' else self.name
        return _TYPE_NAMES[self.kind]

    def matches(self, other: 'SqlType') -> bool:
        """Equality of the canonical rendering, ignoring case."""
        return self.render().casefold() == other.render().casefold()

    def __str__(self) -> str:
        return self.render()


class CascadeAction(Enum):
    """Referential action; `None` stands for NO ACTION."""
    CASCADE = 'CASCADE'
    SET_NULL = 'SET NULL'
    SET_DEFAULT = 'SET DEFAULT'
    RESTRICT = 'RESTRICT'


@dataclass(frozen=True)
class FieldCascade:
    on_update: CascadeAction | None = None
    on_delete: CascadeAction | None = None


@dataclass(frozen=True)
class ForeignKeyRef:
    """Single-column reference from a column to another table's key."""
    table: str
    constraint_name: str
    cascade: FieldCascade = FieldCascade()


@dataclass(frozen=True)
class Column:
    """One table column, desired or live."""
    name: str
    nullable: bool
    sql_type: SqlType
    default: str | None = None
    generated: str | None = None
    reference: ForeignKeyRef | None = None


@dataclass(frozen=True)
class UniqueConstraint:
    name: str
    columns: tuple[str, ...]


# Entity descriptions (desired side)

@dataclass(frozen=True)
class FieldDef:
    """A declared field.

    `references` names the target table of a single-column foreign key;
    `safe_to_remove` marks a field the application has dropped and whose
    column may be removed without confirmation.
    """
    name: str
    sql_type: SqlType
    nullable: bool = False
    default: str | None = None
    generated: str | None = None
    references: str | None = None
    on_update: CascadeAction | None = None
    on_delete: CascadeAction | None = None
    constraint_name: str | None = None
    safe_to_remove: bool = False
    max_len: int | None = None


@dataclass(frozen=True)
class UniqueDef:
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class ForeignDef:
    """Multi-column foreign key declared at entity level."""
    ref_table: str
    columns: tuple[str, ...]
    ref_columns: tuple[str, ...] | None = None
    constraint_name: str | None = None
    cascade: FieldCascade = FieldCascade()


@dataclass(frozen=True)
class EntityDef:
    """A declared table.

    Tables get an `id` INT8 key unless `primary` names a composite key, in
    which case the key columns come from `fields`.
    """
    name: str
    fields: tuple[FieldDef, ...] = ()
    id_field: FieldDef = FieldDef('id', SqlType.int64())
    primary: tuple[str, ...] | None = None
    uniques: tuple[UniqueDef, ...] = ()
    foreigns: tuple[ForeignDef, ...] = ()

    @property
    def has_composite_key(self) -> bool:
        return self.primary is not None

    @property
    def key_columns(self) -> tuple[str, ...]:
        """Columns a reference to this table points at."""
        if self.primary is not None:
            return tuple(self.primary)
        return (self.id_field.name,)

    @property
    def key_and_fields(self) -> tuple[FieldDef, ...]:
        if self.primary is not None:
            return tuple(self.fields)
        return (self.id_field, *self.fields)


# Alteration operations, column level

@dataclass(frozen=True)
class AddColumn:
    column: Column


@dataclass(frozen=True)
class DropColumn:
    safe: bool


@dataclass(frozen=True)
class SetType:
    sql_type: SqlType
    using: str | None = None


@dataclass(frozen=True)
class SetNullable:
    nullable: bool


@dataclass(frozen=True)
class SetDefault:
    expr: str


@dataclass(frozen=True)
class ClearDefault:
    pass


@dataclass(frozen=True)
class Backfill:
    """Fill NULLs with `expr` ahead of a NOT NULL change."""
    expr: str


@dataclass(frozen=True)
class AddForeignKey:
    name: str
    columns: tuple[str, ...]
    ref_table: str
    ref_columns: tuple[str, ...]
    cascade: FieldCascade = FieldCascade()


@dataclass(frozen=True)
class DropForeignKey:
    name: str


# Alteration operations, table level

@dataclass(frozen=True)
class AddUniqueConstraint:
    name: str
    columns: tuple[str, ...]


@dataclass(frozen=True)
class DropConstraint:
    name: str


ColumnOp = (AddColumn | DropColumn | SetType | SetNullable | SetDefault
            | ClearDefault | Backfill | AddForeignKey | DropForeignKey)
TableOp = AddUniqueConstraint | DropConstraint


# Wrappers consumed by the renderer

@dataclass(frozen=True)
class AddTable:
    """Create a table. `id_column` is None for composite keys."""
    table: str
    columns: tuple[Column, ...]
    id_column: Column | None = None
    primary: tuple[str, ...] | None = None


@dataclass(frozen=True)
class AlterColumn:
    table: str
    column: str
    op: ColumnOp


@dataclass(frozen=True)
class AlterTable:
    table: str
    op: TableOp


AlterDB = AddTable | AlterColumn | AlterTable


@dataclass(frozen=True)
class Statement:
    """Rendered DDL. `unsafe` statements can destroy data."""
    sql: str
    unsafe: bool = False


@dataclass
class TableMigration:
    """Planned statements, or introspection errors, for one table."""
    table: str
    statements: list[Statement] = field(default_factory=list)
    errors: list = field(default_factory=list)
