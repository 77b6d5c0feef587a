"""
Outbound parameter conversion (Python -> server).

Every parameter is sent in text format together with a type OID. The OID tells
the server how to parse the text; OID 0 leaves the type to be inferred from
the statement context, which is how NULL and RAW literals are sent.

Usage:
    params = convert_params([1, 'abc', None])
    encoded = encode_params(params)
    pgconn.exec_prepared(name, [p.data for p in encoded])
"""
import datetime
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pgadapter.adapters.arrays import format_array
from pgadapter.adapters.interval import format_interval
from pgadapter.exceptions import TypeConversionError
from pgadapter.types import BOOL_OID, BYTEA_OID, DATE_OID, FLOAT8_OID
from pgadapter.types import INT8_OID, INTERVAL_OID, NUMERIC_OID, TEXT_OID
from pgadapter.types import TIME_OID, TIMESTAMP_OID, TIMESTAMPTZ_OID, Value
from pgadapter.types import ValueKind, aoid

logger = logging.getLogger(__name__)

SCALAR_OIDS: dict[ValueKind, int] = {
    ValueKind.BOOL: BOOL_OID,
    ValueKind.INT: INT8_OID,
    ValueKind.DOUBLE: FLOAT8_OID,
    ValueKind.NUMERIC: NUMERIC_OID,
    ValueKind.TEXT: TEXT_OID,
    ValueKind.BYTES: BYTEA_OID,
    ValueKind.DATE: DATE_OID,
    ValueKind.TIME: TIME_OID,
    ValueKind.TIMESTAMP: TIMESTAMP_OID,
    ValueKind.TIMESTAMPTZ: TIMESTAMPTZ_OID,
    ValueKind.INTERVAL: INTERVAL_OID,
    }

ARRAY_OIDS: dict[ValueKind, int] = {
    ValueKind.BOOL: aoid('bool'),
    ValueKind.INT: aoid('int8'),
    ValueKind.DOUBLE: aoid('float8'),
    ValueKind.NUMERIC: aoid('numeric'),
    ValueKind.TEXT: aoid('text'),
    ValueKind.BYTES: aoid('bytea'),
    ValueKind.DATE: aoid('date'),
    ValueKind.TIME: aoid('time'),
    ValueKind.TIMESTAMP: aoid('timestamp'),
    ValueKind.TIMESTAMPTZ: aoid('timestamptz'),
    ValueKind.INTERVAL: aoid('interval'),
    }


@dataclass(frozen=True, slots=True)
class EncodedParam:
    """Text-format parameter. `data` is None for NULL."""
    data: bytes | None
    oid: int


def _double_text(v: float) -> str:
    if math.isnan(v):
        return 'NaN'
    if math.isinf(v):
        return 'Infinity' if v > 0 else '-Infinity'
    return repr(v)


def _scalar_text(value: Value) -> str:
    """Text form of a non-null, non-array value."""
    v = value.payload
    match value.kind:
        case ValueKind.BOOL:
            return 't' if v else 'f'
        case ValueKind.INT:
            return str(v)
        case ValueKind.DOUBLE:
            return _double_text(v)
        case ValueKind.NUMERIC:
            return format(v, 'f')
        case ValueKind.TEXT:
            return v
        case ValueKind.BYTES:
            return '\\x' + v.hex()
        case ValueKind.DATE | ValueKind.TIME:
            return v.isoformat()
        case ValueKind.TIMESTAMP | ValueKind.TIMESTAMPTZ:
            return v.isoformat(sep=' ')
        case ValueKind.INTERVAL:
            return format_interval(v)
        case ValueKind.RAW:
            return v.decode()
    raise TypeConversionError(f'Cannot encode {value!r}')


def _leaf_kinds(value: Value) -> set[ValueKind]:
    kinds = set()
    for item in value.payload:
        if item.kind is ValueKind.ARRAY:
            kinds |= _leaf_kinds(item)
        elif not item.is_null:
            kinds.add(item.kind)
    return kinds


def _nested(value: Value) -> list:
    return [_nested(item) if item.kind is ValueKind.ARRAY else item
            for item in value.payload]


def encode_value(value: Value) -> EncodedParam:
    """Encode one value as a text-format parameter.

    Arrays carry the element array OID when every non-null element shares
    one kind, otherwise OID 0.
    """
    match value.kind:
        case ValueKind.NULL:
            return EncodedParam(None, 0)
        case ValueKind.RAW:
            return EncodedParam(value.payload, 0)
        case ValueKind.ARRAY:
            text = format_array(_nested(value), lambda item: None if item.is_null else _scalar_text(item))
            kinds = _leaf_kinds(value)
            oid = ARRAY_OIDS.get(kinds.pop(), 0) if len(kinds) == 1 else 0
            return EncodedParam(text.encode(), oid)
    return EncodedParam(_scalar_text(value).encode(), SCALAR_OIDS[value.kind])


def convert_params(args: Iterable[Any]) -> list[Value]:
    """Infer tagged values for plain Python, NumPy and pandas arguments.
    """
    return [Value.from_python(arg) for arg in args]


def encode_params(args: Iterable[Any]) -> list[EncodedParam]:
    """Convert and encode a parameter list.
    """
    encoded = [encode_value(v) for v in convert_params(args)]
    logger.debug(f'Encoded {len(encoded)} parameters')
    return encoded


def to_utc(value: datetime.datetime) -> datetime.datetime:
    """Normalize a zone-aware timestamp to UTC.
    """
    if value.tzinfo is None:
        raise TypeConversionError(f'Naive timestamp has no zone: {value}')
    return value.astimezone(datetime.timezone.utc)
