"""
Inbound value decoding (server -> Python).

Results are requested in text format. Each column carries a type OID; the
registry maps the OID to a decoder that turns the column text into a `Value`.
NULL is checked before any decoder runs. Columns whose OID has no decoder come
back as RAW bytes so callers can still see them.
"""
import datetime
import decimal
import logging
import re
from collections.abc import Callable

import dateutil.parser

from pgadapter.adapters.arrays import parse_array
from pgadapter.adapters.interval import parse_interval
from pgadapter.adapters.type_conversion import to_utc
from pgadapter.exceptions import TypeConversionError
from pgadapter.types import BIT_OID, BOOL_OID, BPCHAR_OID, BYTEA_OID, CHAR_OID
from pgadapter.types import DATE_OID, FLOAT4_OID, FLOAT8_OID, INT2_OID
from pgadapter.types import INT4_OID, INT8_OID, INTERVAL_OID, JSON_OID
from pgadapter.types import JSONB_OID, MONEY_OID, NAME_OID, NUMERIC_OID
from pgadapter.types import TEXT_OID, TIME_OID, TIMESTAMP_OID
from pgadapter.types import TIMESTAMPTZ_OID, UNKNOWN_OID, VARBIT_OID
from pgadapter.types import VARCHAR_OID, VOID_OID, XML_OID, Value, aoid

logger = logging.getLogger(__name__)

Decoder = Callable[[str], Value]

_MONEY_NOISE = re.compile(r'[^0-9.\-]')
_UNREPRESENTABLE = re.compile(r'-?infinity$|\d{5,}-|.* BC$')
_SECONDS_OFFSET = re.compile(r'([+-])(\d{2}):(\d{2}):(\d{2})$')


def decode_bool(text: str) -> Value:
    return Value.boolean(text == 't')


def decode_bytea(text: str) -> Value:
    if not text.startswith('\\x'):
        raise TypeConversionError(f'Unsupported bytea output format: {text[:16]!r}')
    return Value.bytea(bytes.fromhex(text[2:]))


def decode_text(text: str) -> Value:
    return Value.text(text)


def decode_int(text: str) -> Value:
    return Value.integer(int(text))


def decode_bits(text: str) -> Value:
    return Value.integer(int(text, 2))


def decode_double(text: str) -> Value:
    return Value.double(float(text))


def decode_numeric(text: str) -> Value:
    return Value.numeric(decimal.Decimal(text))


def decode_money(text: str) -> Value:
    """Money text is locale formatted, e.g. `$1,234.50` or `-$0.99`."""
    return Value.numeric(decimal.Decimal(_MONEY_NOISE.sub('', text)))


def _outside_python_range(text: str) -> bool:
    """Infinities, BC dates and years past 9999 have no Python equivalent."""
    return _UNREPRESENTABLE.match(text) is not None


def decode_date(text: str) -> Value:
    if _outside_python_range(text):
        logger.debug(f'Date kept as raw literal: {text!r}')
        return Value.raw(text)
    return Value.date(datetime.date.fromisoformat(text))


def decode_time(text: str) -> Value:
    # 24:00:00 is a valid time of day on the server
    if text.startswith('24:'):
        logger.debug(f'Time kept as raw literal: {text!r}')
        return Value.raw(text)
    return Value.time(datetime.time.fromisoformat(text))


def decode_timestamp(text: str) -> Value:
    if _outside_python_range(text):
        logger.debug(f'Timestamp kept as raw literal: {text!r}')
        return Value.raw(text)
    return Value.timestamp(dateutil.parser.isoparse(text))


def decode_timestamptz(text: str) -> Value:
    """Zone-aware timestamp converted to UTC.

    Historic local mean time offsets carry seconds (`-04:56:02`), which
    the ISO parser rejects, so those are split off and applied directly.
    """
    if _outside_python_range(text):
        logger.debug(f'Timestamp kept as raw literal: {text!r}')
        return Value.raw(text)
    match = _SECONDS_OFFSET.search(text)
    if match is None:
        return Value.timestamp(to_utc(dateutil.parser.isoparse(text)))
    sign = -1 if match.group(1) == '-' else 1
    offset = datetime.timedelta(hours=int(match.group(2)), minutes=int(match.group(3)),
                                seconds=int(match.group(4)))
    local = dateutil.parser.isoparse(text[:match.start()])
    zone = datetime.timezone(sign * offset)
    return Value.timestamp(to_utc(local.replace(tzinfo=zone)))


def decode_interval(text: str) -> Value:
    """Hour-based interval text; anything else (months, ISO 8601) is RAW."""
    try:
        return Value.interval(parse_interval(text))
    except TypeConversionError:
        logger.debug(f'Interval kept as raw literal: {text!r}')
        return Value.raw(text)


def decode_void(text: str) -> Value:
    return Value.null()


def decode_bytes(text: str) -> Value:
    return Value.bytea(text.encode())


def decode_raw(text: str) -> Value:
    return Value.raw(text)


def array_of(element: Decoder) -> Decoder:
    """Build an array decoder applying `element` to every non-null element.
    """
    def decode(text: str) -> Value:
        items = parse_array(text, element, null=Value.null())
        return _to_array(items)
    return decode


def _to_array(items: list) -> Value:
    return Value.array(_to_array(item) if isinstance(item, list) else item
                       for item in items)


SCALAR_DECODERS: dict[int, Decoder] = {
    BOOL_OID: decode_bool,
    BYTEA_OID: decode_bytea,
    CHAR_OID: decode_text,
    NAME_OID: decode_text,
    INT8_OID: decode_int,
    INT2_OID: decode_int,
    INT4_OID: decode_int,
    TEXT_OID: decode_text,
    XML_OID: decode_text,
    FLOAT4_OID: decode_double,
    FLOAT8_OID: decode_double,
    MONEY_OID: decode_money,
    BPCHAR_OID: decode_text,
    VARCHAR_OID: decode_text,
    DATE_OID: decode_date,
    TIME_OID: decode_time,
    TIMESTAMP_OID: decode_timestamp,
    TIMESTAMPTZ_OID: decode_timestamptz,
    INTERVAL_OID: decode_interval,
    BIT_OID: decode_bits,
    VARBIT_OID: decode_bits,
    NUMERIC_OID: decode_numeric,
    VOID_OID: decode_void,
    JSON_OID: decode_bytes,
    JSONB_OID: decode_bytes,
    UNKNOWN_OID: decode_bytes,
    }

# Same order as the scalars; void and unknown have no array type
ARRAY_DECODERS: dict[int, Decoder] = {
    aoid('bool'): array_of(decode_bool),
    aoid('bytea'): array_of(decode_bytea),
    aoid('"char"'): array_of(decode_text),
    aoid('name'): array_of(decode_text),
    aoid('int8'): array_of(decode_int),
    aoid('int2'): array_of(decode_int),
    aoid('int4'): array_of(decode_int),
    aoid('text'): array_of(decode_text),
    aoid('xml'): array_of(decode_text),
    aoid('float4'): array_of(decode_double),
    aoid('float8'): array_of(decode_double),
    1023: array_of(decode_timestamptz),  # abstime[], removed in PostgreSQL 12
    1024: array_of(decode_timestamptz),  # reltime[], removed in PostgreSQL 12
    aoid('money'): array_of(decode_money),
    aoid('bpchar'): array_of(decode_text),
    aoid('varchar'): array_of(decode_text),
    aoid('date'): array_of(decode_date),
    aoid('time'): array_of(decode_time),
    aoid('timestamp'): array_of(decode_timestamp),
    aoid('timestamptz'): array_of(decode_timestamptz),
    aoid('interval'): array_of(decode_interval),
    aoid('bit'): array_of(decode_bits),
    aoid('varbit'): array_of(decode_bits),
    aoid('numeric'): array_of(decode_numeric),
    aoid('uuid'): array_of(decode_raw),
    aoid('json'): array_of(decode_bytes),
    aoid('jsonb'): array_of(decode_bytes),
    }


class DecoderRegistry:
    """OID to decoder mapping used when reading result columns.

    The shared default registry is returned by `get_instance()`; extra
    decoders registered there apply to every connection.
    """

    _instance = None

    @classmethod
    def get_instance(cls) -> 'DecoderRegistry':
        """Get singleton instance.
        """
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self) -> None:
        self._decoders: dict[int, Decoder] = {**SCALAR_DECODERS, **ARRAY_DECODERS}

    def register(self, oid: int, decoder: Decoder) -> None:
        """Register (or replace) the decoder for an OID.
        """
        self._decoders[oid] = decoder
        logger.debug(f'Registered decoder for oid {oid}')

    def get(self, oid: int) -> Decoder | None:
        return self._decoders.get(oid)

    def __contains__(self, oid: int) -> bool:
        return oid in self._decoders

    def decode(self, oid: int, data: bytes | None) -> Value:
        """Decode one text-format column value.

        Raises
            TypeConversionError: If the text is malformed for its type
        """
        if data is None:
            return Value.null()
        decoder = self._decoders.get(oid)
        if decoder is None:
            return Value.raw(data)
        try:
            return decoder(data.decode())
        except TypeConversionError:
            raise
        except (ValueError, decimal.InvalidOperation, OverflowError) as e:
            raise TypeConversionError(f'Cannot decode oid {oid} value {data[:64]!r}: {e}') from e
