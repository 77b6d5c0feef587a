"""
Generic tagged values exchanged with the server.

Every query parameter and every decoded column value is a `Value`: a
`ValueKind` tag plus a payload of the matching Python type.

    NULL         None
    BOOL         bool
    INT          int (64-bit)
    DOUBLE       float
    NUMERIC      decimal.Decimal
    TEXT         str
    BYTES        bytes
    DATE         datetime.date
    TIME         datetime.time
    TIMESTAMP    datetime.datetime, naive
    TIMESTAMPTZ  datetime.datetime, zone-aware
    INTERVAL     decimal.Decimal seconds, up to 12 fractional digits
    ARRAY        tuple[Value, ...]
    RAW          bytes, pre-escaped literal text sent to the server untouched

Type OIDs are looked up from psycopg's builtin registry.
"""
import datetime
import decimal
import fractions
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

import numpy as np
import pandas as pd
from psycopg.postgres import types

from pgadapter.exceptions import TypeConversionError

oid = lambda x: types.get(x).oid
aoid = lambda x: types.get(x).array_oid

BOOL_OID = oid('bool')
BYTEA_OID = oid('bytea')
CHAR_OID = oid('"char"')
NAME_OID = oid('name')
INT2_OID = oid('int2')
INT4_OID = oid('int4')
INT8_OID = oid('int8')
TEXT_OID = oid('text')
XML_OID = oid('xml')
FLOAT4_OID = oid('float4')
FLOAT8_OID = oid('float8')
MONEY_OID = oid('money')
BPCHAR_OID = oid('bpchar')
VARCHAR_OID = oid('varchar')
DATE_OID = oid('date')
TIME_OID = oid('time')
TIMESTAMP_OID = oid('timestamp')
TIMESTAMPTZ_OID = oid('timestamptz')
INTERVAL_OID = oid('interval')
BIT_OID = oid('bit')
VARBIT_OID = oid('varbit')
NUMERIC_OID = oid('numeric')
JSON_OID = oid('json')
JSONB_OID = oid('jsonb')
VOID_OID = 2278
UNKNOWN_OID = 705

# Pico-second precision, the finest interval resolution kept
PICO = decimal.Decimal('1e-12')


class ValueKind(Enum):
    """Tags of the generic value union."""
    NULL = auto()
    BOOL = auto()
    INT = auto()
    DOUBLE = auto()
    NUMERIC = auto()
    TEXT = auto()
    BYTES = auto()
    DATE = auto()
    TIME = auto()
    TIMESTAMP = auto()
    TIMESTAMPTZ = auto()
    INTERVAL = auto()
    ARRAY = auto()
    RAW = auto()


@dataclass(frozen=True, slots=True)
class Value:
    """A tagged value. Build instances through the classmethods."""
    kind: ValueKind
    payload: Any = None

    @classmethod
    def null(cls) -> 'Value':
        return cls(ValueKind.NULL)

    @classmethod
    def boolean(cls, v: bool) -> 'Value':
        return cls(ValueKind.BOOL, bool(v))

    @classmethod
    def integer(cls, v: int) -> 'Value':
        if not -2**63 <= v < 2**63:
            raise TypeConversionError(f'Integer out of 64-bit range: {v}')
        return cls(ValueKind.INT, int(v))

    @classmethod
    def double(cls, v: float) -> 'Value':
        return cls(ValueKind.DOUBLE, float(v))

    @classmethod
    def numeric(cls, v: decimal.Decimal | fractions.Fraction | int | str) -> 'Value':
        """Fixed-point value. Fractions are rounded to 12 fractional digits.
        """
        if isinstance(v, fractions.Fraction):
            v = (decimal.Decimal(v.numerator) / decimal.Decimal(v.denominator)).quantize(PICO)
        return cls(ValueKind.NUMERIC, decimal.Decimal(v))

    @classmethod
    def text(cls, v: str) -> 'Value':
        return cls(ValueKind.TEXT, str(v))

    @classmethod
    def bytea(cls, v: bytes) -> 'Value':
        return cls(ValueKind.BYTES, bytes(v))

    @classmethod
    def date(cls, v: datetime.date) -> 'Value':
        return cls(ValueKind.DATE, v)

    @classmethod
    def time(cls, v: datetime.time) -> 'Value':
        return cls(ValueKind.TIME, v)

    @classmethod
    def timestamp(cls, v: datetime.datetime) -> 'Value':
        """Naive or zone-aware timestamp, tagged by its tzinfo.
        """
        if v.tzinfo is None:
            return cls(ValueKind.TIMESTAMP, v)
        return cls(ValueKind.TIMESTAMPTZ, v)

    @classmethod
    def interval(cls, v: datetime.timedelta | decimal.Decimal | int | float | str) -> 'Value':
        """Duration in seconds, kept with up to 12 fractional digits.
        """
        if isinstance(v, datetime.timedelta):
            seconds = (decimal.Decimal(v.days) * 86400
                       + decimal.Decimal(v.seconds)
                       + decimal.Decimal(v.microseconds) / 1000000)
        else:
            seconds = decimal.Decimal(str(v)) if isinstance(v, float) else decimal.Decimal(v)
        return cls(ValueKind.INTERVAL, _normalize_seconds(seconds))

    @classmethod
    def array(cls, items) -> 'Value':
        return cls(ValueKind.ARRAY, tuple(
            item if isinstance(item, Value) else cls.from_python(item)
            for item in items))

    @classmethod
    def raw(cls, v: bytes | str) -> 'Value':
        """Pre-escaped literal passed to the server untouched.
        """
        return cls(ValueKind.RAW, v.encode() if isinstance(v, str) else bytes(v))

    @classmethod
    def from_python(cls, obj: Any) -> 'Value':
        """Infer a tagged value from a Python, NumPy or pandas value.

        NaN, NaT and pandas NA map to NULL. A `str` is always TEXT; RAW must
        be requested explicitly with `Value.raw()`.
        """
        if isinstance(obj, Value):
            return obj
        if obj is None or obj is pd.NA or obj is pd.NaT:
            return cls.null()
        if isinstance(obj, np.generic):
            return _from_numpy(obj)
        if isinstance(obj, pd.Timestamp):
            return cls.timestamp(obj.to_pydatetime())
        if isinstance(obj, pd.Timedelta):
            return cls.interval(obj.to_pytimedelta())
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, int):
            return cls.integer(obj)
        if isinstance(obj, float):
            if math.isnan(obj):
                return cls.null()
            return cls.double(obj)
        if isinstance(obj, decimal.Decimal | fractions.Fraction):
            return cls.numeric(obj)
        if isinstance(obj, str):
            return cls.text(obj)
        if isinstance(obj, bytes | bytearray | memoryview):
            return cls.bytea(bytes(obj))
        if isinstance(obj, datetime.datetime):
            return cls.timestamp(obj)
        if isinstance(obj, datetime.date):
            return cls.date(obj)
        if isinstance(obj, datetime.time):
            return cls.time(obj)
        if isinstance(obj, datetime.timedelta):
            return cls.interval(obj)
        if isinstance(obj, list | tuple | np.ndarray):
            return cls.array(obj)
        raise TypeConversionError(f'Cannot convert {type(obj).__name__} to a database value')

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def to_python(self) -> Any:
        """Unwrap the payload, recursively for arrays.
        """
        if self.kind is ValueKind.ARRAY:
            return [item.to_python() for item in self.payload]
        return self.payload

    def __repr__(self) -> str:
        return f'Value.{self.kind.name}({self.payload!r})'


def _normalize_seconds(seconds: decimal.Decimal) -> decimal.Decimal:
    """Round to pico-seconds and drop trailing zeros."""
    seconds = seconds.quantize(PICO)
    if seconds == seconds.to_integral_value():
        return seconds.quantize(decimal.Decimal(1))
    return seconds.normalize()


def _from_numpy(val: np.generic) -> Value:
    if isinstance(val, np.floating) and np.isnan(val):
        return Value.null()
    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return Value.null()
        return Value.timestamp(pd.Timestamp(val).to_pydatetime())
    if isinstance(val, np.timedelta64):
        if np.isnat(val):
            return Value.null()
        return Value.interval(pd.Timedelta(val).to_pytimedelta())
    return Value.from_python(val.item())
