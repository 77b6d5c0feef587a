"""Tests for tagged values and outbound parameter encoding.
"""
import datetime
import decimal
import fractions

import numpy as np
import pandas as pd
import pytest
from pgadapter.adapters import encode_params, encode_value
from pgadapter.exceptions import TypeConversionError
from pgadapter.types import BOOL_OID, BYTEA_OID, DATE_OID, FLOAT8_OID
from pgadapter.types import INT8_OID, INTERVAL_OID, NUMERIC_OID, TEXT_OID
from pgadapter.types import TIMESTAMP_OID, TIMESTAMPTZ_OID, Value, ValueKind
from pgadapter.types import aoid


class TestFromPython:
    """Kind inference from native, NumPy and pandas values."""

    @pytest.mark.parametrize(('obj', 'kind'), [
        (None, ValueKind.NULL),
        (True, ValueKind.BOOL),
        (42, ValueKind.INT),
        (1.5, ValueKind.DOUBLE),
        (decimal.Decimal('1.10'), ValueKind.NUMERIC),
        ('abc', ValueKind.TEXT),
        (b'\x00\x01', ValueKind.BYTES),
        (datetime.date(2024, 1, 2), ValueKind.DATE),
        (datetime.time(12, 30), ValueKind.TIME),
        (datetime.datetime(2024, 1, 2, 3, 4), ValueKind.TIMESTAMP),
        (datetime.datetime(2024, 1, 2, tzinfo=datetime.timezone.utc), ValueKind.TIMESTAMPTZ),
        (datetime.timedelta(hours=1), ValueKind.INTERVAL),
        ([1, 2], ValueKind.ARRAY),
        (np.int32(7), ValueKind.INT),
        (np.float64(2.5), ValueKind.DOUBLE),
        (np.bool_(False), ValueKind.BOOL),
        (pd.Timestamp('2024-01-02 03:04'), ValueKind.TIMESTAMP),
    ])
    def test_kinds(self, obj, kind):
        assert Value.from_python(obj).kind is kind

    @pytest.mark.parametrize('obj', [float('nan'), np.nan, pd.NA, pd.NaT, np.datetime64('NaT')])
    def test_missing_values_are_null(self, obj):
        assert Value.from_python(obj).is_null

    def test_bool_is_not_int(self):
        assert Value.from_python(True) == Value.boolean(True)

    def test_str_is_never_raw(self):
        """Text is always typed; RAW only comes from Value.raw()."""
        assert Value.from_python("'{1,2}'").kind is ValueKind.TEXT
        assert Value.raw("'{1,2}'").kind is ValueKind.RAW

    def test_value_passes_through(self):
        v = Value.raw(b'x')
        assert Value.from_python(v) is v

    def test_unsupported_type(self):
        with pytest.raises(TypeConversionError):
            Value.from_python(object())

    def test_integer_range(self):
        with pytest.raises(TypeConversionError):
            Value.integer(2**63)

    def test_fraction_has_twelve_digits(self):
        v = Value.numeric(fractions.Fraction(1, 3))
        assert v.payload == decimal.Decimal('0.333333333333')

    def test_to_python_unwraps_arrays(self):
        v = Value.from_python([1, None, [2, 3]])
        assert v.to_python() == [1, None, [2, 3]]


class TestEncodeValue:
    """Text encoding and type OIDs of outbound parameters."""

    @pytest.mark.parametrize(('value', 'data', 'oid'), [
        (Value.boolean(True), b't', BOOL_OID),
        (Value.boolean(False), b'f', BOOL_OID),
        (Value.integer(-5), b'-5', INT8_OID),
        (Value.double(0.5), b'0.5', FLOAT8_OID),
        (Value.double(float('inf')), b'Infinity', FLOAT8_OID),
        (Value.double(float('-inf')), b'-Infinity', FLOAT8_OID),
        (Value.numeric(decimal.Decimal('1E+3')), b'1000', NUMERIC_OID),
        (Value.text('héllo'), 'héllo'.encode(), TEXT_OID),
        (Value.bytea(b'\xde\xad'), b'\\xdead', BYTEA_OID),
        (Value.date(datetime.date(2024, 2, 29)), b'2024-02-29', DATE_OID),
        (Value.timestamp(datetime.datetime(2024, 1, 2, 3, 4, 5)), b'2024-01-02 03:04:05', TIMESTAMP_OID),
        (Value.timestamp(datetime.datetime(2024, 1, 2, tzinfo=datetime.timezone.utc)),
         b'2024-01-02 00:00:00+00:00', TIMESTAMPTZ_OID),
        (Value.interval(decimal.Decimal('90061.25')), b'25:01:01.25', INTERVAL_OID),
    ])
    def test_scalars(self, value, data, oid):
        encoded = encode_value(value)
        assert encoded.data == data
        assert encoded.oid == oid

    def test_nan(self):
        assert encode_value(Value.double(float('nan'))).data == b'NaN'

    def test_null_is_untyped(self):
        encoded = encode_value(Value.null())
        assert encoded.data is None
        assert encoded.oid == 0

    def test_raw_is_untouched_and_untyped(self):
        encoded = encode_value(Value.raw(b"'{a}'"))
        assert encoded.data == b"'{a}'"
        assert encoded.oid == 0

    def test_homogeneous_array(self):
        encoded = encode_value(Value.from_python([1, None, 3]))
        assert encoded.data == b'{"1",NULL,"3"}'
        assert encoded.oid == aoid('int8')

    def test_nested_array(self):
        encoded = encode_value(Value.from_python([['a', 'b"c'], ['d', None]]))
        assert encoded.data == b'{{"a","b\\"c"},{"d",NULL}}'
        assert encoded.oid == aoid('text')

    def test_mixed_array_is_untyped(self):
        assert encode_value(Value.from_python([1, 'a'])).oid == 0


def test_encode_params():
    encoded = encode_params([1, None, 'x'])
    assert [p.data for p in encoded] == [b'1', None, b'x']
    assert [p.oid for p in encoded] == [INT8_OID, 0, TEXT_OID]
