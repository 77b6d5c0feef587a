"""Tests for the interval text form.
"""
import datetime
import decimal

import pytest
from pgadapter.adapters.interval import format_interval, parse_interval
from pgadapter.exceptions import TypeConversionError
from pgadapter.types import Value

D = decimal.Decimal


@pytest.mark.parametrize(('text', 'seconds'), [
    ('00:00:00', D(0)),
    ('25:01:01.25', D('90061.25')),
    ('-01:00:00', D(-3600)),
    ('1 day 02:00:00', D(93600)),
    ('-2 days', D(-172800)),
    ('3 days 00:00:01.5', D('259201.5')),
    ('00:00:00.123456789012345', D('0.123456789012')),
    ('100:59:60', D(363600)),
])
def test_parse(text, seconds):
    assert parse_interval(text) == seconds


@pytest.mark.parametrize('text', [
    '1 mon',
    'P1D',
    '00:60:00',
    '00:00:61',
    '1:2:3',
    '',
])
def test_parse_rejects(text):
    with pytest.raises(TypeConversionError):
        parse_interval(text)


@pytest.mark.parametrize(('seconds', 'text'), [
    (D(0), '00:00:00'),
    (D('90061.25'), '25:01:01.25'),
    (D('-3600.5'), '-01:00:00.5'),
    (D('0.000000000001'), '00:00:00.000000000001'),
])
def test_format(seconds, text):
    assert format_interval(seconds) == text


@pytest.mark.parametrize('seconds', [
    D('90061.25'),
    D('-0.5'),
    D('86400'),
    D('1.000000000001'),
])
def test_format_parse_same_duration(seconds):
    assert parse_interval(format_interval(seconds)) == seconds


def test_value_from_timedelta():
    v = Value.interval(datetime.timedelta(days=1, seconds=3661, microseconds=250000))
    assert v.payload == D('90061.25')
