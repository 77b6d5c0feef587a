"""Tests for array literal parsing and formatting.
"""
import pytest
from pgadapter.adapters.arrays import format_array, parse_array
from pgadapter.exceptions import TypeConversionError


class TestParseArray:

    @pytest.mark.parametrize(('text', 'expected'), [
        ('{}', []),
        ('{1,2,3}', ['1', '2', '3']),
        ('{a,NULL,b}', ['a', None, 'b']),
        ('{"NULL",null}', ['NULL', None]),
        ('{"a,b","c\\"d","e\\\\f"}', ['a,b', 'c"d', 'e\\f']),
        ('{{1,2},{3,4}}', [['1', '2'], ['3', '4']]),
        ('[0:1]={5,6}', ['5', '6']),
        ('{ x , y }', ['x', 'y']),
    ], ids=['empty', 'ints', 'nulls', 'quoted_null', 'escapes', 'nested', 'bounds', 'spaces'])
    def test_parse(self, text, expected):
        assert parse_array(text, str) == expected

    def test_null_checked_before_element(self):
        """The element decoder never sees a NULL element."""
        seen = []
        result = parse_array('{1,NULL}', lambda s: seen.append(s) or int(s), null='missing')
        assert result == [1, 'missing']
        assert seen == ['1']

    def test_custom_delimiter(self):
        assert parse_array('{(0,0),(1,1);(2,2),(3,3)}', str, delimiter=';') == ['(0,0),(1,1)', '(2,2),(3,3)']

    @pytest.mark.parametrize('text', ['', '1,2', '{1,2', '{"a}', '{1,,2}', '{1} x', '[0:1]{1}'])
    def test_malformed(self, text):
        with pytest.raises(TypeConversionError):
            parse_array(text, str)


def test_format_array():
    assert format_array(['a', None, 'b"c', ['d']], lambda x: x) == '{"a",NULL,"b\\"c",{"d"}}'


def test_format_parse_agree():
    items = ['plain', 'with space', 'quote"', 'back\\slash', None, 'NULL']
    assert parse_array(format_array(items, lambda x: x), str) == items
