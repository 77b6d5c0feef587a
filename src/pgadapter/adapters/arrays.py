"""
Array literal text form: `{elem,elem,...}`.

Elements may be bare words, double-quoted strings with backslash escapes, the
bare word `NULL`, or nested `{...}` groups for multi-dimensional arrays. A
quoted `"NULL"` is the four-letter string, not a null element.
"""
from collections.abc import Callable, Sequence
from typing import Any

from pgadapter.exceptions import TypeConversionError


class _ArrayParser:
    """Recursive descent over one array literal."""

    def __init__(self, text: str, element: Callable[[str], Any], null: Any,
                 delimiter: str = ',') -> None:
        self.text = text
        self.pos = 0
        self.element = element
        self.null = null
        self.delimiter = delimiter

    def fail(self, reason: str) -> TypeConversionError:
        return TypeConversionError(f'Invalid array literal at {self.pos} ({reason}): {self.text!r}')

    def parse(self) -> list:
        if self.text.startswith('['):
            # explicit bounds decoration, e.g. [0:1]={1,2}
            eq = self.text.find('=')
            if eq < 0:
                raise self.fail('missing = after dimensions')
            self.pos = eq + 1
        result = self.group()
        if self.pos != len(self.text):
            raise self.fail('trailing characters')
        return result

    def group(self) -> list:
        if self.peek() != '{':
            raise self.fail('expected {')
        self.pos += 1
        items = []
        if self.peek() == '}':
            self.pos += 1
            return items
        while True:
            ch = self.peek()
            if ch == '{':
                items.append(self.group())
            elif ch == '"':
                items.append(self.element(self.quoted()))
            else:
                word = self.bare()
                items.append(self.null if word.upper() == 'NULL' else self.element(word))
            ch = self.peek()
            self.pos += 1
            if ch == '}':
                return items
            if ch != self.delimiter:
                raise self.fail(f'expected {self.delimiter!r} or }}')

    def quoted(self) -> str:
        self.pos += 1
        chars = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == '\\':
                self.pos += 1
                if self.pos >= len(self.text):
                    break
                chars.append(self.text[self.pos])
            elif ch == '"':
                self.pos += 1
                return ''.join(chars)
            else:
                chars.append(ch)
            self.pos += 1
        raise self.fail('unterminated quoted element')

    def bare(self) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in (self.delimiter, '}'):
            self.pos += 1
        word = self.text[start:self.pos].strip()
        if not word:
            raise self.fail('empty element')
        return word

    def peek(self) -> str:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1
        if self.pos >= len(self.text):
            raise self.fail('unexpected end')
        return self.text[self.pos]


def parse_array(text: str, element: Callable[[str], Any], null: Any = None,
                delimiter: str = ',') -> list:
    """Parse an array literal, decoding each non-null element with `element`.

    Null elements become `null`, checked before any element decode.
    """
    return _ArrayParser(text, element, null, delimiter).parse()


def format_array(items: Sequence[Any], element: Callable[[Any], str | None]) -> str:
    """Build an array literal.

    `element` returns the text form of an item, or None for a null element.
    Nested lists and tuples become nested groups. Every non-null element is
    quoted, which the server accepts for all element types.
    """
    parts = []
    for item in items:
        if isinstance(item, list | tuple):
            parts.append(format_array(item, element))
            continue
        text = element(item)
        if text is None:
            parts.append('NULL')
        else:
            parts.append('"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"')
    return '{' + ','.join(parts) + '}'
