"""
SQL text helpers.

The server-side protocol only understands numbered placeholders (`$1`, `$2`,
...). Statements in this package, and statements written by callers, use the
positional `%s` or `?` style, so every statement goes through a single-pass
tokenizer that rewrites positional placeholders while leaving string literals,
quoted identifiers and comments untouched.

- `quote_identifier()` - the only way an identifier enters generated SQL
- `to_numbered_placeholders()` - rewrite `%s`/`?` to `$n`
- `make_placeholders()` - build a `%s, %s, ...` list
- `has_placeholders()` - check if SQL has placeholders
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    COMMENT = auto()
    POSITIONAL_PH = auto()      # %s or ?
    ESCAPED_PERCENT = auto()    # %%


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str


# Master tokenization pattern. Dollar-quoted bodies, string literals, quoted
# identifiers and comments are captured whole so placeholders inside them are
# never rewritten.
_TOKENIZE = re.compile(r"""
    (?P<dollar>\$(?P<tag>[A-Za-z_]*)\$.*?\$(?P=tag)\$)
    |(?P<string>[EeBbXx]?'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<escaped>%%)
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
""", re.VERBOSE | re.DOTALL)

_HAS_PLACEHOLDER = re.compile(r'%s|\?|\$\d+')
_NUMBERED = re.compile(r'\$(\d+)')


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into tokens in a single pass, preserving all text.
    """
    tokens = []
    last_end = 0
    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        if match.group('dollar') or match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('comment'):
            ttype = TokenType.COMMENT
        elif match.group('escaped'):
            ttype = TokenType.ESCAPED_PERCENT
        else:
            ttype = TokenType.POSITIONAL_PH
        tokens.append(Token(ttype, match.group(0)))
        last_end = end
    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))
    return tokens


def to_numbered_placeholders(sql: str) -> tuple[str, int]:
    """Rewrite positional placeholders to `$n` form.

    `%%` collapses to a literal `%`. SQL already written with `$n`
    placeholders passes through unchanged.

    Returns
        The rewritten SQL and the number of placeholders found (for `$n`
        SQL, the highest n)
    """
    parts = []
    count = 0
    numbered = 0
    for token in tokenize_sql(sql):
        if token.type == TokenType.SQL_TEXT:
            numbered = max([numbered, *(int(n) for n in _NUMBERED.findall(token.text))])
        if token.type == TokenType.POSITIONAL_PH:
            count += 1
            parts.append(f'${count}')
        elif token.type == TokenType.ESCAPED_PERCENT:
            parts.append('%')
        else:
            parts.append(token.text)
    return ''.join(parts), count or numbered


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any placeholders outside string literals.
    """
    if not sql:
        return False
    return any(
        t.type == TokenType.POSITIONAL_PH
        or (t.type == TokenType.SQL_TEXT and _HAS_PLACEHOLDER.search(t.text))
        for t in tokenize_sql(sql))


def make_placeholders(count: int) -> str:
    """Build a comma separated placeholder list.
    """
    return ', '.join(['%s'] * count)


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier.

    Embedded double quotes are doubled, so a name can never terminate the
    quoted identifier early.

    Parameters
        identifier: Table, column or constraint name

    Returns
        Quoted identifier
    """
    return '"' + identifier.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Quote a string as a SQL literal, doubling embedded single quotes.
    """
    return "'" + value.replace("'", "''") + "'"
