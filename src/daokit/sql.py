"""
SQL fragment helpers for DAO statement construction.

Statements are authored with ``?`` markers and comma-separated field lists
(``"s, i, d"``). This module turns field lists into INSERT/UPDATE/SELECT
fragments, rewrites WHERE clauses so NULL parameters still match, and
converts ``?`` markers into the driver's placeholder style.

Main entry points:
- `insert_placeholders()` / `update_assignments()` / `qualify_columns()`
- `nullable_where()` - Null-safe rewrite of ``col=?`` predicates
- `standardize_placeholders()` - Convert ``?`` for the target dialect
- `column_name_at()` - Column name heuristic for binding errors
"""
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from daokit.parameter import ParameterList

__all__ = [
    'insert_placeholders',
    'update_assignments',
    'select_predicates',
    'qualify_columns',
    'split_fields',
    'nullable_where',
    'standardize_placeholders',
    'count_placeholders',
    'column_name_at',
]

# =============================================================================
# Tokenizer
# =============================================================================


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    QMARK = auto()
    PERCENT = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE)

_FIELD_NAME = re.compile(r'[a-zA-Z0-9_]+')


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into literal, placeholder, percent and plain-text tokens.
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))

        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('qmark'):
            ttype = TokenType.QMARK
        else:
            ttype = TokenType.PERCENT

        tokens.append(Token(ttype, match.group(0)))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))

    return tokens


def standardize_placeholders(sql: str, placeholder: str = '?') -> str:
    """Convert ``?`` markers to the driver's placeholder.

    For ``format`` style drivers (``%s``) bare percent signs outside string
    literals are doubled so the driver does not read them as markers.
    Literals are copied untouched; a literal ``%`` inside quotes is also
    escaped because the driver scans the whole statement.
    """
    if not sql or placeholder == '?':
        return sql

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.QMARK:
            result.append(placeholder)
        elif token.type == TokenType.PERCENT:
            result.append('%%')
        elif token.type == TokenType.STRING_LITERAL:
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def count_placeholders(sql: str) -> int:
    """Number of ``?`` markers outside string literals.
    """
    return sum(1 for token in tokenize_sql(sql) if token.type == TokenType.QMARK)


# =============================================================================
# Field List Fragments
# =============================================================================

def split_fields(fields: str) -> list[str]:
    """Split a comma-separated field list into names.
    """
    return [f.strip() for f in fields.split(',') if f.strip()]


def insert_placeholders(fields: str) -> str:
    """Replace every field name by a marker: ``"a, b"`` -> ``"?, ?"``.
    """
    return _FIELD_NAME.sub('?', fields)


def select_predicates(fields: str, joiner: str, operator: str) -> str:
    """Turn ``"a, b"`` into ``"a<op>?<joiner>b<op>?"``.
    """
    return fields.replace(', ', f'{operator}?{joiner}') + f'{operator}?'


def update_assignments(fields: str) -> str:
    """SET clause body: ``"a, b"`` -> ``"a=?, b=?"``.
    """
    return select_predicates(fields, ', ', '=')


def qualify_columns(fields: str, table: str) -> str:
    """Prefix each field with its table: ``"a, b"`` -> ``"t.a, t.b"``.
    """
    return f'{table}.' + fields.replace(', ', f', {table}.')


# =============================================================================
# Null-safe WHERE
# =============================================================================

def _rewrite_equality(term: str) -> str:
    """Wrap a single ``col=?`` term so NULL matches too.

    Leading and trailing parentheses stay outside the new group.
    """
    core = term.lstrip('(')
    prefix = term[:len(term) - len(core)]
    stripped = core.rstrip(')')
    suffix = core[len(stripped):]
    column = stripped.replace('=?', '')
    return f'{prefix}({stripped} OR {column} IS NULL){suffix}'


def _is_equality(term: str) -> bool:
    head = term.split('=?', 1)[0]
    return not head.endswith(('<', '>', '!'))


def nullable_where(where: str | None, params: 'ParameterList | None') -> str | None:
    """Rewrite ``col=?`` terms whose parameter is NULL.

    The clause is split on spaces and parameters are matched to markers in
    order. A term containing ``=?`` whose parameter value is ``None``
    becomes ``(col=? OR col IS NULL)``; every other marker only advances
    the parameter position.
    """
    if where is None or params is None:
        return where

    result = []
    pos = 0
    for term in where.split(' '):
        markers = term.count('?')
        if '=?' in term and _is_equality(term):
            if pos >= len(params):
                raise ValueError(f'WHERE clause has more markers than parameters: {where}')
            if params[pos].value is None:
                term = _rewrite_equality(term)
        pos += markers
        result.append(term)
    if pos > len(params):
        raise ValueError(f'WHERE clause has more markers than parameters: {where}')
    return ' '.join(result)


def column_name_at(sql: str, position: int) -> str:
    """Best-effort column name bound at a 1-based marker position.

    UPDATE statements are read from their SET list, everything else from
    the first parenthesised list. Returns ``'unknown'`` when the statement
    does not fit either shape.
    """
    try:
        if 'UPDATE' in sql:
            names = sql.split('SET ', 1)[1].split(' WHERE', 1)[0].split('=?, ')
        else:
            names = sql.split('(', 1)[1].split(')', 1)[0].split(',')
        if position < 1:
            return 'unknown'
        name = names[position - 1].strip()
    except IndexError:
        return 'unknown'
    if name.endswith('=?'):
        name = name[:-2]
    return name or 'unknown'
