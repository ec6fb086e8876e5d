#!/usr/bin/env python3
"""
DM Admin Identifier Handling - quoting and default-schema injection

Unquoted identifiers fold to upper case (the DM/Oracle convention), so a bare
``users`` and a quoted ``"USERS"`` name the same table.

``apply_default_schema`` qualifies the first unqualified table reference of a
statement. It scans tokens instead of running one regular expression over the
text, which keeps keywords inside string literals, quoted identifiers and
comments from matching. Keyword sequences are tried in a fixed order:

    FROM -> UPDATE -> INSERT INTO -> DELETE FROM

For each sequence only the first structural match counts, meaning the
keyword(s), at least one whitespace character and a table reference
(bare word, "double quoted" or `backtick quoted`, optionally followed by
``.`` and a second such part). A keyword followed by ``(`` is not a
structural match, so the scan moves on to the next occurrence of the same
keyword. A match that is already qualified (its text contains ``.``) is left
alone and the next sequence is tried. At most one substitution happens.
"""

import logging
import re
import string
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

BARE_IDENTIFIER = re.compile(r'[A-Za-z0-9_$]+')

# Priority order for schema injection
TABLE_KEYWORDS: Tuple[Tuple[str, ...], ...] = (
    ('FROM',),
    ('UPDATE',),
    ('INSERT', 'INTO'),
    ('DELETE', 'FROM'),
)


class TokenKind(Enum):
    WORD = "word"
    QUOTED = "quoted"          # "identifier"
    BACKTICK = "backtick"      # `identifier`
    STRING = "string"          # 'literal'
    COMMENT = "comment"
    SPACE = "space"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int
    closed: bool = True

    def is_keyword(self, keyword: str) -> bool:
        return self.kind == TokenKind.WORD and self.text.upper() == keyword

    @property
    def is_identifier(self) -> bool:
        if self.kind == TokenKind.WORD:
            return True
        if self.kind in (TokenKind.QUOTED, TokenKind.BACKTICK):
            return self.closed and len(self.text) > 2
        return False


@dataclass(frozen=True)
class TableReference:
    keyword_end: int
    start: int
    end: int
    text: str


def is_bare_identifier(name: str) -> bool:
    return BARE_IDENTIFIER.fullmatch(name) is not None


def quote_exact(name: str) -> str:
    """Wrap ``name`` in double quotes, doubling embedded quotes. No folding."""
    return '"' + name.replace('"', '""') + '"'


def quote_identifier(name: str) -> str:
    """
    Quote a bare identifier for use in generated SQL.

    Already double-quoted input passes through unchanged. Bare names are
    upper-cased before quoting; anything else keeps its case.

    Examples:
        >>> quote_identifier("users")
        '"USERS"'
        >>> quote_identifier('"Mixed"')
        '"Mixed"'
        >>> quote_identifier('a"b c')
        '"a""b c"'
    """
    trimmed = (name or '').strip()
    if not trimmed:
        return '""'
    if len(trimmed) >= 2 and trimmed[0] == '"' and trimmed[-1] == '"':
        return trimmed
    if is_bare_identifier(trimmed):
        trimmed = trimmed.upper()
    return quote_exact(trimmed)


def format_schema(schema: str) -> str:
    """Fold a schema name the way an unquoted identifier would be folded."""
    if is_bare_identifier(schema):
        return schema.upper()
    return quote_exact(schema)


_WORD_CHARS = frozenset(string.ascii_letters + string.digits + '_$')


def _is_word_char(ch: str) -> bool:
    return ch in _WORD_CHARS


def _scan_quoted(sql: str, start: int, quote: str, doubled_escape: bool) -> Tuple[int, bool]:
    i = start + 1
    n = len(sql)
    while i < n:
        if sql[i] == quote:
            if doubled_escape and i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1, True
        i += 1
    return n, False


def tokenize(sql: str) -> List[Token]:
    """Split SQL text into words, quoted runs, comments, whitespace and single characters."""
    tokens: List[Token] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]
        closed = True
        if ch.isspace():
            j = i
            while j < n and sql[j].isspace():
                j += 1
            kind = TokenKind.SPACE
        elif _is_word_char(ch):
            j = i
            while j < n and _is_word_char(sql[j]):
                j += 1
            kind = TokenKind.WORD
        elif ch == '"':
            j, closed = _scan_quoted(sql, i, '"', doubled_escape=True)
            kind = TokenKind.QUOTED
        elif ch == '`':
            j, closed = _scan_quoted(sql, i, '`', doubled_escape=False)
            kind = TokenKind.BACKTICK
        elif ch == "'":
            j, closed = _scan_quoted(sql, i, "'", doubled_escape=True)
            kind = TokenKind.STRING
        elif sql.startswith('--', i):
            j = sql.find('\n', i)
            j = n if j == -1 else j
            kind = TokenKind.COMMENT
        elif sql.startswith('/*', i):
            j = sql.find('*/', i + 2)
            j = n if j == -1 else j + 2
            kind = TokenKind.COMMENT
        else:
            j = i + 1
            kind = TokenKind.OTHER

        tokens.append(Token(kind, sql[i:j], i, j, closed))
        i = j

    return tokens


def _read_reference(tokens: Sequence[Token], index: int, keyword_end: int) -> Optional[TableReference]:
    # keyword, then whitespace, then part [. part]
    if index + 1 >= len(tokens) or tokens[index].kind != TokenKind.SPACE:
        return None
    first = tokens[index + 1]
    if not first.is_identifier:
        return None

    text = first.text
    end = first.end
    if (index + 3 < len(tokens)
            and tokens[index + 2].kind == TokenKind.OTHER and tokens[index + 2].text == '.'
            and tokens[index + 3].is_identifier):
        text = f"{first.text}.{tokens[index + 3].text}"
        end = tokens[index + 3].end

    return TableReference(keyword_end=keyword_end, start=first.start, end=end, text=text)


def find_table_reference(tokens: Sequence[Token], keywords: Sequence[str]) -> Optional[TableReference]:
    """Return the first structural match of ``keywords`` followed by a table reference."""
    for i, token in enumerate(tokens):
        if not token.is_keyword(keywords[0]):
            continue

        last = i
        for keyword in keywords[1:]:
            if (last + 2 < len(tokens)
                    and tokens[last + 1].kind == TokenKind.SPACE
                    and tokens[last + 2].is_keyword(keyword)):
                last += 2
            else:
                last = -1
                break
        if last < 0:
            continue

        reference = _read_reference(tokens, last + 1, tokens[last].end)
        if reference is not None:
            return reference
    return None


def qualify_reference(reference: str, schema_sql: str) -> str:
    if reference.startswith('`'):
        table = quote_exact(reference[1:-1])
    elif reference.startswith('"'):
        table = reference
    elif is_bare_identifier(reference):
        table = reference.upper()
    else:
        table = quote_exact(reference)
    return f"{schema_sql}.{table}"


def apply_default_schema(sql: str, schema: str) -> Tuple[str, bool]:
    """
    Qualify the first unqualified table reference in ``sql`` with ``schema``.

    Returns ``(rewritten_sql, changed)``.

    Examples:
        >>> apply_default_schema("SELECT * FROM users WHERE id=1", "app")
        ('SELECT * FROM APP.USERS WHERE id=1', True)
        >>> apply_default_schema("SELECT * FROM s.users", "app")
        ('SELECT * FROM s.users', False)
    """
    schema = (schema or '').strip()
    if not schema:
        return sql, False

    schema_sql = format_schema(schema)
    tokens = tokenize(sql)

    for keywords in TABLE_KEYWORDS:
        reference = find_table_reference(tokens, keywords)
        if reference is None:
            continue
        if reference.text.startswith('(') or '.' in reference.text:
            logger.debug(f"Skipping {' '.join(keywords)} {reference.text}: already qualified")
            continue

        qualified = qualify_reference(reference.text, schema_sql)
        rewritten = sql[:reference.keyword_end] + ' ' + qualified + sql[reference.end:]
        if rewritten != sql:
            logger.debug(f"Applied default schema {schema_sql} to {' '.join(keywords)} {reference.text}")
            return rewritten, True

    return sql, False
