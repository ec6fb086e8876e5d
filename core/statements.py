#!/usr/bin/env python3
"""
DM Admin Statement Classification

A statement is query-like when its leading keyword is one of SELECT, WITH,
SHOW, DESCRIBE or EXPLAIN; everything else is executed as a mutation and
reports an affected-row count.
"""

from enum import Enum

QUERY_KEYWORDS = frozenset({'SELECT', 'WITH', 'SHOW', 'DESCRIBE', 'EXPLAIN'})

_TOKEN_DELIMITERS = ' \t\n\r('
_TERMINATOR_CHARS = ' \t\n\r;'


class StatementKind(Enum):
    QUERY = "query"
    MUTATION = "mutation"


def leading_keyword(sql: str) -> str:
    """First token of ``sql``, upper-cased. Leading whitespace and '(' are skipped."""
    text = (sql or '').lstrip(_TOKEN_DELIMITERS)
    end = 0
    while end < len(text) and text[end] not in _TOKEN_DELIMITERS:
        end += 1
    return text[:end].upper()


def classify(sql: str) -> StatementKind:
    if leading_keyword(sql) in QUERY_KEYWORDS:
        return StatementKind.QUERY
    return StatementKind.MUTATION


def is_query(sql: str) -> bool:
    return classify(sql) == StatementKind.QUERY


def strip_terminator(sql: str) -> str:
    """Drop trailing whitespace and semicolons."""
    return (sql or '').rstrip(_TERMINATOR_CHARS)
