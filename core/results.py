#!/usr/bin/env python3
"""
DM Admin Result Types

Rows are ordered column -> value mappings. Each value falls into one of four
kinds (NULL, TEXT, NUMERIC, BINARY); NULL and the empty string are different
states and stay different all the way to the screen.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

NULL_MARKER = 'NULL'
EMPTY_MARKER = '(empty)'
PREVIEW_THRESHOLD = 100
PREVIEW_LENGTH = 30


class ValueKind(Enum):
    NULL = "null"
    TEXT = "text"
    NUMERIC = "numeric"
    BINARY = "binary"


def value_kind(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BINARY
    if isinstance(value, (bool, int, float, Decimal)):
        return ValueKind.NUMERIC
    return ValueKind.TEXT


def display_value(value: Any) -> str:
    """Full text of a cell as shown to a person."""
    kind = value_kind(value)
    if kind == ValueKind.NULL:
        return NULL_MARKER
    if kind == ValueKind.BINARY:
        return '0x' + bytes(value).hex()
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat(sep=' ') if isinstance(value, datetime) else value.isoformat()
    text = str(value)
    if text == '':
        return EMPTY_MARKER
    return text


def preview_value(value: Any) -> str:
    """Short form of a cell; long values are cut to their first 30 characters."""
    text = display_value(value)
    if len(text) > PREVIEW_THRESHOLD:
        return text[:PREVIEW_LENGTH] + '...'
    return text


class Row(dict):
    """One result row; iteration order is column order."""

    def kind(self, column: str) -> ValueKind:
        return value_kind(self.get(column))

    def kinds(self) -> Dict[str, ValueKind]:
        return {column: value_kind(value) for column, value in self.items()}

    def is_null(self, column: str) -> bool:
        return self.get(column) is None


class ResultType(Enum):
    NONE = "none"
    ROWS = "rows"
    AFFECTED = "affected"


@dataclass
class QueryResultEnvelope:
    """Uniform result handed back to the presentation layer"""
    type: ResultType = ResultType.NONE
    columns: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    affected: int = 0
    row_count: int = 0

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]], columns: Optional[List[str]] = None) -> 'QueryResultEnvelope':
        """Build a ROWS envelope; column names come from the first row, else from ``columns``."""
        materialized = [row if isinstance(row, Row) else Row(row) for row in rows]
        if materialized:
            names = list(materialized[0].keys())
        else:
            names = list(columns or [])
        return cls(
            type=ResultType.ROWS,
            columns=names,
            rows=materialized,
            row_count=len(materialized),
        )

    @classmethod
    def from_affected(cls, affected: int) -> 'QueryResultEnvelope':
        return cls(type=ResultType.AFFECTED, affected=max(0, affected or 0))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'type': self.type.value,
            'columns': list(self.columns),
            'rows': [dict(row) for row in self.rows],
            'affected': self.affected,
            'row_count': self.row_count,
        }
