#!/usr/bin/env python3
"""
DM Admin Pager - statement execution, counting and windowed fetches

``SqlExecutor`` runs raw SQL against any DatabaseAdapter and hands back
QueryResultEnvelope values. Paging wraps a query-like statement twice:

    SELECT COUNT(*) FROM (<sql>) t
    SELECT * FROM (<sql>) t OFFSET <o> ROWS FETCH NEXT <n> ROWS ONLY

and retries the window once as ``... t LIMIT <n> OFFSET <o>`` when the
dialect rejects OFFSET/FETCH. A COUNT(*) the dialect rejects is not an
error: the statement runs unpaged and is reported as a single page.

Usage:
    executor = SqlExecutor(adapter, CharsetSettings(data_charset='GBK'))
    paged = executor.run_paged("SELECT * FROM users;", PageRequest(page=2, page_size=50))
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.charset import CharsetSettings
from core.errors import QuerySyntaxError
from core.results import QueryResultEnvelope, Row
from core.statements import is_query, strip_terminator

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200


def total_pages(total_rows: int, page_size: int) -> int:
    """Number of pages needed for ``total_rows``; never less than 1."""
    page_size = max(1, int(page_size))
    return max(1, math.ceil(max(0, int(total_rows)) / page_size))


@dataclass(frozen=True)
class PageRequest:
    """A 1-based page number and a page size"""
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self):
        object.__setattr__(self, 'page', max(1, int(self.page)))
        object.__setattr__(self, 'page_size', max(1, int(self.page_size)))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def clamp(self, pages: int) -> 'PageRequest':
        return PageRequest(page=min(self.page, max(1, pages)), page_size=self.page_size)


@dataclass(frozen=True)
class CountOutcome:
    """Result of a COUNT(*) wrapper: a total, or the reason there is none."""
    total: Optional[int] = None
    error: Optional[str] = None

    @property
    def supported(self) -> bool:
        return self.error is None and self.total is not None


@dataclass
class PagedResult:
    envelope: QueryResultEnvelope
    page: int
    page_size: int
    total_rows: int
    total_pages: int
    paged: bool = True
    count_error: Optional[str] = None
    sql_executed: str = ""
    offset: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = self.envelope.to_dict()
        data.update({
            'page': self.page,
            'page_size': self.page_size,
            'total_rows': self.total_rows,
            'total_pages': self.total_pages,
            'offset': self.offset,
            'paged': self.paged,
        })
        return data


@dataclass
class TablePage:
    schema: str
    table: str
    envelope: QueryResultEnvelope
    page: int
    page_size: int
    total_rows: int
    total_pages: int
    columns: List[Dict[str, Any]] = field(default_factory=list)
    primary_key: Optional[str] = None

    def is_editable(self, row: Row) -> bool:
        """A row can be edited in place when its key column holds a value."""
        return self.primary_key is not None and row.get(self.primary_key) is not None


class SqlExecutor:
    """Runs statements through an adapter and shapes the results."""

    def __init__(self, adapter, charsets: Optional[CharsetSettings] = None):
        self.adapter = adapter
        self.charsets = charsets or CharsetSettings()

    def _fail(self, result, sql: str):
        logger.error(f"Statement rejected by {result.backend or 'backend'}: {result.error_message}")
        raise QuerySyntaxError(result.error_message, sql=sql)

    def _rows_envelope(self, result) -> QueryResultEnvelope:
        self.charsets.normalize_rows(result.data)
        return QueryResultEnvelope.from_rows(result.data, result.columns)

    # ------------------------------------------------------------------
    # Unpaged execution
    # ------------------------------------------------------------------

    def execute(self, sql: str) -> QueryResultEnvelope:
        """Run ``sql`` as-is. Driver failures raise QuerySyntaxError."""
        if is_query(sql):
            result = self.adapter.execute_query(sql)
            if not result.success:
                self._fail(result, sql)
            return self._rows_envelope(result)

        result = self.adapter.execute_statement(sql)
        if not result.success:
            self._fail(result, sql)
        return QueryResultEnvelope.from_affected(result.rows_affected)

    exec = execute

    # ------------------------------------------------------------------
    # Paged execution
    # ------------------------------------------------------------------

    def count_rows(self, sql: str) -> CountOutcome:
        """Count the rows ``sql`` would return. Never raises."""
        count_sql = f"SELECT COUNT(*) FROM ({strip_terminator(sql)}) t"
        result = self.adapter.fetch_value(count_sql)
        if not result.success:
            logger.warning(f"Row count unavailable, showing a single page: {result.error_message}")
            return CountOutcome(error=result.error_message or 'COUNT(*) failed')

        value = (result.metadata or {}).get('value')
        try:
            return CountOutcome(total=int(value))
        except (TypeError, ValueError):
            logger.warning(f"Row count returned a non-integer value: {value!r}")
            return CountOutcome(error=f"Unexpected COUNT(*) value: {value!r}")

    def fetch_window(self, sql: str, page_size: int, offset: int) -> QueryResultEnvelope:
        """Fetch one window of ``sql``, retrying with LIMIT/OFFSET once."""
        stripped = strip_terminator(sql)
        windowed = f"SELECT * FROM ({stripped}) t OFFSET {int(offset)} ROWS FETCH NEXT {int(page_size)} ROWS ONLY"
        result = self.adapter.execute_query(windowed)
        if result.success:
            return self._rows_envelope(result)

        logger.debug(f"OFFSET/FETCH rejected ({result.error_message}); retrying with LIMIT/OFFSET")
        fallback = f"SELECT * FROM ({stripped}) t LIMIT {int(page_size)} OFFSET {int(offset)}"
        result = self.adapter.execute_query(fallback)
        if not result.success:
            self._fail(result, fallback)
        return self._rows_envelope(result)

    def execute_page(self, sql: str, page_size: int, offset: int = 0) -> PagedResult:
        """
        Count, clamp and fetch ``page_size`` rows starting at ``offset``.

        The offset is kept as given unless it lies past the last row, in
        which case the window moves to the start of the last page. When the
        COUNT(*) wrapper fails the statement runs unpaged and the
        result is a single page holding every row.
        """
        page_size = max(1, int(page_size))
        offset = max(0, int(offset))
        count = self.count_rows(sql)

        if not count.supported:
            envelope = self.execute(sql)
            return PagedResult(
                envelope=envelope,
                page=1,
                page_size=page_size,
                total_rows=envelope.row_count,
                total_pages=1,
                paged=False,
                count_error=count.error,
                sql_executed=sql,
            )

        pages = total_pages(count.total, page_size)
        offset = min(offset, (pages - 1) * page_size)
        envelope = self.fetch_window(sql, page_size, offset)
        return PagedResult(
            envelope=envelope,
            page=offset // page_size + 1,
            page_size=page_size,
            total_rows=count.total,
            total_pages=pages,
            sql_executed=sql,
            offset=offset,
        )

    exec_page = execute_page

    def run_paged(self, sql: str, page_request: PageRequest) -> PagedResult:
        return self.execute_page(sql, page_request.page_size, page_request.offset)

    # ------------------------------------------------------------------
    # Table browsing
    # ------------------------------------------------------------------

    def table_rows(self, schema: str, table: str, limit: int, offset: int = 0) -> QueryResultEnvelope:
        """Literal table contents, OFFSET/FETCH first and LIMIT as the fallback."""
        reference = self.adapter.table_reference(schema, table)
        limit = int(limit)
        offset = int(offset)
        if offset > 0:
            primary = f"SELECT * FROM {reference} OFFSET {offset} ROWS FETCH NEXT {limit} ROWS ONLY"
            fallback = f"SELECT * FROM {reference} LIMIT {limit} OFFSET {offset}"
        else:
            primary = f"SELECT * FROM {reference} FETCH FIRST {limit} ROWS ONLY"
            fallback = f"SELECT * FROM {reference} LIMIT {limit}"

        result = self.adapter.execute_query(primary)
        if not result.success:
            logger.debug(f"Table paging via FETCH rejected ({result.error_message}); using LIMIT")
            result = self.adapter.execute_query(fallback)
            if not result.success:
                self._fail(result, fallback)
        return self._rows_envelope(result)

    def table_total_rows(self, schema: str, table: str) -> int:
        """Plain COUNT(*) of a table; 0 when the count fails."""
        reference = self.adapter.table_reference(schema, table)
        result = self.adapter.fetch_value(f"SELECT COUNT(*) FROM {reference}")
        if not result.success:
            logger.warning(f"Total row count for {schema}.{table} unavailable: {result.error_message}")
            return 0
        try:
            return int((result.metadata or {}).get('value') or 0)
        except (TypeError, ValueError):
            return 0

    def browse_table(self, schema: str, table: str, page_request: Optional[PageRequest] = None) -> TablePage:
        """One page of a table with its column metadata and key column."""
        page_request = page_request or PageRequest()
        total = self.table_total_rows(schema, table)
        pages = total_pages(total, page_request.page_size)
        request = page_request.clamp(pages)

        envelope = self.table_rows(schema, table, request.page_size, request.offset)
        if total == 0 and envelope.row_count > 0:
            total = envelope.row_count
            pages = 1

        columns = self.charsets.normalize_rows(self.adapter.table_columns(schema, table))
        if not envelope.columns and columns:
            envelope.columns = [column['name'] for column in columns]

        return TablePage(
            schema=schema,
            table=table,
            envelope=envelope,
            page=request.page,
            page_size=request.page_size,
            total_rows=total,
            total_pages=pages,
            columns=columns,
            primary_key=self.adapter.primary_key(schema, table),
        )
