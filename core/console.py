#!/usr/bin/env python3
"""
DM Admin SQL Console

One console request: take the SQL a person typed, optionally qualify its
first table reference with the default schema, re-encode it for the
connection, run it (paged when it is query-like) and turn the outcome into
status messages. Driver failures come back as normalized error text, never
as an exception.

The console keeps no session state. Callers remember the last SQL text and
when it ran, and call ``run`` again with another page number to navigate.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.charset import CharsetSettings
from core.errors import QuerySyntaxError
from core.identifiers import apply_default_schema
from core.pager import DEFAULT_PAGE_SIZE, PageRequest, SqlExecutor
from core.results import QueryResultEnvelope, ResultType
from core.statements import is_query

logger = logging.getLogger(__name__)


@dataclass
class ConsoleOutcome:
    """Everything the presentation layer needs after one console run"""
    sql: str = ""
    envelope: QueryResultEnvelope = field(default_factory=QueryResultEnvelope)
    messages: List[str] = field(default_factory=list)
    error: Optional[str] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total_rows: int = 0
    total_pages: int = 1
    paged: bool = False
    schema_applied: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class SqlConsole:
    """Runs console SQL against an executor with explicit settings."""

    def __init__(self, executor: SqlExecutor, page_size: int = DEFAULT_PAGE_SIZE, auto_schema: bool = True):
        self.executor = executor
        self.page_size = max(1, int(page_size))
        self.auto_schema = auto_schema

    @property
    def charsets(self) -> CharsetSettings:
        return self.executor.charsets

    def run(self, sql_text: str, schema: str = '', page: int = 1) -> ConsoleOutcome:
        sql = (sql_text or '').strip()
        outcome = ConsoleOutcome(sql=sql, page_size=self.page_size)
        if not sql:
            outcome.messages.append("No SQL to run.")
            return outcome

        if self.auto_schema and schema and schema.strip():
            sql, changed = apply_default_schema(sql, schema)
            if changed:
                outcome.sql = sql
                outcome.schema_applied = True
                outcome.messages.append(f"Applied default schema: {schema.strip()}.")

        outbound = self.charsets.prepare_outbound(sql)

        try:
            if is_query(sql):
                request = PageRequest(page=page, page_size=self.page_size)
                paged = self.executor.run_paged(outbound, request)
                outcome.envelope = paged.envelope
                outcome.page = paged.page
                outcome.total_rows = paged.total_rows
                outcome.total_pages = paged.total_pages
                outcome.paged = paged.paged
                outcome.messages.append(f"Query OK, {paged.total_rows} rows returned.")
            else:
                envelope = self.executor.execute(outbound)
                outcome.envelope = envelope
                if envelope.type == ResultType.AFFECTED:
                    outcome.messages.append(f"Query OK, {envelope.affected} rows affected.")
                else:
                    outcome.messages.append("Query OK.")
        except QuerySyntaxError as e:
            outcome.error = self.charsets.normalize_error(e.driver_message or e.message)
            logger.debug(f"Console statement failed: {outcome.error}")

        return outcome
