#!/usr/bin/env python3
"""
DM Admin Row Editor - single-cell updates keyed by the primary key
"""

import logging
from typing import Any, Optional

from core.charset import CharsetSettings
from core.errors import NoPrimaryKeyError, QuerySyntaxError

logger = logging.getLogger(__name__)


class RowEditor:
    """Writes one cell at a time through an adapter."""

    def __init__(self, adapter, charsets: Optional[CharsetSettings] = None):
        self.adapter = adapter
        self.charsets = charsets or CharsetSettings()

    def key_column_for(self, schema: str, table: str) -> Optional[str]:
        return self.adapter.primary_key(schema, table)

    def update_cell(self, schema: str, table: str, key_column: Optional[str], key_value: Any,
                    column: str, new_value: Any, set_null: bool = False, set_empty: bool = False) -> int:
        """
        Set ``column`` of the row whose ``key_column`` equals ``key_value``.

        ``set_null`` writes NULL and ``set_empty`` writes an empty string,
        whatever ``new_value`` holds. Returns the affected row count.

        Raises:
            NoPrimaryKeyError: the table has no key column to address the row
            QuerySyntaxError: the driver rejected the update
        """
        if not key_column:
            raise NoPrimaryKeyError(schema, table)

        if set_null:
            value = None
        elif set_empty:
            value = ''
        elif isinstance(new_value, str):
            value = self.charsets.prepare_outbound(new_value)
        else:
            value = new_value

        if isinstance(key_value, str):
            key_value = self.charsets.prepare_outbound(key_value)

        quote = self.adapter.quote_identifier
        marker = self.adapter.placeholder
        sql = (f"UPDATE {quote(schema)}.{quote(table)} SET {quote(column)} = {marker} "
               f"WHERE {quote(key_column)} = {marker}")

        result = self.adapter.execute_statement(sql, (value, key_value))
        if not result.success:
            logger.error(f"Cell update on {schema}.{table}.{column} failed: {result.error_message}")
            raise QuerySyntaxError(result.error_message, sql=sql)

        logger.debug(f"Updated {schema}.{table}.{column} where {key_column}={key_value!r}: {result.rows_affected} row(s)")
        return result.rows_affected
