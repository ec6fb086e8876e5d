#!/usr/bin/env python3
"""
DM Admin SQLite Adapter

SQLite backend for the admin core. TEXT values are decoded with
``surrogateescape`` so bytes written in a legacy charset (GBK text stored in
a UTF-8 database, for example) come back intact and can be repaired by the
charset layer instead of failing the whole fetch.

Schemas are SQLite's database names: ``main``, ``temp`` and anything
attached with ATTACH DATABASE.

Usage:
    adapter = SQLiteAdapter({'type': 'sqlite', 'path': 'admin.db'})
    result = adapter.execute_query("SELECT * FROM users")
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.charset import escaped_bytes, has_escaped_bytes
from core.database_manager import DatabaseAdapter
from core.errors import BackendConnectionError
from core.identifiers import TokenKind, quote_exact, tokenize

logger = logging.getLogger(__name__)


def _decode_text(raw: bytes) -> str:
    return raw.decode('utf-8', 'surrogateescape')


def _text_literal(raw: bytes) -> str:
    return f"CAST(X'{raw.hex().upper()}' AS TEXT)"


class SQLiteAdapter(DatabaseAdapter):
    """SQLite adapter (stdlib sqlite3, autocommit)."""

    backend_name = "sqlite"
    placeholder = "?"
    driver_error = sqlite3.Error

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize SQLite adapter.

        Args:
            config: backend configuration; ``path`` (or ``database``) is the
                database file, ':memory:' by default, ``timeout`` the busy
                timeout in seconds
        """
        super().__init__(config)
        self.database = config.get('path') or config.get('database') or ':memory:'
        self.timeout = float(config.get('timeout', 30))
        self._connect()
        logger.info(f"SQLite adapter initialized for {self.database}")

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._connection = sqlite3.connect(
                self.database,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False
            )
            self._connection.text_factory = _decode_text
            logger.debug(f"Connected to SQLite database: {self.database}")
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to SQLite: {e}")
            raise BackendConnectionError(f"Cannot open SQLite database {self.database}: {e}") from e

    def _outbound(self, sql: str, params: Optional[Sequence[Any]]) -> Tuple[str, Tuple[Any, ...]]:
        """
        Write prepared bytes as TEXT values.

        sqlite3 only encodes UTF-8, so string literals and ``?`` parameters
        that carry raw bytes become blobs cast to TEXT. The stored value holds
        exactly those bytes.
        """
        values = list(params or ())
        if not has_escaped_bytes(sql) and not any(has_escaped_bytes(value) for value in values):
            return sql, tuple(values)

        parts: List[str] = []
        bound: List[Any] = []
        for token in tokenize(sql):
            if token.kind == TokenKind.STRING and token.closed and has_escaped_bytes(token.text):
                parts.append(_text_literal(escaped_bytes(token.text[1:-1].replace("''", "'"))))
            elif token.kind == TokenKind.OTHER and token.text == '?' and len(bound) < len(values):
                value = values[len(bound)]
                if has_escaped_bytes(value):
                    parts.append('CAST(? AS TEXT)')
                    value = escaped_bytes(value)
                else:
                    parts.append('?')
                bound.append(value)
            else:
                parts.append(token.text)
        bound.extend(values[len(bound):])
        return ''.join(parts), tuple(bound)

    def execute_script(self, script: str) -> bool:
        """Run several statements at once (fixtures, migrations)."""
        try:
            with self._lock:
                self._connection.executescript(script)
            return True
        except sqlite3.Error as e:
            logger.error(f"Script execution failed: {e}")
            return False

    def current_schema(self) -> str:
        return 'main'

    def list_schemas(self) -> List[str]:
        # PRAGMA database_list yields (seq, name, file)
        rows = self._catalog_rows("PRAGMA database_list")
        schemas = [row[1] for row in rows if len(row) > 1]
        return schemas or ['main']

    def list_tables(self, schema: str) -> List[str]:
        return self._catalog_values(
            f"SELECT name FROM {quote_exact(schema or 'main')}.sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )

    def _table_info(self, schema: str, table: str) -> List[List[Any]]:
        # (cid, name, type, notnull, dflt_value, pk)
        return self._catalog_rows(
            f"PRAGMA {quote_exact(schema or 'main')}.table_info({quote_exact(table)})"
        )

    def table_columns(self, schema: str, table: str) -> List[Dict[str, Any]]:
        return [
            self.column_info(row[1], row[2], None, not row[3])
            for row in self._table_info(schema, table)
        ]

    def primary_key(self, schema: str, table: str) -> Optional[str]:
        keyed = sorted((row for row in self._table_info(schema, table) if row[5]), key=lambda row: row[5])
        return keyed[0][1] if keyed else None
