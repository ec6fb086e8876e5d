#!/usr/bin/env python3
"""
DM Admin Test Configuration - PyTest Configuration and Fixtures

Shared fixtures: charset settings, a populated in-memory SQLite adapter,
executors over it, and a scripted adapter double for unit tests that must
control exactly what the driver accepts and rejects.
"""

import os
import sys
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.charset import CharsetSettings
from core.database_manager import DatabaseAdapter, DatabaseResult
from core.pager import SqlExecutor
from core.results import Row
from extensions.plugins.sqlite_adapter import SQLiteAdapter

USER_COUNT = 101

SCHEMA_SCRIPT = """
    CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        note TEXT
    );

    CREATE TABLE audit_log (
        event TEXT,
        created_at TEXT
    );

    WITH RECURSIVE seq(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM seq WHERE n < 101)
    INSERT INTO users (id, name, email, note)
    SELECT n, 'user' || n, CASE WHEN n % 10 = 0 THEN NULL ELSE 'user' || n || '@example.com' END, ''
    FROM seq;

    INSERT INTO audit_log (event, created_at) VALUES ('boot', '2024-01-01 00:00:00');
"""


class ScriptedAdapter(DatabaseAdapter):
    """Adapter double: answers SQL by fragment, records everything it was sent."""

    backend_name = "scripted"

    def __init__(self):
        super().__init__({'type': 'scripted'})
        self.executed: List[str] = []
        self.params: List[Optional[Sequence[Any]]] = []
        self._responses: List[tuple] = []
        self.catalog: Dict[str, Any] = {'columns': [], 'primary_key': None, 'schema': 'APP'}

    def respond(self, fragment: str, result: DatabaseResult):
        """Answer any statement containing ``fragment``; earlier registrations win."""
        self._responses.append((fragment, result))

    def reject(self, fragment: str, message: str = "syntax error"):
        self.respond(fragment, DatabaseResult(success=False, backend=self.backend_name, error_message=message))

    def rows(self, fragment: str, rows: List[Dict[str, Any]], columns: Optional[List[str]] = None):
        data = [Row(row) for row in rows]
        names = columns if columns is not None else (list(rows[0].keys()) if rows else [])
        self.respond(fragment, DatabaseResult(success=True, data=data, columns=names, backend=self.backend_name))

    def _run(self, sql, params, fetch):
        self.executed.append(sql)
        self.params.append(params)
        for fragment, result in self._responses:
            if fragment in sql:
                return DatabaseResult(
                    success=result.success,
                    data=[Row(row) for row in result.data],
                    columns=list(result.columns),
                    rows_affected=result.rows_affected,
                    backend=self.backend_name,
                    sql_executed=sql,
                    error_message=result.error_message,
                )
        return DatabaseResult(success=True, backend=self.backend_name, sql_executed=sql)

    def current_schema(self) -> str:
        return self.catalog['schema']

    def table_columns(self, schema, table):
        return [dict(column) for column in self.catalog['columns']]

    def primary_key(self, schema, table):
        return self.catalog['primary_key']


@pytest.fixture
def scripted_adapter():
    """Adapter double with no scripted answers yet"""
    return ScriptedAdapter()


@pytest.fixture
def utf8_charsets():
    return CharsetSettings()


@pytest.fixture
def gbk_charsets():
    """Connection data in GBK, output in UTF-8"""
    return CharsetSettings(data_charset='GBK', output_charset='UTF-8')


@pytest.fixture
def schema_script():
    """DDL and data for the users and audit_log tables"""
    return SCHEMA_SCRIPT


@pytest.fixture
def sqlite_adapter():
    """In-memory SQLite adapter with users (101 rows, keyed) and audit_log (no key)"""
    adapter = SQLiteAdapter({'type': 'sqlite', 'path': ':memory:'})
    assert adapter.execute_script(SCHEMA_SCRIPT)
    yield adapter
    adapter.close()


@pytest.fixture
def sqlite_executor(sqlite_adapter, utf8_charsets):
    return SqlExecutor(sqlite_adapter, utf8_charsets)


# Custom markers for test organization
def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interaction"
    )
    config.addinivalue_line(
        "markers", "database: Database-related tests"
    )
