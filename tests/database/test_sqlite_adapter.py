#!/usr/bin/env python3
"""
SQLite adapter tests against a real in-memory database
"""

import pytest

from core.charset import CharsetSettings
from core.console import SqlConsole
from core.editor import RowEditor
from core.errors import BackendConnectionError
from core.pager import PageRequest, SqlExecutor
from core.results import ResultType, display_value
from extensions.plugins.sqlite_adapter import SQLiteAdapter


@pytest.mark.database
class TestSQLiteAdapter:

    def test_execute_query(self, sqlite_adapter):
        result = sqlite_adapter.execute_query("SELECT id, name FROM users WHERE id <= ? ORDER BY id", (2,))
        assert result.success
        assert result.columns == ['id', 'name']
        assert result.data == [{'id': 1, 'name': 'user1'}, {'id': 2, 'name': 'user2'}]
        assert result.backend == 'sqlite'

    def test_execute_statement(self, sqlite_adapter):
        result = sqlite_adapter.execute_statement("UPDATE users SET note = 'x' WHERE id <= 3")
        assert result.success
        assert result.rows_affected == 3

    def test_failure_is_a_result(self, sqlite_adapter):
        result = sqlite_adapter.execute_query("SELECT * FROM missing_table")
        assert not result.success
        assert 'no such table' in result.error_message
        assert sqlite_adapter.get_statistics()['failed_queries'] == 1

    def test_fetch_value(self, sqlite_adapter):
        assert sqlite_adapter.fetch_value("SELECT COUNT(*) FROM users").metadata['value'] == 101

    def test_catalog(self, sqlite_adapter):
        assert sqlite_adapter.current_schema() == 'main'
        assert 'main' in sqlite_adapter.list_schemas()
        assert sqlite_adapter.list_tables('main') == ['audit_log', 'users']
        columns = sqlite_adapter.table_columns('main', 'users')
        assert [column['name'] for column in columns] == ['id', 'name', 'email', 'note']
        assert columns[1]['nullable'] is False
        assert sqlite_adapter.primary_key('main', 'users') == 'id'
        assert sqlite_adapter.primary_key('main', 'audit_log') is None
        assert sqlite_adapter.table_columns('main', 'missing') == []

    def test_bad_path(self, tmp_path):
        with pytest.raises(BackendConnectionError):
            SQLiteAdapter({'type': 'sqlite', 'path': str(tmp_path / 'no' / 'such' / 'dir.db')})

    def test_legacy_bytes_survive(self, sqlite_adapter):
        sqlite_adapter.execute_statement(
            "INSERT INTO audit_log (event, created_at) VALUES (CAST(X'D6D0CEC4' AS TEXT), 'gbk')")

        raw = sqlite_adapter.execute_query("SELECT event FROM audit_log WHERE created_at = 'gbk'")
        assert raw.data[0]['event'].encode('utf-8', 'surrogateescape') == '中文'.encode('gbk')

        executor = SqlExecutor(sqlite_adapter, CharsetSettings(data_charset='GBK'))
        envelope = executor.execute("SELECT event FROM audit_log WHERE created_at = 'gbk'")
        assert envelope.rows[0]['event'] == '中文'


@pytest.mark.database
class TestSQLitePaging:

    def test_limit_fallback_reaches_last_row(self, sqlite_executor):
        paged = sqlite_executor.execute_page("SELECT * FROM users ORDER BY id;", 50, 100)
        assert (paged.page, paged.total_pages, paged.total_rows) == (3, 3, 101)
        assert [row['id'] for row in paged.envelope.rows] == [101]

    def test_count_rejection_degrades(self, sqlite_executor):
        paged = sqlite_executor.execute_page("EXPLAIN SELECT 1", 5, 0)
        assert not paged.paged
        assert paged.envelope.type == ResultType.ROWS
        assert paged.envelope.row_count > 0
        assert paged.total_pages == 1

    def test_browse_table(self, sqlite_executor):
        page = sqlite_executor.browse_table('main', 'users', PageRequest(page=2, page_size=20))
        assert (page.page, page.total_pages, page.total_rows) == (2, 6, 101)
        assert [row['id'] for row in page.envelope.rows] == list(range(21, 41))
        assert page.primary_key == 'id'
        assert page.is_editable(page.envelope.rows[0])

    def test_browse_missing_table_raises(self, sqlite_executor):
        from core.errors import QuerySyntaxError
        with pytest.raises(QuerySyntaxError):
            sqlite_executor.browse_table('main', 'missing')


@pytest.mark.database
class TestSQLiteWorkflow:

    def test_console_round_trip(self, sqlite_executor):
        console = SqlConsole(sqlite_executor, page_size=50)
        outcome = console.run("SELECT * FROM users ORDER BY id", schema='main', page=3)

        assert outcome.messages == ["Applied default schema: main.", "Query OK, 101 rows returned."]
        assert outcome.sql == "SELECT * FROM MAIN.USERS ORDER BY id"
        assert outcome.envelope.rows[0]['id'] == 101

    def test_console_error(self, sqlite_executor):
        outcome = SqlConsole(sqlite_executor).run("SELECT * FROM nope")
        assert not outcome.ok
        assert 'no such table' in outcome.error

    def test_cell_edits(self, sqlite_adapter):
        editor = RowEditor(sqlite_adapter)
        key = editor.key_column_for('main', 'users')

        assert editor.update_cell('main', 'users', key, 5, 'email', None, set_null=True) == 1
        assert editor.update_cell('main', 'users', key, 6, 'email', None, set_empty=True) == 1
        assert editor.update_cell('main', 'users', key, 7, 'name', 'renamed') == 1

        rows = sqlite_adapter.execute_query("SELECT id, name, email FROM users WHERE id IN (5, 6, 7) ORDER BY id").data
        assert [display_value(row['email']) for row in rows[:2]] == ['NULL', '(empty)']
        assert rows[2]['name'] == 'renamed'


@pytest.mark.database
class TestSQLiteLegacyCharset:

    def test_prepared_text_is_stored_as_its_bytes(self, sqlite_adapter, gbk_charsets):
        sql = gbk_charsets.prepare_outbound("INSERT INTO audit_log (event, created_at) VALUES ('中''文', ?)")
        result = sqlite_adapter.execute_statement(sql, (gbk_charsets.prepare_outbound('时间'),))
        assert result.success

        row = sqlite_adapter.execute_query(
            "SELECT typeof(event) AS kind, hex(event) AS event, hex(created_at) AS created "
            "FROM audit_log WHERE event <> 'boot'").data[0]
        assert row['kind'] == 'text'
        assert row['event'] == "中'文".encode('gbk').hex().upper()
        assert row['created'] == '时间'.encode('gbk').hex().upper()

    def test_console_filters_on_legacy_text(self, sqlite_adapter, gbk_charsets):
        sqlite_adapter.execute_statement(
            "INSERT INTO audit_log (event, created_at) VALUES (CAST(X'D6D0CEC4' AS TEXT), 'gbk')")
        console = SqlConsole(SqlExecutor(sqlite_adapter, gbk_charsets), page_size=10)

        outcome = console.run("SELECT event, created_at FROM audit_log WHERE event = '中文'")

        assert outcome.ok
        assert outcome.total_rows == 1
        assert outcome.envelope.rows[0]['event'] == '中文'
        assert outcome.envelope.rows[0]['created_at'] == 'gbk'

    def test_cell_edit_writes_data_charset(self, sqlite_adapter, gbk_charsets):
        editor = RowEditor(sqlite_adapter, gbk_charsets)

        assert editor.update_cell('main', 'users', 'id', 8, 'name', '中文') == 1
        assert editor.update_cell('main', 'users', 'name', '中文', 'note', '备注') == 1

        row = sqlite_adapter.execute_query("SELECT hex(name) AS name, hex(note) AS note FROM users WHERE id = 8").data[0]
        assert row['name'] == '中文'.encode('gbk').hex().upper()
        assert row['note'] == '备注'.encode('gbk').hex().upper()

        browsed = SqlExecutor(sqlite_adapter, gbk_charsets).execute("SELECT name, note FROM users WHERE id = 8")
        assert (browsed.rows[0]['name'], browsed.rows[0]['note']) == ('中文', '备注')
