#!/usr/bin/env python3
"""
DM Admin - Programmatic Entry Point
The canonical way to use the admin core from Python

Also supports command-line usage:
    python dmadmin.py "SELECT * FROM users"
    python dmadmin.py "SELECT * FROM users" --schema app --page 2
    python dmadmin.py --table app.users
    python dmadmin.py --interactive
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from config.settings import AdminConfig, get_config
from core.charset import CharsetSettings
from core.console import ConsoleOutcome, SqlConsole
from core.database_manager import DatabaseManager
from core.editor import RowEditor
from core.errors import DMAdminError
from core.pager import PageRequest, PagedResult, SqlExecutor, TablePage
from core.results import QueryResultEnvelope, ResultType, preview_value

logger = logging.getLogger(__name__)

DMADMIN_VERSION = "1.0.0"


class DMAdmin:
    """
    Admin API: console runs, table browsing and cell edits over one backend

    Example:
        >>> from dmadmin import DMAdmin
        >>>
        >>> with DMAdmin() as admin:
        ...     outcome = admin.run("SELECT * FROM users", schema="app")
        ...     page = admin.browse("app", "users", page=2)
    """

    def __init__(self,
                 config: Optional[AdminConfig] = None,
                 manager: Optional[DatabaseManager] = None,
                 backend: Optional[str] = None):
        """
        Args:
            config: settings to use (default: loaded from DMADMIN_* variables)
            manager: prepared DatabaseManager (default: built from config)
            backend: backend name inside the manager (default: its default backend)
        """
        self.config = config or get_config()

        if manager is None:
            if self.config.database_config:
                manager = DatabaseManager(config_path=self.config.database_config)
            else:
                manager = DatabaseManager(config=self.config.backend_config())
        self.manager = manager
        self.adapter = manager.get_adapter(backend)

        self.charsets: CharsetSettings = self.config.charsets()
        self.executor = SqlExecutor(self.adapter, self.charsets)
        self.console = SqlConsole(self.executor, page_size=self.config.max_rows,
                                  auto_schema=self.config.auto_schema)
        self.editor = RowEditor(self.adapter, self.charsets)

    @property
    def default_schema(self) -> str:
        return self.config.default_schema or self.adapter.current_schema()

    def run(self, sql: str, schema: Optional[str] = None, page: int = 1) -> ConsoleOutcome:
        """Console run: schema rewrite, paging and status messages. Never raises for SQL errors."""
        return self.console.run(sql, self.default_schema if schema is None else schema, page)

    def execute(self, sql: str) -> QueryResultEnvelope:
        """Run SQL unpaged; raises QuerySyntaxError when the driver rejects it."""
        return self.executor.execute(sql)

    def execute_page(self, sql: str, page: int = 1, page_size: Optional[int] = None) -> PagedResult:
        request = PageRequest(page=page, page_size=page_size or self.config.max_rows)
        return self.executor.run_paged(sql, request)

    def browse(self, schema: str, table: str, page: int = 1) -> TablePage:
        return self.executor.browse_table(schema, table, PageRequest(page=page, page_size=self.config.max_rows))

    def update_cell(self, schema: str, table: str, key_value: Any, column: str, new_value: Any,
                    set_null: bool = False, set_empty: bool = False,
                    key_column: Optional[str] = None) -> int:
        """Update one cell, looking up the key column when it is not given."""
        key_column = key_column or self.editor.key_column_for(schema, table)
        return self.editor.update_cell(schema, table, key_column, key_value, column, new_value,
                                       set_null=set_null, set_empty=set_empty)

    def schemas(self) -> List[str]:
        return self.adapter.list_schemas()

    def tables(self, schema: Optional[str] = None) -> List[str]:
        return self.adapter.list_tables(schema or self.default_schema)

    def get_stats(self) -> Dict[str, Any]:
        """Get adapter statistics."""
        return self.adapter.get_statistics()

    def close(self):
        """Close every backend connection"""
        self.manager.close_all()

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()


# Convenience function for quick usage
def connect(backend: Optional[str] = None) -> DMAdmin:
    """
    Quick connection using the environment configuration

    Example:
        >>> import dmadmin
        >>> admin = dmadmin.connect()
        >>> outcome = admin.run("SELECT 1")
        >>> admin.close()
    """
    return DMAdmin(backend=backend)


def format_envelope(envelope: QueryResultEnvelope) -> List[str]:
    """Text table lines for a ROWS envelope; NULL and '' stay distinguishable."""
    if envelope.type != ResultType.ROWS:
        return []
    if not envelope.columns:
        return ["  (no columns)"]

    columns = envelope.columns
    cells = [[preview_value(row.get(col)) for col in columns] for row in envelope.rows]
    widths = [max([len(col)] + [len(line[i]) for line in cells]) for i, col in enumerate(columns)]

    header = "  " + " | ".join(col.ljust(widths[i]) for i, col in enumerate(columns))
    lines = [header, "  " + "-" * (len(header) - 2)]
    for line in cells:
        lines.append("  " + " | ".join(value.ljust(widths[i]) for i, value in enumerate(line)))
    if not envelope.rows:
        lines.append("  (no rows)")
    return lines


def print_outcome(outcome: ConsoleOutcome, as_json: bool = False):
    """Print a console outcome the way both the CLI and the shell show it."""
    if as_json:
        data = outcome.envelope.to_dict()
        data.update({
            'sql': outcome.sql,
            'messages': outcome.messages,
            'error': outcome.error,
            'page': outcome.page,
            'total_pages': outcome.total_pages,
            'total_rows': outcome.total_rows,
        })
        print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        return

    for message in outcome.messages:
        print(message)
    if outcome.error:
        print(f"Error: {outcome.error}")
        return
    for line in format_envelope(outcome.envelope):
        print(line)
    if outcome.envelope.type == ResultType.ROWS:
        if outcome.paged:
            print(f"Page {outcome.page}/{outcome.total_pages} ({outcome.total_rows} rows total)")
        else:
            print("Single page (row count unavailable)")


def print_table_page(table_page: TablePage, as_json: bool = False):
    if as_json:
        data = table_page.envelope.to_dict()
        data.update({
            'schema': table_page.schema,
            'table': table_page.table,
            'page': table_page.page,
            'total_pages': table_page.total_pages,
            'total_rows': table_page.total_rows,
            'primary_key': table_page.primary_key,
            'table_columns': table_page.columns,
        })
        print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        return

    print(f"{table_page.schema}.{table_page.table} - key: {table_page.primary_key or '(none)'}")
    for line in format_envelope(table_page.envelope):
        print(line)
    print(f"Page {table_page.page}/{table_page.total_pages} ({table_page.total_rows} rows total)")


def configure_logging(level: str, debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# CLI Interface
def main():
    """Command-line interface for DM Admin."""
    parser = argparse.ArgumentParser(
        description='DM Admin - run SQL and browse tables from the command line',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dmadmin "SELECT * FROM users"
  dmadmin "SELECT * FROM users" --schema app --page 2
  dmadmin --table app.users --json
  dmadmin -i  # Interactive mode
        """
    )

    parser.add_argument('sql', nargs='?', help='SQL to run')
    parser.add_argument('--schema', '-s', type=str, default=None, help='Default schema for unqualified tables')
    parser.add_argument('--page', '-p', type=int, default=1, help='Page to show (1-based)')
    parser.add_argument('--table', '-t', type=str, default=None, help='Browse a table (schema.table)')
    parser.add_argument('--backend', '-b', type=str, default=None, help='Backend name from the database config')
    parser.add_argument('--json', '-j', action='store_true', help='Output results as JSON')
    parser.add_argument('--interactive', '-i', action='store_true', help='Start the interactive shell')
    parser.add_argument('--stats', action='store_true', help='Show adapter statistics')
    parser.add_argument('--config', action='store_true', help='Show the effective configuration')
    parser.add_argument('--debug', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='store_true', help='Show version')

    args = parser.parse_args()

    if args.version:
        print(f"DM Admin {DMADMIN_VERSION}")
        return

    config = get_config()
    configure_logging(config.log_level, args.debug)

    if args.config:
        print(json.dumps(config.get_safe_dict(), indent=2))
        return

    if args.interactive:
        from shell.query_shell import AdminShell
        AdminShell(DMAdmin(config=config, backend=args.backend)).run()
        return

    try:
        admin = DMAdmin(config=config, backend=args.backend)
    except DMAdminError as e:
        print(f"Error initializing DM Admin: {e.message}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.stats:
            print(json.dumps(admin.get_stats(), indent=2, default=str))
            return

        if args.table:
            schema, _, table = args.table.rpartition('.')
            print_table_page(admin.browse(schema or admin.default_schema, table, args.page), args.json)
            return

        if not args.sql:
            parser.print_help()
            return

        outcome = admin.run(args.sql, schema=args.schema, page=args.page)
        print_outcome(outcome, args.json)
        if not outcome.ok:
            sys.exit(1)
    except DMAdminError as e:
        print(f"Error: {admin.charsets.normalize_error(e.message)}", file=sys.stderr)
        sys.exit(1)
    finally:
        admin.close()


if __name__ == "__main__":
    main()
