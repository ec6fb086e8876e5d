#!/usr/bin/env python3
"""
DM Admin Interactive Query Shell

A command-line shell over the admin core: type SQL to run it through the
console (schema rewrite, paging, charset repair), or a dot command to
browse schemas and tables. The shell owns the session state the console
leaves out: the current schema, the last SQL text with the time it ran,
and the page being viewed.
"""

import argparse
import json
import os
import sys
from datetime import datetime
from typing import List, Optional, Tuple

try:
    import readline
except ImportError:  # readline is missing on Windows
    readline = None

from core.errors import DMAdminError

HISTORY_FILE = os.path.expanduser("~/.dmadmin_history")


class AdminShell:
    """Interactive DM Admin command shell"""

    def __init__(self, admin):
        self.admin = admin
        self.schema: str = admin.default_schema
        self.last_sql: Optional[str] = None
        self.last_run_at: Optional[datetime] = None
        self.page = 1
        self.history: List[dict] = []
        self.running = True

        self.commands = {
            'help': self.show_help,
            'quit': self.quit_shell,
            'exit': self.quit_shell,
            'schemas': self.show_schemas,
            'tables': self.show_tables,
            'use': self.use_schema,
            'table': self.show_table,
            'page': self.goto_page,
            'next': self.next_page,
            'prev': self.prev_page,
            'history': self.show_history,
            'charset': self.show_charset,
        }

        self.setup_readline()

    def setup_readline(self):
        """Configure readline for command history and completion"""
        if readline is None:
            return
        readline.set_completer(self.completer)
        readline.parse_and_bind("tab: complete")
        if os.path.exists(HISTORY_FILE):
            try:
                readline.read_history_file(HISTORY_FILE)
            except OSError:
                pass

    def completer(self, text: str, state: int) -> Optional[str]:
        """Auto-completion for dot commands"""
        options = []
        if text.startswith('.'):
            options = [f".{cmd}" for cmd in self.commands if cmd.startswith(text[1:])]
        try:
            return options[state]
        except IndexError:
            return None

    def display_prompt(self) -> str:
        return f"dmadmin [{self.schema or '-'}]> "

    def parse_command(self, input_line: str) -> Tuple[str, str, str]:
        """Parse input line for commands and SQL"""
        input_line = input_line.strip()

        if input_line.startswith('.'):
            parts = input_line[1:].split(' ', 1)
            command = parts[0].lower()
            args = parts[1].strip() if len(parts) > 1 else ""
            return ('command', command, args)
        elif input_line == "":
            return ('empty', "", "")
        else:
            return ('sql', input_line, "")

    def execute_sql(self, sql: str, page: int = 1):
        """Run SQL through the console and remember it for paging"""
        from dmadmin import print_outcome

        outcome = self.admin.run(sql, schema=self.schema, page=page)
        self.last_sql = sql
        self.last_run_at = datetime.now()
        self.page = outcome.page
        print_outcome(outcome)

        self.history.append({
            'timestamp': self.last_run_at.isoformat(),
            'sql': outcome.sql,
            'page': outcome.page,
            'ok': outcome.ok,
        })

    def show_help(self, args: str = ""):
        """Display help information"""
        print("""
DM Admin Shell - Help

Type any SQL statement to run it. Query results are paged.

COMMANDS:
  .schemas            - List schemas
  .tables [schema]    - List tables of the current (or given) schema
  .use <schema>       - Set the default schema for unqualified tables
  .table <name> [n]   - Browse a table, page n
  .page <n>           - Show page n of the last query
  .next / .prev       - Move through the pages of the last query
  .history            - Show statements run in this session
  .charset            - Show charset settings
  .quit               - Exit
""")

    def show_schemas(self, args: str = ""):
        for schema in self.admin.schemas():
            marker = '*' if schema == self.schema else ' '
            print(f" {marker} {schema}")

    def show_tables(self, args: str = ""):
        schema = args or self.schema
        tables = self.admin.tables(schema)
        if not tables:
            print(f"No tables in {schema}")
        for table in tables:
            print(f"  {table}")

    def use_schema(self, args: str = ""):
        if not args:
            print("Usage: .use <schema>")
            return
        self.schema = args
        print(f"Default schema: {self.schema}")

    def show_table(self, args: str = ""):
        from dmadmin import print_table_page

        parts = args.split()
        if not parts:
            print("Usage: .table <name> [page]")
            return
        schema, _, table = parts[0].rpartition('.')
        page = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 1
        print_table_page(self.admin.browse(schema or self.schema, table, page))

    def goto_page(self, args: str = ""):
        if not self.last_sql:
            print("No SQL to page through.")
            return
        if not args.isdigit():
            print("Usage: .page <n>")
            return
        self.execute_sql(self.last_sql, int(args))

    def next_page(self, args: str = ""):
        self.goto_page(str(self.page + 1))

    def prev_page(self, args: str = ""):
        self.goto_page(str(max(1, self.page - 1)))

    def show_history(self, args: str = ""):
        if not self.history:
            print("No statements run yet.")
            return
        for i, entry in enumerate(self.history, 1):
            status = "OK" if entry['ok'] else "ERROR"
            print(f"  {i:3d}. [{entry['timestamp']}] {status} {entry['sql']}")
        if self.last_run_at:
            print(f"Last run: {self.last_run_at.isoformat(sep=' ', timespec='seconds')}")

    def show_charset(self, args: str = ""):
        charsets = self.admin.charsets
        print(f"  data charset:   {charsets.data_charset or '(same as output)'}")
        print(f"  output charset: {charsets.output_charset}")
        print(f"  error charset:  {charsets.error_charset or '(data charset)'}")

    def quit_shell(self, args: str = ""):
        """Exit the shell"""
        if readline is not None:
            try:
                readline.write_history_file(HISTORY_FILE)
            except OSError:
                pass
        self.running = False
        print("Goodbye!")

    def handle_line(self, line: str):
        cmd_type, content, args = self.parse_command(line)
        if cmd_type == 'empty':
            return
        if cmd_type == 'command':
            if content in self.commands:
                self.commands[content](args)
            else:
                print(f"Unknown command: .{content}")
                print("Type .help for available commands")
            return
        self.execute_sql(content)

    def run(self):
        """Main shell loop"""
        print(f"DM Admin shell on {self.admin.adapter.backend_name}. Type .help for commands.")

        try:
            while self.running:
                try:
                    line = input(self.display_prompt())
                except EOFError:
                    print("\nGoodbye!")
                    break
                except KeyboardInterrupt:
                    print("\nUse .quit to exit")
                    continue

                try:
                    self.handle_line(line)
                except DMAdminError as e:
                    print(f"Error: {self.admin.charsets.normalize_error(e.message)}")
        finally:
            self.admin.close()


def main():
    """Entry point for the DM Admin shell"""
    from dmadmin import DMAdmin, configure_logging
    from config.settings import get_config

    parser = argparse.ArgumentParser(description="DM Admin interactive shell")
    parser.add_argument("--backend", "-b", type=str, default=None, help="Backend name from the database config")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")
    args = parser.parse_args()

    config = get_config()
    configure_logging(config.log_level, args.debug)

    if args.show_config:
        print(json.dumps(config.get_safe_dict(), indent=2))
        return

    try:
        admin = DMAdmin(config=config, backend=args.backend)
    except DMAdminError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    AdminShell(admin).run()


if __name__ == "__main__":
    main()
