#!/usr/bin/env python3
"""
DM Admin PostgreSQL Adapter

PostgreSQL backend for the admin core, built on psycopg2. One autocommit
connection per adapter, so a rejected statement never leaves the session
in an aborted transaction and the pager's dialect fallback can run right
after a failure.

PostgreSQL keeps catalog names in their exact (usually lower) case, so
generated SQL quotes identifiers without folding them.

Usage:
    adapter = PostgreSQLAdapter({
        'type': 'postgresql',
        'host': 'localhost',
        'database': 'admin_db',
        'user': 'admin',
        'password': '...'
    })
    result = adapter.execute_query("SELECT * FROM users")
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import psycopg2
import psycopg2.extensions

from core.database_manager import DatabaseAdapter
from core.errors import BackendConnectionError
from core.identifiers import quote_exact

# Configure logging
logger = logging.getLogger(__name__)


def python_encoding(client_encoding: Optional[str]) -> str:
    """Python codec psycopg2 uses for a client encoding name; UTF-8 when unset."""
    if not client_encoding:
        return 'UTF-8'
    key = re.sub(r'[^A-Za-z0-9]', '', client_encoding).upper()
    return psycopg2.extensions.encodings.get(key, client_encoding)


@dataclass
class ConnectionConfig:
    """PostgreSQL connection configuration"""
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""
    connect_timeout: int = 10
    sslmode: Optional[str] = None
    client_encoding: Optional[str] = None
    application_name: str = "dmadmin"

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ConnectionConfig':
        return cls(
            host=config.get('host', cls.host),
            port=int(config.get('port', cls.port)),
            database=config.get('database', cls.database),
            user=config.get('user', cls.user),
            password=config.get('password', ''),
            connect_timeout=int(config.get('connect_timeout', cls.connect_timeout)),
            sslmode=config.get('sslmode') or config.get('ssl_mode'),
            client_encoding=config.get('client_encoding'),
            application_name=config.get('application_name', cls.application_name),
        )

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to psycopg2 connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'dbname': self.database,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'application_name': self.application_name,
        }
        if self.sslmode:
            params['sslmode'] = self.sslmode
        if self.client_encoding:
            params['client_encoding'] = self.client_encoding
        return params


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter (psycopg2, autocommit)."""

    backend_name = "postgresql"
    placeholder = "%s"
    driver_error = psycopg2.Error

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.connection_config = ConnectionConfig.from_dict(config)
        self.connection_charset = python_encoding(self.connection_config.client_encoding)
        self._connect()
        logger.info(
            f"PostgreSQL adapter initialized for "
            f"{self.connection_config.host}:{self.connection_config.port}/{self.connection_config.database}"
        )

    def _connect(self) -> None:
        try:
            self._connection = psycopg2.connect(**self.connection_config.to_connection_params())
            self._connection.autocommit = True
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise BackendConnectionError(
                f"Cannot connect to PostgreSQL at {self.connection_config.host}:{self.connection_config.port}",
                {'driver_message': str(e).strip()}
            ) from e

    @staticmethod
    def _error_text(error: Exception) -> str:
        # pgerror carries the server text without psycopg2's context lines
        return (getattr(error, 'pgerror', None) or str(error)).strip()

    def quote_identifier(self, name: str) -> str:
        trimmed = (name or '').strip()
        if len(trimmed) >= 2 and trimmed[0] == '"' and trimmed[-1] == '"':
            return trimmed
        return quote_exact(trimmed)

    def table_reference(self, schema: str, table: str) -> str:
        return f"{quote_exact(schema)}.{quote_exact(table)}"

    def current_schema(self) -> str:
        values = self._catalog_values("SELECT current_schema()")
        return values[0] if values and values[0] else 'public'

    def list_schemas(self) -> List[str]:
        schemas = self._catalog_values(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast') "
            "ORDER BY schema_name"
        )
        return schemas or [self.current_schema()]

    def list_tables(self, schema: str) -> List[str]:
        return self._catalog_values(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' ORDER BY table_name",
            (schema,)
        )

    def table_columns(self, schema: str, table: str) -> List[Dict[str, Any]]:
        rows = self._catalog_rows(
            "SELECT column_name, data_type, character_maximum_length, is_nullable "
            "FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s ORDER BY ordinal_position",
            (schema, table)
        )
        return [self.column_info(row[0], row[1], row[2], row[3] == 'YES') for row in rows]

    def primary_key(self, schema: str, table: str) -> Optional[str]:
        values = self._catalog_values(
            "SELECT kcu.column_name "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "  ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema "
            "WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = %s AND tc.table_name = %s "
            "ORDER BY kcu.ordinal_position",
            (schema, table)
        )
        return values[0] if values else None
