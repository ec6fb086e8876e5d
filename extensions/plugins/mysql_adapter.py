#!/usr/bin/env python3
"""
DM Admin MySQL Adapter

MySQL/MariaDB backend for the admin core, built on PyMySQL. MySQL calls a
schema a database; identifiers in generated SQL are backtick quoted.

Usage:
    adapter = MySQLAdapter({
        'type': 'mysql',
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

import pymysql
from pymysql import MySQLError
from pymysql.charset import charset_by_name

from core.database_manager import DatabaseAdapter
from core.errors import BackendConnectionError

# Configure logging
logger = logging.getLogger(__name__)

# Charset labels that MySQL spells differently
MYSQL_CHARSETS = {
    'utf8': 'utf8mb4',
    'iso88591': 'latin1',
    'cp936': 'gbk',
}


def mysql_charset(label: Optional[str]) -> str:
    """MySQL charset name for a charset label such as 'UTF-8' or 'GBK'."""
    key = re.sub(r'[^a-z0-9]', '', (label or '').lower())
    return MYSQL_CHARSETS.get(key, key)


def python_encoding(charset: str) -> str:
    """Python codec PyMySQL encodes with for a MySQL charset; empty if unknown."""
    try:
        info = charset_by_name(charset)
    except KeyError:
        return ''
    return info.encoding if info is not None else ''


def quote_backtick(name: str) -> str:
    return '`' + name.replace('`', '``') + '`'


@dataclass
class ConnectionConfig:
    """MySQL connection configuration"""
    host: str = "localhost"
    port: int = 3306
    database: str = ""
    user: str = "root"
    password: str = ""
    charset: str = "utf8mb4"
    connect_timeout: int = 10

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ConnectionConfig':
        return cls(
            host=config.get('host', cls.host),
            port=int(config.get('port', cls.port)),
            database=config.get('database', cls.database),
            user=config.get('user', cls.user),
            password=config.get('password', ''),
            charset=config.get('charset') or mysql_charset(config.get('client_encoding')) or cls.charset,
            connect_timeout=int(config.get('connect_timeout', cls.connect_timeout)),
        )

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to PyMySQL connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'charset': self.charset,
            'connect_timeout': self.connect_timeout,
            'autocommit': True,
        }
        if self.database:
            params['database'] = self.database
        return params


class MySQLAdapter(DatabaseAdapter):
    """MySQL adapter (PyMySQL, autocommit)."""

    backend_name = "mysql"
    placeholder = "%s"
    driver_error = MySQLError

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.connection_config = ConnectionConfig.from_dict(config)
        self.connection_charset = python_encoding(self.connection_config.charset)
        self._connect()
        logger.info(
            f"MySQL adapter initialized for "
            f"{self.connection_config.host}:{self.connection_config.port}/{self.connection_config.database}"
        )

    def _connect(self) -> None:
        try:
            self._connection = pymysql.connect(**self.connection_config.to_connection_params())
        except MySQLError as e:
            logger.error(f"Failed to connect to MySQL: {e}")
            raise BackendConnectionError(
                f"Cannot connect to MySQL at {self.connection_config.host}:{self.connection_config.port}",
                {'driver_message': str(e)}
            ) from e

    @staticmethod
    def _error_text(error: Exception) -> str:
        # PyMySQL errors carry (errno, message)
        if len(error.args) >= 2:
            return str(error.args[1]).strip()
        return str(error).strip()

    def quote_identifier(self, name: str) -> str:
        trimmed = (name or '').strip()
        if len(trimmed) >= 2 and trimmed[0] == '`' and trimmed[-1] == '`':
            return trimmed
        return quote_backtick(trimmed)

    def table_reference(self, schema: str, table: str) -> str:
        return f"{quote_backtick(schema)}.{quote_backtick(table)}"

    def current_schema(self) -> str:
        values = self._catalog_values("SELECT DATABASE()")
        return values[0] if values and values[0] else ''

    def list_schemas(self) -> List[str]:
        return self._catalog_values(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE schema_name NOT IN ('information_schema', 'mysql', 'performance_schema', 'sys') "
            "ORDER BY schema_name"
        )

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
            "SELECT column_name FROM information_schema.key_column_usage "
            "WHERE table_schema = %s AND table_name = %s AND constraint_name = 'PRIMARY' "
            "ORDER BY ordinal_position",
            (schema, table)
        )
        return values[0] if values else None
