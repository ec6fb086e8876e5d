#!/usr/bin/env python3
"""
DM Admin Database Manager - Multi-Backend Connection Capability

This module defines the connection capability the admin core talks to and
a manager that builds one adapter per configured backend.

Supported backends:
- SQLite (built-in)
- PostgreSQL (psycopg2)
- MySQL (PyMySQL)

Adapters never raise for a rejected statement; they return a DatabaseResult
with ``success=False`` and the driver's message. Deciding whether that is a
degraded mode or an error is the caller's business.

Usage:
    manager = DatabaseManager()
    adapter = manager.get_adapter()
    result = adapter.execute_query("SELECT * FROM users")
"""

import json
import logging
import os
import re
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.charset import decode_for_connection, escaped_bytes, has_escaped_bytes
from core.errors import ConfigurationError
from core.identifiers import quote_exact, quote_identifier
from core.results import Row

# Configure logging
logger = logging.getLogger(__name__)


class BackendType(Enum):
    """Supported database backend types"""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


@dataclass
class DatabaseResult:
    """Unified database result object"""
    success: bool
    data: List[Row] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    rows_affected: int = 0
    execution_time: float = 0.0
    backend: str = ""
    sql_executed: str = ""
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'success': self.success,
            'data': [dict(row) for row in self.data],
            'columns': list(self.columns),
            'rows_affected': self.rows_affected,
            'execution_time': self.execution_time,
            'backend': self.backend,
            'sql_executed': self.sql_executed,
            'error_message': self.error_message,
            'metadata': self.metadata or {}
        }


class DatabaseAdapter:
    """
    Base class for database adapters.

    Subclasses open a DB-API connection in autocommit mode and set
    ``self._connection`` and ``driver_error`` (the driver's exception base
    class); statement execution and statistics are shared.
    """

    backend_name = "unknown"
    placeholder = "?"
    driver_error: type = Exception
    # Charset the driver encodes outgoing text with; empty means UTF-8 only
    connection_charset = ''

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.backend_type = config.get('type', self.backend_name)
        self._connection = None
        self._lock = threading.RLock()

        # Statistics
        self.stats = {
            'queries_executed': 0,
            'failed_queries': 0,
            'total_execution_time': 0.0,
            'start_time': time.time()
        }

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def _outbound(self, sql: str, params: Optional[Sequence[Any]]) -> Tuple[str, Tuple[Any, ...]]:
        """
        Turn prepared text back into what the driver should send.

        Text converted for a legacy data charset holds the bytes for the
        server as surrogate escapes. It is read in ``connection_charset`` so
        the driver encodes it back to the same bytes. Parameters that cannot
        be read that way are bound as the raw bytes.
        """
        if has_escaped_bytes(sql):
            sql = decode_for_connection(sql, self.connection_charset) or sql
        return sql, tuple(self._outbound_param(value) for value in params or ())

    def _outbound_param(self, value: Any) -> Any:
        if not has_escaped_bytes(value):
            return value
        text = decode_for_connection(value, self.connection_charset)
        return text if text is not None else escaped_bytes(value)

    def _run(self, sql: str, params: Optional[Sequence[Any]], fetch: bool) -> DatabaseResult:
        start_time = time.time()
        try:
            statement, bound = self._outbound(sql, params)
            with self._lock:
                cursor = self._connection.cursor()
                try:
                    if bound:
                        cursor.execute(statement, bound)
                    else:
                        cursor.execute(statement)

                    columns: List[str] = []
                    data: List[Row] = []
                    if cursor.description:
                        columns = [self._column_name(d[0]) for d in cursor.description]
                        if fetch:
                            data = [self._to_row(columns, row) for row in cursor.fetchall()]
                    rows_affected = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
                finally:
                    cursor.close()

            execution_time = time.time() - start_time
            self.stats['queries_executed'] += 1
            self.stats['total_execution_time'] += execution_time

            return DatabaseResult(
                success=True,
                data=data,
                columns=columns,
                rows_affected=rows_affected,
                execution_time=execution_time,
                backend=self.backend_name,
                sql_executed=sql
            )

        except (self.driver_error, UnicodeError) as e:
            # UnicodeError: text the driver cannot encode for the connection
            execution_time = time.time() - start_time
            self.stats['failed_queries'] += 1
            logger.debug(f"{self.backend_name} rejected statement: {e}")

            return DatabaseResult(
                success=False,
                execution_time=execution_time,
                backend=self.backend_name,
                sql_executed=sql,
                error_message=self._error_text(e)
            )

    @staticmethod
    def _column_name(name: Any) -> str:
        if isinstance(name, bytes):
            return name.decode('utf-8', 'surrogateescape')
        return str(name)

    @staticmethod
    def _to_row(columns: List[str], row: Any) -> Row:
        if isinstance(row, dict):
            return Row(row)
        return Row(zip(columns, row))

    @staticmethod
    def _error_text(error: Exception) -> str:
        return str(error).strip()

    def execute_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> DatabaseResult:
        """Run a statement that returns rows and fetch all of them."""
        return self._run(sql, params, fetch=True)

    def execute_statement(self, sql: str, params: Optional[Sequence[Any]] = None) -> DatabaseResult:
        """Run a statement for its side effect; ``rows_affected`` is the result."""
        return self._run(sql, params, fetch=False)

    def fetch_value(self, sql: str, params: Optional[Sequence[Any]] = None) -> DatabaseResult:
        """Run a query and keep only the first column of the first row in ``metadata['value']``."""
        result = self.execute_query(sql, params)
        value = None
        if result.success and result.data:
            value = next(iter(result.data[0].values()), None)
        result.metadata = {'value': value}
        return result

    # ------------------------------------------------------------------
    # Identifier conventions
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        return quote_identifier(name)

    def table_reference(self, schema: str, table: str) -> str:
        """Fully qualified table name for generated SQL (upper-cased, quoted)."""
        return f"{quote_exact(schema.upper())}.{quote_exact(table.upper())}"

    # ------------------------------------------------------------------
    # Catalog - overridden per backend
    # ------------------------------------------------------------------

    def _catalog_rows(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[List[Any]]:
        """Positional catalog rows; an empty list when the catalog query fails."""
        result = self.execute_query(sql, params)
        if not result.success:
            logger.debug(f"Catalog query failed on {self.backend_name}: {result.error_message}")
            return []
        return [list(row.values()) for row in result.data]

    def _catalog_values(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Any]:
        return [row[0] for row in self._catalog_rows(sql, params) if row]

    @staticmethod
    def column_info(name: Any, data_type: Any, length: Any = None, nullable: bool = True) -> Dict[str, Any]:
        return {
            'name': name,
            'type': data_type,
            'length': length,
            'nullable': bool(nullable),
        }

    def current_schema(self) -> str:
        return ''

    def list_schemas(self) -> List[str]:
        current = self.current_schema()
        return [current] if current else []

    def list_tables(self, schema: str) -> List[str]:
        return []

    def table_columns(self, schema: str, table: str) -> List[Dict[str, Any]]:
        return []

    def primary_key(self, schema: str, table: str) -> Optional[str]:
        return None

    # ------------------------------------------------------------------

    def close(self):
        """Close the connection"""
        if self._connection is not None:
            try:
                self._connection.close()
            except self.driver_error as e:
                logger.warning(f"Error closing {self.backend_name} connection: {e}")
            self._connection = None
            logger.info(f"{self.backend_name} adapter closed")

    def get_statistics(self) -> Dict[str, Any]:
        """Get adapter statistics"""
        uptime = time.time() - self.stats['start_time']
        total_queries = self.stats['queries_executed'] + self.stats['failed_queries']

        return {
            'backend': self.backend_name,
            'uptime_seconds': uptime,
            'queries_executed': self.stats['queries_executed'],
            'failed_queries': self.stats['failed_queries'],
            'success_rate': self.stats['queries_executed'] / max(total_queries, 1),
            'avg_execution_time': self.stats['total_execution_time'] / max(self.stats['queries_executed'], 1),
            'total_execution_time': self.stats['total_execution_time']
        }


class DatabaseManager:
    """
    Builds adapters from a named-backend configuration

    Adapters are created on first use and cached by backend name until
    close_all(). Backend info never shows credentials.
    """

    def __init__(self, config_path: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        if config:
            self.config = self._resolve_environment_variables(config)
        else:
            self.config = self._load_config(config_path)
        self.adapters: Dict[str, DatabaseAdapter] = {}
        self.default_backend = self.config.get('default_backend', 'sqlite')
        self._lock = threading.RLock()

        logger.info(f"{len(self.get_available_backends())} backend(s) configured, default '{self.default_backend}'")

    def _load_config(self, config_path: Optional[str]) -> Dict[str, Any]:
        """Read the JSON backend file; a missing or unreadable file means the built-in default."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), '..', 'config', 'database_config.json')

        if not os.path.exists(config_path):
            logger.warning(f"No backend file at {config_path}; using in-memory SQLite")
            return self._get_default_config()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Backend file {config_path} unreadable ({e}); using in-memory SQLite")
            return self._get_default_config()

        return self._resolve_environment_variables(config)

    def _get_default_config(self) -> Dict[str, Any]:
        return {'default_backend': 'sqlite', 'backends': {'sqlite': {'type': 'sqlite', 'path': ':memory:'}}}

    def _resolve_environment_variables(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Resolve ${VAR} and ${VAR:default} in configuration values"""
        pattern = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ''
            return os.environ.get(var_name, default_value)

        def resolve_value(value):
            if isinstance(value, str):
                return pattern.sub(replace_env_var, value)
            elif isinstance(value, dict):
                return {k: resolve_value(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [resolve_value(item) for item in value]
            else:
                return value

        return resolve_value(config)

    def _initialize_backend(self, backend_name: str):
        if backend_name in self.adapters:
            return

        backend_config = self.config.get('backends', {}).get(backend_name)
        if not backend_config:
            raise ConfigurationError(f"Backend '{backend_name}' is not configured",
                                     {'available': self.get_available_backends()})

        backend_type = backend_config.get('type')

        with self._lock:
            try:
                if backend_type == BackendType.SQLITE.value:
                    from extensions.plugins.sqlite_adapter import SQLiteAdapter
                    adapter_class = SQLiteAdapter
                elif backend_type == BackendType.POSTGRESQL.value:
                    from extensions.plugins.postgresql_adapter import PostgreSQLAdapter
                    adapter_class = PostgreSQLAdapter
                elif backend_type == BackendType.MYSQL.value:
                    from extensions.plugins.mysql_adapter import MySQLAdapter
                    adapter_class = MySQLAdapter
                else:
                    raise ConfigurationError(f"Unsupported backend type: {backend_type}")
            except ImportError as e:
                logger.error(f"Driver for backend {backend_name} ({backend_type}) not available: {e}")
                raise ConfigurationError(
                    f"Driver for backend type '{backend_type}' is not installed",
                    {'backend': backend_name}
                ) from e

            self.adapters[backend_name] = adapter_class(backend_config)
            logger.info(f"Connected backend '{backend_name}' ({backend_type})")

    def get_adapter(self, backend: Optional[str] = None) -> DatabaseAdapter:
        """Return the adapter for ``backend`` (default backend if omitted), creating it on first use."""
        backend_name = backend or self.default_backend
        if backend_name not in self.adapters:
            self._initialize_backend(backend_name)
        return self.adapters[backend_name]

    def get_available_backends(self) -> List[str]:
        return list(self.config.get('backends', {}).keys())

    # Config keys never shown by get_backend_info
    _SECRET_KEYS = {'password', 'passwd', 'pwd', 'secret', 'token', 'api_key',
                    'apikey', 'auth', 'credential', 'credentials', 'key', 'private_key'}

    def get_backend_info(self, backend: Optional[str] = None) -> Dict[str, Any]:
        """Name, type and config of one backend, with credentials masked."""
        backend_name = backend or self.default_backend
        backend_config = self.config.get('backends', {}).get(backend_name, {})

        safe_config = {}
        for k, v in backend_config.items():
            if k.lower() in self._SECRET_KEYS or any(s in k.lower() for s in ('secret', 'credential', 'token', 'password')):
                safe_config[k] = '***REDACTED***'
            else:
                safe_config[k] = v

        info = {
            'name': backend_name,
            'type': backend_config.get('type', 'unknown'),
            'initialized': backend_name in self.adapters,
            'config': safe_config
        }

        if backend_name in self.adapters:
            info['statistics'] = self.adapters[backend_name].get_statistics()

        return info

    def get_statistics(self) -> Dict[str, Any]:
        """Per-backend adapter statistics"""
        stats = {
            'default_backend': self.default_backend,
            'available_backends': self.get_available_backends(),
            'initialized_backends': list(self.adapters.keys()),
            'backend_stats': {}
        }

        for backend_name, adapter in self.adapters.items():
            stats['backend_stats'][backend_name] = adapter.get_statistics()

        return stats

    def close_all(self):
        """Close every adapter this manager opened."""

        with self._lock:
            for backend_name, adapter in self.adapters.items():
                adapter.close()
                logger.debug(f"Backend '{backend_name}' closed")

            self.adapters.clear()
