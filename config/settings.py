#!/usr/bin/env python3
"""
Configuration Manager for DM Admin
Handles environment variables, the .env file and secrets centrally

Every setting comes from a DMADMIN_* environment variable. A .env file in
DMADMIN_HOME (the project root by default) is read first; variables that
are already exported win over it. The core never imports this module:
callers turn the configuration into explicit values (see ``charsets()``)
and pass them in.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from core.charset import CharsetSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = 'DMADMIN_'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(ENV_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {ENV_PREFIX}{name}={value!r}; using {default}")
        return default


@dataclass
class AdminConfig:
    """DM Admin configuration settings"""

    base_dir: Path = None

    # Connection settings
    backend: str = "sqlite"
    host: str = "127.0.0.1"
    port: int = 5236
    database: str = "DM8"
    user: str = "SYSDBA"
    password: str = None
    database_config: Optional[str] = None
    sqlite_path: str = ":memory:"

    # Charset settings
    client_charset: str = "UTF-8"
    data_charset: str = ""
    error_charset: str = ""
    output_charset: str = "UTF-8"

    # Console settings
    default_schema: str = ""
    auto_schema: bool = True
    max_rows: int = 200

    # Runtime settings
    log_level: str = "INFO"
    profile: str = "dev"  # dev, demo, prod

    def __post_init__(self):
        """Initialize paths and load environment variables"""
        self.profile = _env('PROFILE', 'dev')

        if self.base_dir is None:
            default_root = Path(__file__).parent.parent
            self.base_dir = Path(_env('HOME', str(default_root)))
        else:
            self.base_dir = Path(self.base_dir)

        # Secrets only ever come from the environment
        self.password = _env('PASSWORD')

        self.backend = _env('BACKEND', self.backend)
        self.host = _env('HOST', self.host)
        self.port = _env_int('PORT', self.port)
        self.database = _env('DATABASE', self.database)
        self.user = _env('USER', self.user)
        self.database_config = _env('DATABASE_CONFIG', self.database_config)
        self.sqlite_path = _env('SQLITE_PATH', self.sqlite_path)

        self.client_charset = _env('CLIENT_CHARSET', self.client_charset)
        self.data_charset = _env('DATA_CHARSET', self.data_charset)
        self.error_charset = _env('ERROR_CHARSET', self.error_charset)
        self.output_charset = _env('OUTPUT_CHARSET', self.output_charset)

        self.default_schema = _env('DEFAULT_SCHEMA', self.default_schema)
        self.auto_schema = _env_bool('AUTO_SCHEMA', self.auto_schema)
        self.max_rows = max(1, _env_int('MAX_ROWS', self.max_rows))

        self.log_level = _env('LOG_LEVEL', self.log_level).upper()

        # Apply profile defaults
        if self.profile == 'prod':
            self.log_level = 'WARNING'

    def charsets(self) -> CharsetSettings:
        """Charset labels to thread into the core."""
        return CharsetSettings(
            data_charset=self.data_charset,
            output_charset=self.output_charset,
            error_charset=self.error_charset,
        )

    def backend_config(self) -> Dict[str, Any]:
        """DatabaseManager configuration for the selected backend"""
        if self.backend == 'sqlite':
            backend = {'type': 'sqlite', 'path': self.sqlite_path}
        else:
            backend = {
                'type': self.backend,
                'host': self.host,
                'port': self.port,
                'database': self.database,
                'user': self.user,
                'password': self.password or '',
            }
            if self.data_charset:
                # The driver sends and returns text in the data charset
                backend['client_encoding'] = self.data_charset
        return {'default_backend': self.backend, 'backends': {self.backend: backend}}

    def get_safe_dict(self) -> Dict[str, Any]:
        """Get configuration as dict without sensitive values"""
        return {
            'base_dir': str(self.base_dir),
            'backend': self.backend,
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'sqlite_path': self.sqlite_path,
            'user': self.user,
            'password_configured': bool(self.password),
            'client_charset': self.client_charset,
            'data_charset': self.data_charset,
            'error_charset': self.error_charset,
            'output_charset': self.output_charset,
            'default_schema': self.default_schema,
            'auto_schema': self.auto_schema,
            'max_rows': self.max_rows,
            'log_level': self.log_level,
            'profile': self.profile,
        }


class ConfigManager:
    """Singleton configuration manager"""

    _instance: Optional['ConfigManager'] = None
    _config: Optional[AdminConfig] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._config is None:
            self.load_config()

    def load_config(self):
        """Load configuration from the .env file and environment.

        Priority (highest to lowest):
        1. Environment variables (DMADMIN_*)
        2. .env file (loaded into os.environ before config creation)
        3. AdminConfig dataclass defaults
        """
        default_base = Path(__file__).parent.parent
        base_dir = Path(os.environ.get(ENV_PREFIX + 'HOME', default_base))
        env_file = base_dir / '.env'
        if env_file.exists():
            self._load_env_file(env_file)

        self._config = AdminConfig()

    def _load_env_file(self, env_file: Path):
        """Load environment variables from .env file.

        Only sets values for keys not already in os.environ.
        """
        try:
            with open(env_file, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        key = key.strip()
                        if key not in os.environ:
                            os.environ[key] = value.strip().strip('"').strip("'")
        except OSError as e:
            logger.warning(f"Could not load .env file {env_file}: {e}")

    @property
    def config(self) -> AdminConfig:
        """Get the current configuration"""
        if self._config is None:
            self.load_config()
        return self._config

    @classmethod
    def reset(cls):
        """Forget the loaded configuration (tests, reloads)."""
        cls._config = None
        cls._instance = None


def get_config() -> AdminConfig:
    """Get the global configuration instance"""
    return ConfigManager().config


if __name__ == "__main__":
    config = get_config()
    print("DM Admin Configuration Status:")
    print("-" * 40)
    for key, value in config.get_safe_dict().items():
        print(f"{key}: {value}")
