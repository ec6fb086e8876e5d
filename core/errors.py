#!/usr/bin/env python3
"""
DM Admin Error Hierarchy
Canonical exception classes for the admin core.

Charset conversion and encoding detection never raise: a failed conversion
returns the original text and an unknown encoding is the empty label. A
COUNT(*) that the dialect rejects is reported through CountOutcome, not an
exception. Only failures the caller has to act on live here.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    SYNTAX_ERROR = "SYNTAX_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"


class DMAdminError(Exception):
    """Base class for all DM Admin exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class QuerySyntaxError(DMAdminError):
    """Raised when the driver rejects a statement.

    ``driver_message`` is the driver's text exactly as received; run it
    through ``normalize_error`` before showing it to a person.
    """
    def __init__(self, driver_message: str, sql: Optional[str] = None, details: dict = None):
        details = dict(details or {})
        if sql is not None:
            details['sql'] = sql
        super().__init__(driver_message or 'SQL execution failed.', ErrorCode.SYNTAX_ERROR, details)
        self.driver_message = driver_message or ''


class BackendConnectionError(DMAdminError):
    """Raised when an adapter cannot open its connection"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONNECTION_ERROR, details)


class ConfigurationError(DMAdminError):
    """Raised for unknown or incomplete backend configuration"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class NoPrimaryKeyError(DMAdminError):
    """Raised when a cell update targets a table without a key column"""
    def __init__(self, schema: str, table: str):
        super().__init__(
            f"Table {schema}.{table} has no primary key; cells are not editable",
            ErrorCode.PRECONDITION_FAILED,
            {'schema': schema, 'table': table},
        )
