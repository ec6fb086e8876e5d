#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DM Admin Core Package Initialization
Exports all main components for clean imports
"""

from .errors import (
    ErrorCode,
    DMAdminError,
    QuerySyntaxError,
    BackendConnectionError,
    ConfigurationError,
    NoPrimaryKeyError,
)
from .charset import (
    CharsetSettings,
    score_text,
    detect_encoding,
    convert_string,
    convert_with_candidates,
    best_effort_convert,
    normalize_rows,
    prepare_outbound,
    normalize_error,
)
from .identifiers import quote_identifier, apply_default_schema
from .statements import StatementKind, classify, is_query
from .results import Row, ValueKind, ResultType, QueryResultEnvelope
from .database_manager import DatabaseAdapter, DatabaseManager, DatabaseResult
from .pager import PageRequest, CountOutcome, PagedResult, TablePage, SqlExecutor, total_pages
from .console import SqlConsole, ConsoleOutcome
from .editor import RowEditor

__all__ = [
    # Errors
    'ErrorCode',
    'DMAdminError',
    'QuerySyntaxError',
    'BackendConnectionError',
    'ConfigurationError',
    'NoPrimaryKeyError',

    # Charset boundary
    'CharsetSettings',
    'score_text',
    'detect_encoding',
    'convert_string',
    'convert_with_candidates',
    'best_effort_convert',
    'normalize_rows',
    'prepare_outbound',
    'normalize_error',

    # SQL rewriting and classification
    'quote_identifier',
    'apply_default_schema',
    'StatementKind',
    'classify',
    'is_query',

    # Results
    'Row',
    'ValueKind',
    'ResultType',
    'QueryResultEnvelope',

    # Execution
    'DatabaseAdapter',
    'DatabaseManager',
    'DatabaseResult',
    'PageRequest',
    'CountOutcome',
    'PagedResult',
    'TablePage',
    'SqlExecutor',
    'total_pages',
    'SqlConsole',
    'ConsoleOutcome',
    'RowEditor',
]

# Version info
__version__ = '1.0.0'
__description__ = 'DM Admin - charset repair, schema rewriting and paging for a database admin tool'
