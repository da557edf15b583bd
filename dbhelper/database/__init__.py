"""
Query building, execution and row mapping on top of SQLAlchemy Core
"""

from .config import ConnectionSettings, DatabaseConfig
from .connection import Database, ErrorInfo, StatementResult
from .engine_factory import DatabaseFactory
from .exceptions import DatabaseConnectionError, DatabaseError, DriverError, QueryBuildError
from .logging_config import setup_db_logging
from .query_builder import (
    Statement,
    build_delete,
    build_insert,
    build_insert_multi,
    build_update,
    find_placeholders,
)
from .records import FieldSet, Record, as_field_set

__all__ = [
    'ConnectionSettings',
    'Database',
    'DatabaseConfig',
    'DatabaseConnectionError',
    'DatabaseError',
    'DatabaseFactory',
    'DriverError',
    'ErrorInfo',
    'FieldSet',
    'QueryBuildError',
    'Record',
    'Statement',
    'StatementResult',
    'as_field_set',
    'build_delete',
    'build_insert',
    'build_insert_multi',
    'build_update',
    'find_placeholders',
    'setup_db_logging',
]
