"""
dbhelper - parameterized SQL helpers over SQLAlchemy

This package builds and runs INSERT, UPDATE, DELETE and SELECT statements
with named placeholders and returns selected rows as read-only records.

Components:
- database.query_builder: SQL text and parameter mapping generation
- database.connection: Database wrapper (execution, row mapping, transactions)
- database.engine_factory: Database creation from settings or configuration
- config_manager: YAML configuration loading with environment overrides
- security: Identifier validation and log sanitization
"""

__version__ = "1.0.0"

from .security import InvalidIdentifier, QueryInjectionError, SecurityError, validate_identifier
from .database import (
    ConnectionSettings,
    Database,
    DatabaseConnectionError,
    DatabaseError,
    DatabaseFactory,
    DriverError,
    QueryBuildError,
    Record,
    Statement,
    build_delete,
    build_insert,
    build_insert_multi,
    build_update,
)
from .config_manager import DatabaseConfigManager, load_database_config

__all__ = [
    'ConnectionSettings',
    'Database',
    'DatabaseConfigManager',
    'DatabaseConnectionError',
    'DatabaseError',
    'DatabaseFactory',
    'DriverError',
    'InvalidIdentifier',
    'QueryBuildError',
    'QueryInjectionError',
    'Record',
    'SecurityError',
    'Statement',
    'build_delete',
    'build_insert',
    'build_insert_multi',
    'build_update',
    'load_database_config',
    'validate_identifier',
]
