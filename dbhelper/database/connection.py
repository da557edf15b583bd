"""
Database wrapper over a single SQLAlchemy connection.

``Database`` owns one connection for its lifetime, executes parameterized
statements through ``text()``, maps result rows to ``Record`` objects and
forwards transaction control to the driver. Statements run outside an
explicit transaction are committed as soon as they complete.

Driver errors (``sqlalchemy.exc.DBAPIError``) are never translated; they are
logged, remembered for ``get_last_error()`` and re-raised unchanged.
"""

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from typing import List, Dict, Any, Mapping, NamedTuple, Optional, Sequence
import pandas as pd
import logging
import time

from ..security import quote_identifier
from .config import ConnectionSettings, DatabaseConfig
from .exceptions import DatabaseConnectionError, DatabaseError
from .logging_config import DB_LOGGER_NAME, DatabaseLoggerAdapter
from .query_builder import (
    build_delete,
    build_insert,
    build_insert_multi,
    build_update,
    quote_char_for,
)
from .records import Record


class ErrorInfo(NamedTuple):
    """Details of the last driver error: SQLSTATE, driver code, message."""
    sqlstate: str
    code: Optional[int]
    message: Optional[str]


NO_ERROR = ErrorInfo('00000', None, None)


def error_info_from(exc: BaseException) -> ErrorInfo:
    """Extract an ``ErrorInfo`` from a SQLAlchemy or DBAPI exception."""
    orig = getattr(exc, 'orig', None) or exc
    sqlstate = getattr(orig, 'sqlstate', None) or getattr(orig, 'pgcode', None) or 'HY000'

    args = getattr(orig, 'args', ())
    if args and isinstance(args[0], int):
        # PyMySQL style: (errno, message)
        code = args[0]
        message = str(args[1]) if len(args) > 1 else str(orig)
    else:
        code = getattr(orig, 'sqlite_errorcode', None)
        message = str(orig)

    return ErrorInfo(sqlstate, code, message)


class StatementResult:
    """
    Buffered outcome of one executed statement.

    Rows are fetched eagerly so the result stays usable after the
    statement's transaction has been committed.
    """

    def __init__(self, cursor: CursorResult):
        self.returns_rows = cursor.returns_rows
        self.rowcount = cursor.rowcount
        self.lastrowid = None if self.returns_rows else cursor.lastrowid
        self._raw_rows = cursor.all() if self.returns_rows else []
        self.rows: List[Record] = [Record.from_row(row) for row in self._raw_rows]

    def __iter__(self):
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[Record]:
        """First row or None."""
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        """First column of the first row or None."""
        if not self._raw_rows:
            return None
        return self._raw_rows[0][0]


class Database:
    """Query helper bound to one database connection"""

    def __init__(self, database_name: str, user: str = '', password: str = '',
                 engine: str = 'mysql', charset: str = 'utf8',
                 host: str = '127.0.0.1', port: Optional[int] = None,
                 engine_args: Optional[Dict[str, Any]] = None):
        """
        Open a connection

        Args:
            database_name: Database name (file path for SQLite)
            user: User name
            password: Password
            engine: 'mysql', 'postgresql' or 'sqlite'
            charset: Connection character set
            host: Server host
            port: Server port, driver default when None
            engine_args: Extra keyword arguments for ``create_engine``

        Raises:
            DatabaseConnectionError: If the settings are invalid or the
                connection cannot be established
        """
        try:
            settings = ConnectionSettings(
                database_name=database_name,
                user=user,
                password=password,
                engine=engine,
                charset=charset,
                host=host,
                port=port,
                engine_args=engine_args or {},
            )
        except ValidationError as e:
            raise DatabaseConnectionError(f"Invalid connection settings: {e}") from e

        self._open(settings)

    @classmethod
    def from_settings(cls, settings: ConnectionSettings) -> 'Database':
        """Open a connection from validated settings."""
        db = cls.__new__(cls)
        db._open(settings)
        return db

    def _open(self, settings: ConnectionSettings) -> None:
        self.settings = settings
        self.database_name = settings.database_name
        self.dsn = DatabaseConfig.get_dsn(settings)
        self.logger = DatabaseLoggerAdapter(
            logging.getLogger(f'{DB_LOGGER_NAME}.{self.__class__.__name__.lower()}'),
            {'database': self.database_name}
        )

        self._transaction = None
        self._transaction_started = 0.0
        self._last_error = NO_ERROR
        self._last_insert_id = 0
        self.engine = None
        self._connection: Optional[Connection] = None

        try:
            self.engine = DatabaseConfig.get_engine(settings)
            self._connection = self.engine.connect()
        except (SQLAlchemyError, ImportError) as e:
            self._last_error = error_info_from(e)
            self.logger.connection_event('error', f"{self.dsn}: {e}")
            if self.engine is not None:
                self.engine.dispose()
            raise DatabaseConnectionError(f"Failed to connect to {self.dsn}: {e}") from e

        self.logger.connection_event('opened', self.dsn)

    @property
    def dialect(self) -> str:
        """SQLAlchemy dialect name of the connection."""
        return self.engine.dialect.name

    @property
    def quote_char(self) -> str:
        return quote_char_for(self.dialect)

    def get_connection(self) -> Connection:
        """Return the underlying SQLAlchemy connection."""
        return self._connection

    def switch_database(self, name: str) -> None:
        """
        Make ``name`` the default database of the connection

        Args:
            name: Database name
        """
        self.execute(f"USE {quote_identifier(name, self.quote_char)}")
        self.database_name = name
        self.logger.extra['database'] = name
        self.logger.connection_event('switched', name)

    def get_last_error(self) -> ErrorInfo:
        """Error info of the most recent statement, ``('00000', None, None)`` if it succeeded."""
        return self._last_error

    def get_affected_rows(self, result: StatementResult) -> int:
        """Rows affected by an INSERT, UPDATE or DELETE."""
        return result.rowcount

    def get_last_insert_id(self) -> int:
        """Id generated by the most recent INSERT on this connection."""
        return self._last_insert_id

    # Transactions

    def start_transaction(self) -> None:
        """Begin an explicit transaction."""
        if self.is_in_transaction():
            raise DatabaseError("A transaction is already in progress")
        self._transaction = self._require_connection().begin()
        self._transaction_started = time.time()
        self.logger.debug("Transaction started")

    def commit(self) -> None:
        """Commit the explicit transaction."""
        self._finish_transaction('commit')

    def rollback(self) -> None:
        """Roll back the explicit transaction."""
        self._finish_transaction('rollback')

    def is_in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def _finish_transaction(self, operation: str) -> None:
        if self._transaction is None:
            raise DatabaseError(f"Cannot {operation}: no transaction in progress")

        transaction, self._transaction = self._transaction, None
        duration = time.time() - self._transaction_started
        try:
            if operation == 'commit':
                transaction.commit()
            else:
                transaction.rollback()
        except SQLAlchemyError as e:
            self._last_error = error_info_from(e)
            self.logger.transaction(operation, False, duration, str(e))
            raise
        self.logger.transaction(operation, True, duration)

    # Execution

    @staticmethod
    def _bind_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Accept both ``{'id': 1}`` and ``{':id': 1}`` style keys."""
        bound = {}
        for key, value in (params or {}).items():
            key = str(key)
            bound[key[1:] if key.startswith(':') else key] = value
        return bound

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise DatabaseError("Connection is closed")
        return self._connection

    def _handle_failure(self, e: SQLAlchemyError, sql: str) -> None:
        self._last_error = error_info_from(e)
        self.logger.error(f"Statement failed: {e.__class__.__name__}: {self._last_error.message} "
                          f"| Query: {' '.join(sql.split())}")
        if not self.is_in_transaction():
            self._connection.rollback()

    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None,
                bind_named_params: bool = True) -> StatementResult:
        """
        Execute one parameterized statement

        Args:
            sql: SQL text with ``:name`` placeholders
            params: Values for the placeholders
            bind_named_params: Normalise ``:name`` style keys before binding;
                pass False when the mapping already uses bare names

        Returns:
            Buffered statement result

        Raises:
            DriverError: Propagated unchanged from the driver
        """
        params = self._bind_params(params) if bind_named_params else dict(params or {})

        connection = self._require_connection()
        start_time = time.time()
        try:
            result = StatementResult(connection.execute(text(sql), params))
            if not self.is_in_transaction():
                self._connection.commit()
        except SQLAlchemyError as e:
            self._handle_failure(e, sql)
            raise

        self.logger.query(sql, params, time.time() - start_time)
        self._last_error = NO_ERROR
        if result.lastrowid:
            self._last_insert_id = int(result.lastrowid)
        return result

    # Row mapping

    def select(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Record]:
        """
        Run a SELECT and return every row

        Args:
            sql: SELECT statement
            params: Placeholder values

        Returns:
            List of records, empty when nothing matches
        """
        return self.execute(sql, params).rows

    def select_row(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Record]:
        """First matching row, or None when nothing matches."""
        return self.execute(sql, params).first()

    def select_field(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """First column of the first matching row, or None when nothing matches."""
        return self.execute(sql, params).scalar()

    def select_df(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> pd.DataFrame:
        """
        Run a SELECT and return the rows as a DataFrame

        Args:
            sql: SELECT statement
            params: Placeholder values

        Returns:
            Pandas DataFrame with results
        """
        params = self._bind_params(params)
        connection = self._require_connection()
        start_time = time.time()
        try:
            df = pd.read_sql_query(text(sql), connection, params=params)
            if not self.is_in_transaction():
                self._connection.commit()
        except SQLAlchemyError as e:
            self._handle_failure(e, sql)
            raise

        self.logger.query(sql, params, time.time() - start_time)
        self._last_error = NO_ERROR
        return df

    # Statement helpers

    def insert_row(self, table: str, fields: Mapping[str, Any],
                   on_duplicate: Optional[Mapping[str, Any]] = None,
                   conflict_columns: Optional[Sequence[str]] = None) -> int:
        """
        Insert a single row

        Args:
            table: Table name
            fields: Column values
            on_duplicate: Columns to update when the key already exists
            conflict_columns: Unique key that triggers ``on_duplicate``
                (PostgreSQL and SQLite; MySQL uses any unique key)

        Returns:
            Id of the inserted row
        """
        statement = build_insert(table, fields, on_duplicate, dialect=self.dialect,
                                 conflict_columns=conflict_columns)
        result = self.execute(statement.sql, statement.params, bind_named_params=False)
        return int(result.lastrowid or 0)

    def insert_multi(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """
        Insert several rows with one statement

        Args:
            table: Table name
            rows: Field sets sharing the same columns

        Returns:
            Number of rows inserted
        """
        statement = build_insert_multi(table, rows, dialect=self.dialect)
        result = self.execute(statement.sql, statement.params, bind_named_params=False)
        return result.rowcount

    def update(self, table: str, fields: Mapping[str, Any],
               where: Optional[Mapping[str, Any]] = None,
               limit: Optional[int] = None) -> int:
        """
        Update rows

        Args:
            table: Table name
            fields: Columns to set
            where: Equality conditions joined with AND
            limit: Maximum rows to update (MySQL)

        Returns:
            Number of rows affected
        """
        statement = build_update(table, fields, where, limit, dialect=self.dialect)
        result = self.execute(statement.sql, statement.params, bind_named_params=False)
        return result.rowcount

    def delete(self, table: str, where: Mapping[str, Any], limit: Optional[int] = None) -> int:
        """
        Delete rows

        Args:
            table: Table name
            where: Equality conditions joined with AND
            limit: Maximum rows to delete (MySQL)

        Returns:
            Number of rows affected
        """
        statement = build_delete(table, where, limit, dialect=self.dialect)
        result = self.execute(statement.sql, statement.params, bind_named_params=False)
        return result.rowcount

    def close(self) -> None:
        """Close the connection and dispose of the engine"""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._transaction = None
            self.logger.connection_event('closed', self.dsn)
        if self.engine is not None:
            self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
