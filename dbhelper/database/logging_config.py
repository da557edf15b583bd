"""
Database logging configuration.

This module sets up the ``db`` logger that the query layer writes to,
with levels taken from the ``logging`` section of the configuration and
helpers that log statements, transactions and connection events.
"""

import logging
import sys
from typing import Dict, Any, Optional
from pathlib import Path

from ..security import SensitiveDataFilter

DB_LOGGER_NAME = 'db'

# Statements slower than this are reported at INFO
SLOW_QUERY_THRESHOLD = 1.0


class SafeFormatter(logging.Formatter):
    """Custom formatter that provides default values for missing fields."""

    def format(self, record):
        if not hasattr(record, 'database_context'):
            record.database_context = 'db'

        return super().format(record)


def setup_db_logging(main_config: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Setup database logging based on configuration.

    Args:
        main_config: Configuration dictionary; reads ``logging.level`` and
            the optional ``logging.file`` path

    Returns:
        Configured logger for database operations
    """
    logging_config = (main_config or {}).get('logging', {})
    log_level = str(logging_config.get('level', 'INFO')).upper()

    logger = logging.getLogger(DB_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level))

    # Remove any existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(SafeFormatter(
        '%(asctime)s - [%(database_context)s] - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    ))
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    log_file = logging_config.get('file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(SafeFormatter(
            '%(asctime)s.%(msecs)03d - [%(database_context)s] - %(levelname)s - '
            '%(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(getattr(logging, log_level))
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def log_query(logger: logging.Logger, query: str, params: Optional[Dict[str, Any]] = None,
              duration: Optional[float] = None) -> None:
    """
    Log an executed statement with appropriate detail level.

    Args:
        logger: Database logger instance
        query: SQL text
        params: Bound parameters
        duration: Execution time in seconds
    """
    if logger.isEnabledFor(logging.DEBUG):
        message = f"Query: {' '.join(query.split())}"
        if params:
            message += f" | Params: {params}"
        if duration is not None:
            message += f" | Duration: {duration:.3f}s"
        logger.debug(message)
    elif duration is not None and duration >= SLOW_QUERY_THRESHOLD:
        logger.info(f"Slow query executed in {duration:.3f}s")


def log_transaction(logger: logging.Logger, operation: str, success: bool,
                    duration: Optional[float] = None, error: Optional[str] = None) -> None:
    """
    Log database transaction outcome.

    Args:
        logger: Database logger instance
        operation: Transaction operation description
        success: Whether transaction succeeded
        duration: Transaction duration in seconds
        error: Error message if transaction failed
    """
    if success:
        message = f"Transaction '{operation}' completed successfully"
        if duration:
            message += f" in {duration:.3f}s"
        logger.info(message)
    else:
        message = f"Transaction '{operation}' failed"
        if error:
            message += f": {error}"
        logger.error(message)


def log_connection_event(logger: logging.Logger, event: str, details: Optional[str] = None) -> None:
    """
    Log connection events.

    Args:
        logger: Database logger instance
        event: Event type ('opened', 'closed', 'switched', 'error')
        details: Additional event details
    """
    if event == 'error':
        logger.error(f"Connection error: {details}")
        return

    message = f"Connection {event}"
    if details:
        message += f": {details}"
    logger.debug(message)


class DatabaseLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds database-specific context to log messages.

    The ``database`` entry of ``extra`` is exposed to formatters as
    ``database_context``.
    """

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        """Add database context to log records."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra']['database_context'] = self.extra.get('database', 'unknown')

        return msg, kwargs

    def query(self, query: str, params: Optional[Dict[str, Any]] = None,
              duration: Optional[float] = None) -> None:
        """Log a database query."""
        log_query(self, query, params, duration)

    def transaction(self, operation: str, success: bool, duration: Optional[float] = None,
                    error: Optional[str] = None) -> None:
        """Log a database transaction."""
        log_transaction(self, operation, success, duration, error)

    def connection_event(self, event: str, details: Optional[str] = None) -> None:
        """Log a connection event."""
        log_connection_event(self, event, details)
