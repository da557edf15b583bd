"""Security utilities for the dbhelper query layer.

This module provides security-focused utilities including:
- Identifier validation and quoting for table and column names
- Log sanitization
"""

import re
from typing import Optional
import logging

logger = logging.getLogger(__name__)


# Characters allowed in table and column names that are interpolated into SQL
IDENTIFIER_PATTERN = re.compile(r'[A-Za-z0-9_$-]+')


class SecurityError(Exception):
    """Base exception for security-related errors."""
    pass


class QueryInjectionError(SecurityError):
    """Raised when potential query injection is detected."""
    pass


class InvalidIdentifier(QueryInjectionError):
    """Raised when a table or column name contains unsafe characters."""

    def __init__(self, identifier: object):
        self.identifier = identifier
        super().__init__(f"Identifier {identifier!r} contains invalid character(s)")


def validate_identifier(name: str) -> str:
    """Validate a table or column name for direct use in SQL text.

    Args:
        name: Identifier to validate

    Returns:
        The identifier, unchanged

    Raises:
        InvalidIdentifier: If the name is empty, not a string, or contains
            characters outside ``[A-Za-z0-9_$-]``
    """
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
        raise InvalidIdentifier(name)
    return name


def quote_identifier(name: str, quote_char: str = '`') -> str:
    """Validate and quote an identifier.

    Args:
        name: Identifier to quote
        quote_char: Dialect quote character (backtick for MySQL, double quote
            for SQLite and PostgreSQL)

    Returns:
        Quoted identifier
    """
    return f"{quote_char}{validate_identifier(name)}{quote_char}"


class InputValidator:
    """Validates and sanitizes user inputs."""

    @staticmethod
    def sanitize_log_message(message: str) -> str:
        """Remove sensitive data from log messages.

        Args:
            message: Log message to sanitize

        Returns:
            Sanitized message
        """
        # Credentials embedded in connection URLs
        message = re.sub(
            r'(\w+(?:\+\w+)?://[^:/\s]+):[^@\s]+@',
            r'\1:***REDACTED***@',
            message
        )

        message = re.sub(
            r'(password|passwd|pwd|token|secret)\s*[=:]\s*[^\s,;]+',
            r'\1=***REDACTED***',
            message,
            flags=re.IGNORECASE
        )

        return message


class SensitiveDataFilter(logging.Filter):
    """Logging filter that removes sensitive data."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log record to remove sensitive data.

        Args:
            record: Log record to filter

        Returns:
            True (always allow record through after sanitization)
        """
        if hasattr(record, 'msg'):
            record.msg = InputValidator.sanitize_log_message(str(record.msg))
        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {
                    key: InputValidator.sanitize_log_message(str(value))
                    for key, value in record.args.items()
                }
            else:
                record.args = tuple(
                    InputValidator.sanitize_log_message(str(arg)) for arg in record.args
                )
        return True


def setup_secure_logging(logger_name: Optional[str] = None) -> logging.Logger:
    """Set up logger with security filters.

    Args:
        logger_name: Name of logger (None for root logger)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(logger_name)

    sensitive_filter = SensitiveDataFilter()

    for handler in logger.handlers:
        if not any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            handler.addFilter(sensitive_filter)

    if not any(isinstance(f, SensitiveDataFilter) for f in logger.filters):
        logger.addFilter(sensitive_filter)

    return logger
