"""
Database exceptions for the dbhelper query layer.
"""

from sqlalchemy.exc import DBAPIError


class DatabaseError(Exception):
    """Base class for all errors raised by the wrapper itself."""


class DatabaseConnectionError(DatabaseError, ConnectionError):
    """Raised when the connection cannot be established."""


class QueryBuildError(DatabaseError, ValueError):
    """Raised when a statement cannot be built from the given fields."""


# Driver errors are propagated unmodified; this is the name to catch them by.
DriverError = DBAPIError
