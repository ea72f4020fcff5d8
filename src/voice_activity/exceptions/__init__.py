"""Common exception classes for the voice activity core.

All custom exceptions inherit from ``ApplicationError`` so callers can catch
the whole family at service boundaries.

Exception classes support two patterns:
1. No-argument raise: raise StorageError()
2. Contextual attributes: err = QueryError(table="daily_activity"); raise err
"""

from typing import Any


class ApplicationError(Exception):
    """Base exception for all application errors.

    Supports keyword arguments that are stored as attributes for debugging.
    """

    default_message = "Application error occurred"

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message or self.default_message)
        for key, value in kwargs.items():
            setattr(self, key, value)


class ValidationError(ApplicationError):
    """Data validation failed."""

    default_message = "Data validation failed"


class DataError(ApplicationError):
    """Data processing or parsing error."""

    default_message = "Data processing or parsing error"


class StorageError(ApplicationError):
    """Relational store operation failed."""

    default_message = "Storage operation failed"


class StorageConnectionError(StorageError):
    """The relational store could not be opened or is closed."""

    default_message = "Storage connection unavailable"


class QueryError(StorageError):
    """A statement against the relational store failed."""

    default_message = "Storage query failed"


__all__ = [
    "ApplicationError",
    "DataError",
    "QueryError",
    "StorageConnectionError",
    "StorageError",
    "ValidationError",
]
