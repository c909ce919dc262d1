"""
Exception hierarchy for the reporting backend.

Exception Hierarchy:
    ReportError (base)
    ├── StorageError           - Store read/write failed
    └── QueryTimeoutError      - Store query exceeded its timeout

    ValidationError            - Request parameter validation failed

The attribution and rollup functions never raise: division by zero is
handled by returning 0 and broken hierarchy links drop the subtree.
These exceptions belong to the layers around them.
"""
from typing import Any, Optional


class ReportError(Exception):
    """Base exception for reporting backend errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class StorageError(ReportError):
    """
    The storage collaborator failed to read or write rows.

    Carries the table involved when known.
    """

    def __init__(self, message: str, details: Optional[str] = None, table: Optional[str] = None):
        super().__init__(message, details)
        self.table = table


class QueryTimeoutError(ReportError):
    """
    Store query exceeded timeout.

    Usually means the project has grown past what a full scan of
    sales/leads can serve within one request.
    """

    def __init__(self, query: str, timeout: float, details: Optional[str] = None):
        self.query = query[:200] + "..." if len(query) > 200 else query
        self.timeout = timeout
        message = f"Query timed out after {timeout}s"
        super().__init__(message, details)

    def __str__(self) -> str:
        return f"QueryTimeoutError: Query timed out after {self.timeout}s - {self.query}"


class ValidationError(Exception):
    """
    Input validation failed.

    Raised by adreport.validators before any store access.
    """

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value!r})"
        return f"{self.field}: {self.message}"
