# src/errors.py
"""Exceptions and error kinds shared by the parser, loader and queries."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Categories recorded in load reports."""

    FILE_NOT_FOUND = "file_not_found"
    HEADER_MISMATCH = "header_mismatch"
    FIELD_COERCION = "field_coercion"
    MANDATORY_FIELD_MISSING = "mandatory_field_missing"
    MALFORMED_ROW = "malformed_row"
    UNIQUENESS_VIOLATION = "uniqueness_violation"
    REFERENTIAL_VIOLATION = "referential_violation"


class AnalyticsError(Exception):
    """Base class for every error raised by this project."""


# --- File-level errors ---


class SourceFileError(AnalyticsError):
    kind: ErrorKind

    def __init__(self, path, message: str):
        self.path = str(path)
        super().__init__(message)


class SourceFileNotFoundError(SourceFileError):
    kind = ErrorKind.FILE_NOT_FOUND


class HeaderMismatchError(SourceFileError):
    kind = ErrorKind.HEADER_MISMATCH

    def __init__(self, path, missing_columns):
        self.missing_columns = list(missing_columns)
        super().__init__(
            path,
            f"Header of {path} is missing columns: {', '.join(self.missing_columns)}",
        )


# --- Record-level errors ---


class RecordValidationError(AnalyticsError):
    kind: ErrorKind

    def __init__(self, field: Optional[str], message: str):
        self.field = field
        super().__init__(message)


class FieldCoercionError(RecordValidationError):
    kind = ErrorKind.FIELD_COERCION


class MandatoryFieldMissingError(RecordValidationError):
    kind = ErrorKind.MANDATORY_FIELD_MISSING

    def __init__(self, field: str):
        super().__init__(field, f"Mandatory field '{field}' is empty")


# --- Schema / loader errors ---


class ClearError(AnalyticsError):
    """Raised when a relation cannot be emptied."""

    def __init__(self, table: str, reason: str):
        self.table = table
        super().__init__(f"Could not clear table '{table}': {reason}")


class TablesNotEmptyError(AnalyticsError):
    """Raised when a load targets relations that already hold rows."""

    def __init__(self, tables):
        self.tables = list(tables)
        super().__init__(
            f"Tables already populated: {', '.join(self.tables)}. "
            "Run clear_all() before loading again."
        )


# --- Query errors ---


class NotLoadedError(AnalyticsError):
    """Raised when a query runs before the relations are populated."""


class InvalidQueryParameterError(AnalyticsError, ValueError):
    """Raised for malformed query parameters such as a negative limit."""
