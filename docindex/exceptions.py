"""Application exception hierarchy.

All custom exceptions inherit from DocIndexError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "IDX-1000"
    CONFIGURATION_ERROR = "IDX-1001"
    VALIDATION_ERROR = "IDX-1002"
    UNKNOWN_COMMAND = "IDX-1003"

    # Collection errors (2xxx)
    COLLECTION_NOT_FOUND = "IDX-2000"
    DOCUMENT_NOT_FOUND = "IDX-2001"

    # Index errors (3xxx)
    INDEX_NOT_FOUND = "IDX-3000"
    INDEX_CONFLICT = "IDX-3001"

    # Vector errors (4xxx)
    DIMENSION_MISMATCH = "IDX-4000"

    # Catalog errors (5xxx)
    CATALOG_ERROR = "IDX-5000"
    CATALOG_CORRUPT = "IDX-5001"


class DocIndexError(Exception):
    """Base exception for all docindex errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(DocIndexError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(DocIndexError):
    """Invalid index parameters, filters, queries or commands."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ConflictError(DocIndexError):
    """Index name reused with a different definition."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INDEX_CONFLICT, details)


class NotFoundError(DocIndexError):
    """Referenced collection, document or index does not exist."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INDEX_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class IndexNotFoundError(NotFoundError):
    """No vector index covers the searched field."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INDEX_NOT_FOUND, details)


class DimensionMismatchError(DocIndexError):
    """Query or document vector length differs from the indexed dimensions."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.DIMENSION_MISMATCH, details)


class CatalogError(DocIndexError):
    """Index metadata could not be read or written."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CATALOG_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
