"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict so
routes can return the same JSON envelope for all of them.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CATALOG ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """No catalog entry matches the given brand and product code."""

    def __init__(self, brand: str, product_code: str):
        super().__init__(
            resource="Product",
            identifier=f"{brand}:{product_code}",
            code="PRODUCT_NOT_FOUND"
        )
        self.details.update({"brand": brand, "product_code": product_code})


class UnknownProductTypeError(ValidationError):
    """Product type string from storage is not one of the known types."""

    def __init__(self, value: Any):
        super().__init__(
            code="PRODUCT_UNKNOWN_TYPE",
            message=f"Unknown product type: {value!r}",
            details={"provided": value, "valid": ["SINGLE", "SET", "SET_SINGLE"]}
        )


# ===================
# USER ERRORS
# ===================

class UserNotFoundError(NotFoundError):
    """User not found."""

    def __init__(self, identifier: str):
        super().__init__(
            resource="User",
            identifier=identifier,
            code="USER_NOT_FOUND"
        )


# ===================
# CSV IMPORT ERRORS
# ===================

class CSVParseError(ValidationError):
    """Uploaded CSV cannot be processed at all (empty, no header, too few columns)."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=message,
            details=details
        )


class ImportFileError(AppError):
    """Upload rejected before parsing (wrong type, too large)."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="IMPORT_FILE_REJECTED",
            message=message,
            status_code=status_code,
            details=details
        )


class ChunkCommitError(AppError):
    """A chunk transaction did not persist the rows it was given."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CHUNK_COMMIT_FAILED",
            message=message,
            status_code=500,
            details=details
        )


class SetExpansionError(AppError):
    """Component records for a set could not be created."""

    def __init__(
        self,
        set_code: str,
        message: str,
        row: Optional[int] = None,
        created: Optional[list] = None
    ):
        super().__init__(
            code="SET_EXPANSION_FAILED",
            message=message,
            status_code=500,
            details={"set_code": set_code, "row": row}
        )
        self.created = created or []
