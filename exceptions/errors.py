"""
Custom exception classes for the application.

Every error the API can return inherits from AppError and carries a stable
error code, an HTTP status and optional details.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "ASSEMBLY_NOT_FOUND")
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
        self.timestamp = datetime.now(timezone.utc).isoformat()
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
# ASSEMBLY ERRORS
# ===================

class AssemblyNotFoundError(NotFoundError):
    """Assembly not found."""

    def __init__(self, assembly_id: int | str):
        super().__init__(
            resource="Assembly",
            identifier=str(assembly_id),
            code="ASSEMBLY_NOT_FOUND"
        )


class DefectBreakdownError(ValidationError):
    """Proposed defect quantities exceed what is available at the stage."""

    def __init__(self, stage: str, errors: list[str]):
        super().__init__(
            code="DEFECT_EXCEEDS_AVAILABLE",
            message="; ".join(errors),
            details={"stage": stage, "errors": errors}
        )


# ===================
# PRICING ERRORS
# ===================

class ConflictingFieldsError(ValidationError):
    """Two mutually exclusive fields were both provided."""

    def __init__(self, fields: list[str], message: Optional[str] = None):
        super().__init__(
            code="CONFLICTING_FIELDS",
            message=message or f"Only one of {', '.join(fields)} may be set",
            details={"fields": fields}
        )
