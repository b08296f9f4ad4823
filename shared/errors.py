"""
Shared error handling for the blog trust boundary.
"""

from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class BlogCoreException(Exception):
    """Base exception for the blog core."""

    status_code: int = 400
    # Programmer/config errors are logged in full but answered generically.
    expose_details: bool = True

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        if self.expose_details:
            return ErrorResponse(
                request_id=request_id_var.get(),
                code=self.code,
                message=self.message,
                details=self.details,
            )
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message="The request could not be processed",
        )


class ValidationFailure(BlogCoreException):
    """Submitted input failed one or more validation rules."""

    status_code = 422

    def __init__(self, errors: Dict[str, List[str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__("VALIDATION_FAILED", message, {"errors": errors})


class AccessDenied(BlogCoreException):
    """Actor lacks the permission or role level for the action."""

    status_code = 403

    def __init__(self, message: str = "Access denied. Insufficient permissions.",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("ACCESS_DENIED", message, details)


class AuthenticationError(BlogCoreException):
    """No authenticated actor where one is required."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class UnknownRole(BlogCoreException):
    """Role name outside the configured hierarchy."""

    status_code = 500
    expose_details = False

    def __init__(self, role: Any):
        self.role = role
        super().__init__("UNKNOWN_ROLE", f"Unknown role: {role!r}", {"role": str(role)})


class InvalidIdentifier(BlogCoreException):
    """Table or column name with nothing usable left after sanitization."""

    status_code = 500
    expose_details = False

    def __init__(self, identifier: Any, kind: str = "identifier"):
        self.identifier = identifier
        super().__init__(
            "INVALID_IDENTIFIER",
            f"Invalid {kind}: {identifier!r}",
            {"identifier": str(identifier), "kind": kind},
        )


class UnsafeOperationError(BlogCoreException):
    """Update or delete issued without a condition set."""

    status_code = 500
    expose_details = False

    def __init__(self, operation: str, table: str):
        super().__init__(
            "UNSAFE_OPERATION",
            f"{operation} on {table} requires conditions",
            {"operation": operation, "table": table},
        )


class StoreError(BlogCoreException):
    """Failure reported by the relational store."""

    status_code = 500
    expose_details = False

    def __init__(self, operation: str, message: str = "Store operation failed",
                 details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORE_ERROR", f"{operation}: {message}", details)
