"""
Custom exceptions for the CrewMate layover engine.

Every operation surfaces a typed error kind; idempotent no-ops (duplicate join,
duplicate accept, duplicate mark-read) are successes, not errors.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Input errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    INVALID_STOPS = "INVALID_STOPS"

    # Lookup errors
    NOT_FOUND = "NOT_FOUND"

    # Authorization errors
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAUTHENTICATED = "UNAUTHENTICATED"

    # State errors
    CONFLICT = "CONFLICT"

    # Store errors
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    # Generic errors
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class CrewMateException(Exception):
    """Base exception for the layover engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code


class ValidationError(CrewMateException):
    """Raised for malformed input: bad date range, too few stops, empty title."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=422
        )


class NotFoundError(CrewMateException):
    """Raised when a referenced layover, plan, request, stop or user does not exist."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} '{resource_id}' not found",
            error_code=ErrorCode.NOT_FOUND,
            details={"resource": resource, "id": resource_id},
            status_code=404
        )


class PermissionDeniedError(CrewMateException):
    """Raised on visibility or ownership violations."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.PERMISSION_DENIED,
            details=details,
            status_code=403
        )


class AuthenticationError(CrewMateException):
    """Raised when the caller's identity token is missing or invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            error_code=ErrorCode.UNAUTHENTICATED,
            status_code=401
        )


class ConflictError(CrewMateException):
    """Raised on duplicate requests or transitions out of a terminal state."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFLICT,
            details=details,
            status_code=409
        )


class TransientStoreError(CrewMateException):
    """
    Raised when the underlying store is unavailable.
    The engine never retries; callers own retry and backoff.
    """

    def __init__(self, operation: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Store unavailable during '{operation}'",
            error_code=ErrorCode.STORE_UNAVAILABLE,
            details=details or {"operation": operation},
            status_code=503
        )
