"""
Domain errors.

Each subclass fixes the HTTP status and machine-readable code the API reports;
`details` carries structured context such as the remaining balance.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    status_code: int = 400
    error_code: str = "BUSINESS_ERROR"
    default_message: str = "Request could not be completed"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Malformed input or a business precondition that does not hold."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(AppException):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class InsufficientBalanceError(AppException):
    """A ledger debit would drive the remaining balance below zero."""
    status_code = 409
    error_code = "INSUFFICIENT_BALANCE"


class ConflictError(AppException):
    status_code = 409
    error_code = "CONFLICT"


class InvalidStateError(AppException):
    """Illegal state transition, e.g. finalizing twice or deleting a finalized run."""
    status_code = 409
    error_code = "INVALID_STATE"


class AccessDeniedError(AppException):
    """Named AccessDeniedError to avoid shadowing the built-in PermissionError."""
    status_code = 403
    error_code = "PERMISSION_DENIED"
    default_message = "Insufficient permissions"


class AuthenticationError(AppException):
    status_code = 401
    error_code = "AUTH_FAILED"
    default_message = "Could not validate credentials"
