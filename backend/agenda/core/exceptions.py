# backend/agenda/core/exceptions.py
"""
Domain-specific exceptions for the Agenda booking engine.

Every rejection carries a machine-readable ``code`` from ``ErrorCode`` plus a
human message and structured details. The API layer renders them as
``{"error": message, "code": code, "details": {...}}`` and maps the exception
class to an HTTP status.
"""

from typing import Any, Dict, Optional, Union

from fastapi import HTTPException, status

from .enums import ErrorCode

CodeLike = Union[ErrorCode, str]


def _code_value(code: Optional[CodeLike], fallback: str) -> str:
    if code is None:
        return fallback
    return code.value if isinstance(code, ErrorCode) else str(code)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[CodeLike] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = _code_value(code, self.default_code.value)
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        """Structured error body shared by the web and integration APIs."""
        return {"error": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(status_code=self.status_code, detail=self.to_payload())


class ValidationException(DomainException):
    """Raised when request data fails business validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.VALIDATION_ERROR


class BusinessRuleException(DomainException):
    """Raised when a booking or pricing rule is violated."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.VALIDATION_ERROR


class NotFoundException(DomainException):
    """Raised when a requested resource is not found or is out of scope."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.TIME_SLOT_UNAVAILABLE


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.INVALID_API_KEY


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.PERMISSION_DENIED


class RateLimitException(DomainException):
    """Raised when an API key exceeds its hourly request budget."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_code = ErrorCode.RATE_LIMIT_EXCEEDED


class ServiceException(DomainException):
    """Raised when an infrastructure operation fails; never exposes internals."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.INTERNAL_ERROR

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": "An error occurred processing your request",
            "code": self.code,
            "details": {},
        }


# Specific business exceptions


class SlotRejectedException(BusinessRuleException):
    """Raised when a candidate start fails date, lead-time or working-hours checks."""


class SlotUnavailableException(ConflictException):
    """Raised when a slot is already held by an active appointment."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available",
            code=ErrorCode.TIME_SLOT_UNAVAILABLE,
            details=details or {},
        )


class CouponRejectedException(BusinessRuleException):
    """Raised when a coupon cannot be applied to a booking."""


class InvalidStateTransitionException(ConflictException):
    """Raised when an appointment status change is not allowed."""

    default_code = ErrorCode.INVALID_STATE_TRANSITION

    def __init__(self, current: str, target: str, reason: Optional[str] = None):
        super().__init__(
            message=reason or f"Cannot change appointment status from {current} to {target}",
            code=ErrorCode.INVALID_STATE_TRANSITION,
            details={"current_status": current, "target_status": target},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
