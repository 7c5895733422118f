"""
Core enums for the Agenda booking engine.

This module contains enumeration types used throughout the application
for type safety and consistency: user roles, the machine-readable error
taxonomy returned to callers, and the resource/action pairs that make up an
API key capability set.
"""

from enum import Enum


class UserRole(str, Enum):
    """Roles carried by session users."""

    ADMIN = "ADMIN"
    STORE_OWNER = "STORE_OWNER"
    CLIENT = "CLIENT"


class ErrorCode(str, Enum):
    """
    Machine-readable rejection codes.

    Both HTTP layers return these verbatim in the ``code`` field so programmatic
    callers can branch on them.
    """

    # Availability & conflict
    INVALID_DATE = "INVALID_DATE"
    INSUFFICIENT_ADVANCE_TIME = "INSUFFICIENT_ADVANCE_TIME"
    EXCESSIVE_ADVANCE_TIME = "EXCESSIVE_ADVANCE_TIME"
    OUTSIDE_WORKING_HOURS = "OUTSIDE_WORKING_HOURS"
    TIME_SLOT_UNAVAILABLE = "TIME_SLOT_UNAVAILABLE"

    # Coupons
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    COUPON_NOT_YET_ACTIVE = "COUPON_NOT_YET_ACTIVE"
    MIN_AMOUNT_NOT_MET = "MIN_AMOUNT_NOT_MET"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    USER_USAGE_LIMIT_REACHED = "USER_USAGE_LIMIT_REACHED"

    # Lifecycle & access
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiResource(str, Enum):
    """Resources an API key can be granted access to."""

    APPOINTMENTS = "appointments"
    SERVICES = "services"
    COUPONS = "coupons"


class ApiAction(str, Enum):
    """Actions an API key can perform on a resource."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
