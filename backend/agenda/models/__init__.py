# backend/agenda/models/__init__.py
"""
SQLAlchemy models for the Agenda booking engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .api_key import ApiKey, ApiUsageLog
from .appointment import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentSource,
    AppointmentStatus,
)
from .company import Company
from .coupon import Coupon, CouponType, CouponUsage
from .event_outbox import EventOutbox, EventOutboxStatus
from .service import Service
from .store import Store
from .user import User

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "ApiKey",
    "ApiUsageLog",
    "Appointment",
    "AppointmentSource",
    "AppointmentStatus",
    "Company",
    "Coupon",
    "CouponType",
    "CouponUsage",
    "EventOutbox",
    "EventOutboxStatus",
    "Service",
    "Store",
    "User",
]
