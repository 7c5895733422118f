# backend/agenda/schemas/__init__.py
"""Pydantic request and response models."""

from .appointment import (
    ApiAppointmentCreate,
    ApiAppointmentUpdate,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
)
from .availability import AvailabilityResponse, SlotResponse
from .common import ApiStatusResponse, ErrorResponse, HealthResponse
from .coupon import CouponValidateRequest, CouponValidateResponse
from .service import ServiceListResponse, ServiceResponse

__all__ = [
    "ApiAppointmentCreate",
    "ApiAppointmentUpdate",
    "ApiStatusResponse",
    "AppointmentCreate",
    "AppointmentListResponse",
    "AppointmentReschedule",
    "AppointmentResponse",
    "AppointmentStatusUpdate",
    "AvailabilityResponse",
    "CouponValidateRequest",
    "CouponValidateResponse",
    "ErrorResponse",
    "HealthResponse",
    "ServiceListResponse",
    "ServiceResponse",
    "SlotResponse",
]
