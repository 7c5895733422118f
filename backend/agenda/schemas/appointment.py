# backend/agenda/schemas/appointment.py
"""
Appointment schemas for the Agenda booking engine.

The first-party booking form submits a store-local ``date`` and
``start_time``; the integration API submits one ISO-8601 ``date`` instant
(naive values are read as store-local). Both end up as an aware UTC
``start_at`` handed to the appointment service.
"""

from datetime import date as date_type, datetime, time
from decimal import Decimal
import re
from typing import Any, List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.timezone_utils import ensure_utc, local_to_utc, to_store_local
from ..models.appointment import AppointmentStatus
from ..utils.sanitize import sanitize_name, sanitize_phone, sanitize_text
from ._strict_base import StrictModel, StrictRequestModel

TIME_REGEX = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


def _parse_time(value: object) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not TIME_REGEX.fullmatch(candidate):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
        hour, minute = candidate.split(":")
        return time(int(hour), int(minute))
    return value


class _ClientFields(StrictRequestModel):
    client_name: str = Field(..., min_length=2, max_length=100)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(None, max_length=32)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("client_name")
    @classmethod
    def _clean_name(cls, v: str) -> str:
        cleaned = sanitize_name(v)
        if len(cleaned) < 2:
            raise ValueError("Client name must have at least 2 characters")
        return cleaned

    @field_validator("client_email")
    @classmethod
    def _lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v

    @field_validator("client_phone")
    @classmethod
    def _clean_phone(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_phone(v)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)


class AppointmentCreate(_ClientFields):
    """First-party booking request (public booking page or dashboard)."""

    service_id: str = Field(..., min_length=1, max_length=26)
    date: date_type
    start_time: time
    coupon_code: Optional[str] = Field(None, max_length=50)
    is_simple_booking: bool = False

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return _parse_time(v)

    @field_validator("coupon_code")
    @classmethod
    def _upper_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v and v.strip() else None

    @property
    def start_at(self) -> datetime:
        return local_to_utc(self.date, self.start_time)


class ApiAppointmentCreate(_ClientFields):
    """Integration API booking request."""

    service_id: str = Field(..., alias="serviceId", min_length=1, max_length=26)
    date: datetime
    coupon_code: Optional[str] = Field(None, alias="couponCode", max_length=50)

    model_config = StrictRequestModel.model_config | {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _accept_camel_case(cls, data: Any) -> Any:
        if isinstance(data, dict):
            renames = {
                "clientName": "client_name",
                "clientEmail": "client_email",
                "clientPhone": "client_phone",
            }
            data = {renames.get(key, key): value for key, value in data.items()}
        return data

    @property
    def start_at(self) -> datetime:
        return ensure_utc(self.date)


class AppointmentStatusUpdate(StrictRequestModel):
    status: AppointmentStatus
    expected_status: Optional[AppointmentStatus] = None


class AppointmentReschedule(StrictRequestModel):
    """New start, either as an instant or as store-local date + time."""

    start_at: Optional[datetime] = None
    date: Optional[date_type] = None
    start_time: Optional[time] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return _parse_time(v)

    @model_validator(mode="after")
    def _require_one_form(self) -> "AppointmentReschedule":
        local_form = self.date is not None and self.start_time is not None
        if self.start_at is None and not local_form:
            raise ValueError("Provide start_at, or both date and start_time")
        if self.start_at is not None and (self.date is not None or self.start_time is not None):
            raise ValueError("Provide start_at or date/start_time, not both")
        return self

    def resolved_start(self) -> datetime:
        if self.start_at is not None:
            return ensure_utc(self.start_at)
        assert self.date is not None and self.start_time is not None
        return local_to_utc(self.date, self.start_time)


class ApiAppointmentUpdate(StrictRequestModel):
    """Integration API PUT: any subset of schedule, status and details."""

    status: Optional[AppointmentStatus] = None
    date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
    client_name: Optional[str] = Field(None, alias="clientName", min_length=2, max_length=100)
    client_phone: Optional[str] = Field(None, alias="clientPhone", max_length=32)

    model_config = StrictRequestModel.model_config | {"populate_by_name": True}

    @field_validator("client_name")
    @classmethod
    def _clean_name(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_name(v) if v is not None else v

    @field_validator("client_phone")
    @classmethod
    def _clean_phone(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_phone(v)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    def detail_changes(self) -> dict[str, Any]:
        fields = self.model_fields_set & {"notes", "client_name", "client_phone"}
        return {name: getattr(self, name) for name in sorted(fields)}


class AppointmentResponse(StrictModel):
    id: str
    service_id: str
    store_id: str
    start_at: datetime
    end_at: datetime
    local_date: str
    local_time: str
    duration_minutes: int
    status: AppointmentStatus
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    total_price: Decimal
    discount_amount: Decimal
    coupon_id: Optional[str] = None
    is_simple_booking: bool
    source: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _add_local_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return data
        local_start = to_store_local(data.start_at)
        return {
            **{
                name: getattr(data, name, None)
                for name in cls.model_fields
                if name not in ("local_date", "local_time")
            },
            "local_date": local_start.strftime("%Y-%m-%d"),
            "local_time": local_start.strftime("%H:%M"),
        }


class AppointmentListResponse(StrictModel):
    items: List[AppointmentResponse]
    total: int
    page: int
    limit: int
    pages: int
