# backend/agenda/schemas/availability.py
"""Availability grid returned to the booking page."""

from datetime import date, datetime
from typing import List, Optional

from ._strict_base import StrictModel


class SlotResponse(StrictModel):
    start_at: datetime
    local_time: str
    available: bool
    code: Optional[str] = None
    reason: Optional[str] = None


class AvailabilityResponse(StrictModel):
    service_id: str
    date: date
    duration_minutes: int
    closed: bool
    slots: List[SlotResponse]

