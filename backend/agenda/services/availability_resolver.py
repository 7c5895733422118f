# backend/agenda/services/availability_resolver.py
"""
Availability & Conflict Resolver for the Agenda booking engine.

Decides whether a service can be booked at a candidate start. Checks run in
a fixed order and stop at the first failure:

1. The start is in the future                        -> INVALID_DATE
2. It respects the store's minimum lead time         -> INSUFFICIENT_ADVANCE_TIME
3. It is within the store's booking horizon          -> EXCESSIVE_ADVANCE_TIME
4. ``[start, start + duration)`` fits the store-local
   working window of that weekday                    -> OUTSIDE_WORKING_HOURS
5. No active appointment of the same service overlaps -> TIME_SLOT_UNAVAILABLE

The resolver only reads. The appointment service calls it again inside the
commit transaction, after taking the service row lock.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import ErrorCode
from ..core.exceptions import SlotRejectedException, SlotUnavailableException
from ..core.timezone_utils import Clock, ensure_utc, local_to_utc, to_store_local
from ..models.appointment import Appointment
from ..models.service import Service
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentRepository
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotDecision:
    """Outcome of validating one candidate start."""

    ok: bool
    code: Optional[ErrorCode] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def accept(cls) -> "SlotDecision":
        return cls(ok=True)

    @classmethod
    def reject(cls, code: ErrorCode, message: str, **details: Any) -> "SlotDecision":
        return cls(ok=False, code=code, message=message, details=details)

    def raise_for_rejection(self) -> None:
        if self.ok:
            return
        if self.code == ErrorCode.TIME_SLOT_UNAVAILABLE:
            raise SlotUnavailableException(self.message, details=self.details)
        raise SlotRejectedException(
            self.message or "Slot rejected", code=self.code, details=self.details
        )


@dataclass(frozen=True)
class SlotOption:
    start_at: datetime
    local_time: str
    available: bool
    code: Optional[ErrorCode] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class DaySlots:
    day: date
    closed: bool
    slots: List[SlotOption]


class AvailabilityResolver(BaseService):
    """Read-side booking rules for one service at a time."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        appointment_repository: Optional[AppointmentRepository] = None,
    ):
        super().__init__(db, clock)
        self.appointment_repository = (
            appointment_repository or RepositoryFactory.create_appointment_repository(db)
        )

    @BaseService.measure_operation("validate_slot")
    def validate(
        self,
        service: Service,
        candidate_start: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> SlotDecision:
        """
        Validate a candidate start for ``service``.

        ``service`` must already have been resolved through the caller's tenant
        scope. Naive datetimes are read as store-local wall-clock time.
        """
        start_at = ensure_utc(candidate_start)
        decision = self._check_calendar(service, start_at, self.now())
        if not decision.ok:
            return decision

        end_at = start_at + timedelta(minutes=service.duration)
        conflicts = self.appointment_repository.find_conflicts(
            service.id, start_at, end_at, exclude_appointment_id=exclude_appointment_id
        )
        if conflicts:
            self.logger.info(
                "Slot %s for service %s overlaps %d active appointment(s)",
                start_at.isoformat(),
                service.id,
                len(conflicts),
            )
            return self._conflict_decision(conflicts[0])
        return SlotDecision.accept()

    def ensure_bookable(
        self,
        service: Service,
        candidate_start: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> None:
        """Like ``validate`` but raises the typed rejection."""
        self.validate(service, candidate_start, exclude_appointment_id).raise_for_rejection()

    @BaseService.measure_operation("list_slots")
    def list_slots(self, service: Service, day: date) -> DaySlots:
        """
        Candidate starts of ``day`` (store-local) every ``slot_interval_minutes``.

        Slots run from opening time while the slot starts before closing time;
        each is tagged available or with the rule that rejects it. Appointments
        for the day are loaded once.
        """
        schedule = service.store.calendar.for_weekday(day.weekday())
        if schedule is None:
            return DaySlots(day=day, closed=True, slots=[])

        step = timedelta(minutes=settings.slot_interval_minutes)
        opening = local_to_utc(day, schedule.start)
        closing = local_to_utc(day, schedule.end)
        duration = timedelta(minutes=service.duration)
        booked = self.appointment_repository.list_active_between(
            service.id, opening, closing + duration
        )
        now = self.now()

        slots: List[SlotOption] = []
        cursor = opening
        while cursor < closing:
            decision = self._check_calendar(service, cursor, now)
            if decision.ok:
                clash = self._first_overlap(booked, cursor, cursor + duration)
                if clash is not None:
                    decision = self._conflict_decision(clash)
            slots.append(
                SlotOption(
                    start_at=cursor,
                    local_time=to_store_local(cursor).strftime("%H:%M"),
                    available=decision.ok,
                    code=decision.code,
                    reason=decision.message,
                )
            )
            cursor += step
        return DaySlots(day=day, closed=False, slots=slots)

    # ------------------------------------------------------------- rules
    def _check_calendar(self, service: Service, start_at: datetime, now: datetime) -> SlotDecision:
        store = service.store

        if start_at <= now:
            return SlotDecision.reject(
                ErrorCode.INVALID_DATE,
                "Appointment date must be in the future",
                start_at=start_at.isoformat(),
            )

        lead = start_at - now
        min_advance = timedelta(hours=store.min_advance_hours or 0)
        if lead < min_advance:
            return SlotDecision.reject(
                ErrorCode.INSUFFICIENT_ADVANCE_TIME,
                f"Appointments must be booked at least {store.min_advance_hours} hours in advance",
                min_advance_hours=store.min_advance_hours,
                hours_until_start=round(lead.total_seconds() / 3600, 2),
            )

        horizon = timedelta(days=store.advance_booking_days)
        if lead > horizon:
            return SlotDecision.reject(
                ErrorCode.EXCESSIVE_ADVANCE_TIME,
                f"Appointments cannot be booked more than {store.advance_booking_days} days ahead",
                advance_booking_days=store.advance_booking_days,
            )

        local_start = to_store_local(start_at)
        if not store.calendar.is_open(local_start.replace(tzinfo=None), service.duration):
            return SlotDecision.reject(
                ErrorCode.OUTSIDE_WORKING_HOURS,
                "Requested time is outside the store's working hours",
                weekday=local_start.strftime("%A").lower(),
                local_time=local_start.strftime("%H:%M"),
                duration_minutes=service.duration,
            )
        return SlotDecision.accept()

    @staticmethod
    def _first_overlap(
        appointments: Sequence[Appointment], start_at: datetime, end_at: datetime
    ) -> Optional[Appointment]:
        for appointment in appointments:
            if appointment.overlaps(start_at, end_at):
                return appointment
        return None

    @staticmethod
    def _conflict_decision(existing: Appointment) -> SlotDecision:
        return SlotDecision.reject(
            ErrorCode.TIME_SLOT_UNAVAILABLE,
            "This time slot is no longer available",
            conflicting_start=existing.start_at.isoformat(),
            conflicting_end=existing.end_at.isoformat(),
        )
