# backend/agenda/models/appointment.py
"""
Appointment model for the Agenda booking engine.

An appointment reserves ``[start_at, end_at)`` of one service. It snapshots
the duration and final price at booking time so later catalog edits never
rewrite history. Only the appointment service writes these rows.

At most one active (PENDING or CONFIRMED) appointment may hold a given
(service, start) pair; the partial unique index below is the last line of
that guarantee when two booking requests race.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import FrozenSet, Mapping

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..core.constants import ACTIVE_APPOINTMENT_STATUSES
from ..database import Base
from .types import TimestampMixin, UTCDateTime, generate_ulid

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class AppointmentSource(str, Enum):
    """Channel that created the appointment."""

    WEB = "web"
    API = "api"


ALLOWED_TRANSITIONS: Mapping[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class Appointment(TimestampMixin, Base):
    """Reserved interval of a service for one client."""

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, default=generate_ulid)

    service_id = Column(
        String(26), ForeignKey("services.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    # Denormalised from the service for tenant scoping
    store_id = Column(String(26), ForeignKey("stores.id"), nullable=False, index=True)

    start_at = Column(UTCDateTime(), nullable=False, index=True)
    end_at = Column(UTCDateTime(), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)

    # Client snapshot
    client_name = Column(String(200), nullable=False)
    client_email = Column(String(255), nullable=True, index=True)
    client_phone = Column(String(32), nullable=True)
    client_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)

    # Pricing snapshot
    total_price = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_id = Column(String(26), ForeignKey("coupons.id"), nullable=True)

    notes = Column(Text, nullable=True)
    is_simple_booking = Column(Boolean, nullable=False, default=False)
    source = Column(String(10), nullable=False, default=AppointmentSource.WEB.value)
    api_key_id = Column(String(26), ForeignKey("api_keys.id"), nullable=True)

    confirmed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)

    service = relationship("Service", back_populates="appointments")
    store = relationship("Store")
    client = relationship("User")
    coupon = relationship("Coupon")
    coupon_usage = relationship("CouponUsage", back_populates="appointment", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED', 'NO_SHOW')",
            name="ck_appointments_status",
        ),
        CheckConstraint("source IN ('web', 'api')", name="ck_appointments_source"),
        CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
        CheckConstraint("total_price >= 0", name="ck_appointments_price_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_appointments_discount_non_negative"),
        CheckConstraint("end_at > start_at", name="ck_appointments_time_order"),
    )

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATUSES

    def overlaps(self, start_at: datetime, end_at: datetime) -> bool:
        """Half-open interval overlap with ``[start_at, end_at)``."""
        return self.start_at < end_at and self.end_at > start_at

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id}: service={self.service_id}, "
            f"start={self.start_at}, status={self.status}>"
        )


Index(
    "uq_appointments_active_slot",
    Appointment.service_id,
    Appointment.start_at,
    unique=True,
    sqlite_where=Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
    postgresql_where=Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
)

Index("ix_appointments_service_window", Appointment.service_id, Appointment.start_at, Appointment.end_at)
