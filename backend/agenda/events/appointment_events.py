"""Appointment domain events written to the notification outbox."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..core.timezone_utils import to_store_local
from ..models.appointment import Appointment, AppointmentStatus
from ..models.types import generate_ulid


class AppointmentEventKind(str, Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"


STATUS_EVENT_KINDS: Dict[AppointmentStatus, AppointmentEventKind] = {
    AppointmentStatus.CONFIRMED: AppointmentEventKind.CONFIRMED,
    AppointmentStatus.CANCELLED: AppointmentEventKind.CANCELLED,
    AppointmentStatus.COMPLETED: AppointmentEventKind.COMPLETED,
    AppointmentStatus.NO_SHOW: AppointmentEventKind.NO_SHOW,
}


@dataclass
class AppointmentNotification:
    """Everything a client notification needs, rendered in store-local time."""

    kind: AppointmentEventKind
    appointment_id: str
    status: str
    store_id: str
    store_name: str
    store_phone: Optional[str]
    service_id: str
    service_name: str
    client_name: str
    client_email: Optional[str]
    client_phone: Optional[str]
    local_date: str
    local_time: str
    start_at: datetime
    occurred_at: datetime
    event_id: str = field(default_factory=generate_ulid)

    @property
    def event_type(self) -> str:
        return f"appointment.{self.kind.value}"

    @property
    def idempotency_key(self) -> str:
        # an appointment can be moved any number of times, even back to an earlier start
        if self.kind == AppointmentEventKind.RESCHEDULED:
            return f"{self.event_type}:{self.appointment_id}:{self.event_id}"
        return f"{self.event_type}:{self.appointment_id}"

    @classmethod
    def from_appointment(
        cls, appointment: Appointment, kind: AppointmentEventKind, occurred_at: datetime
    ) -> "AppointmentNotification":
        local_start = to_store_local(appointment.start_at)
        service = appointment.service
        store = service.store
        return cls(
            kind=kind,
            appointment_id=appointment.id,
            status=appointment.status,
            store_id=store.id,
            store_name=store.name,
            store_phone=store.phone,
            service_id=service.id,
            service_name=service.name,
            client_name=appointment.client_name,
            client_email=appointment.client_email,
            client_phone=appointment.client_phone,
            local_date=local_start.strftime("%Y-%m-%d"),
            local_time=local_start.strftime("%H:%M"),
            start_at=appointment.start_at,
            occurred_at=occurred_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data
