"""Domain events and the outbox publisher."""
from .appointment_events import STATUS_EVENT_KINDS, AppointmentEventKind, AppointmentNotification
from .publisher import EventPublisher

__all__ = [
    "STATUS_EVENT_KINDS",
    "AppointmentEventKind",
    "AppointmentNotification",
    "EventPublisher",
]
