"""Event publisher - writes notification events to the transactional outbox."""
from datetime import datetime
import logging
from typing import Any, Dict, Protocol

from ..models.event_outbox import EventOutbox
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.event_outbox_repository import EventOutboxRepository

logger = logging.getLogger(__name__)


class OutboxEvent(Protocol):
    """Protocol for events that can be stored in the outbox."""

    @property
    def event_type(self) -> str:
        ...

    @property
    def idempotency_key(self) -> str:
        ...

    appointment_id: str

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventPublisher:
    """
    Stages events in the outbox inside the caller's transaction.

    Nothing is delivered here; an external dispatcher drains pending rows.
    """

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(self, event: OutboxEvent) -> EventOutbox:
        payload = event.to_dict()

        # Convert datetime objects to ISO strings for JSON serialization
        for key, value in payload.items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat()

        row = self.outbox_repo.enqueue(
            event_type=event.event_type,
            aggregate_id=event.appointment_id,
            payload=payload,
            idempotency_key=event.idempotency_key,
        )
        prometheus_metrics.record_outbox_event(event.event_type)
        logger.debug("Staged outbox event %s for %s", event.event_type, event.appointment_id)
        return row
