# backend/agenda/repositories/event_outbox_repository.py
"""
Repository for notification event outbox operations.

Stages rows inside the caller's transaction. Delivery, and the status
bookkeeping that goes with it, belongs to the out-of-process dispatcher.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Optional, cast

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.event_outbox import EventOutbox, EventOutboxStatus

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class EventOutboxRepository:
    """Data access helpers for event outbox rows."""

    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self,
        event_type: str,
        aggregate_id: str,
        payload: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        next_attempt_at: Optional[datetime] = None,
    ) -> EventOutbox:
        """
        Insert a new outbox row unless one already exists for the idempotency key.

        Returns the persisted row (existing or newly created). Runs inside the
        caller's transaction; nothing is committed here.
        """
        next_attempt = next_attempt_at or _now_utc()
        key = idempotency_key or f"{event_type}:{aggregate_id}:{int(next_attempt.timestamp())}"

        existing = cast(
            Optional[EventOutbox],
            self.db.execute(
                select(EventOutbox).where(EventOutbox.idempotency_key == key)
            ).scalar_one_or_none(),
        )
        if existing is not None:
            logger.debug("Outbox event %s already enqueued", key)
            return existing

        row = EventOutbox(
            event_type=event_type,
            aggregate_id=aggregate_id,
            payload=payload or {},
            idempotency_key=key,
            status=EventOutboxStatus.PENDING.value,
            attempt_count=0,
            next_attempt_at=next_attempt,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def list_for_aggregate(self, aggregate_id: str) -> list[EventOutbox]:
        stmt = (
            select(EventOutbox)
            .where(EventOutbox.aggregate_id == aggregate_id)
            .order_by(EventOutbox.created_at.asc(), EventOutbox.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

