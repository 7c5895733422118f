# backend/agenda/repositories/appointment_repository.py
"""
Appointment data access.

Conflict lookups, scoped reads and compare-and-set status updates. The
repository flushes but never commits; ``IntegrityError`` raised by the active
slot index is left for the appointment service to handle.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import ACTIVE_APPOINTMENT_STATUSES
from ..core.exceptions import RepositoryException
from ..models.appointment import Appointment
from .base_repository import BaseRepository

if TYPE_CHECKING:
    from ..services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppointmentFilters:
    status: Optional[str] = None
    service_id: Optional[str] = None
    client_email: Optional[str] = None
    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    # ------------------------------------------------------------- conflicts
    def find_conflicts(
        self,
        service_id: str,
        start_at: datetime,
        end_at: datetime,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Appointment]:
        """
        Active appointments of ``service_id`` overlapping ``[start_at, end_at)``.

        Two intervals overlap when each starts before the other ends.
        """
        try:
            query = self.db.query(Appointment).filter(
                Appointment.service_id == service_id,
                Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
                Appointment.start_at < end_at,
                Appointment.end_at > start_at,
            )
            if exclude_appointment_id:
                query = query.filter(Appointment.id != exclude_appointment_id)
            return query.order_by(Appointment.start_at.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error("Error checking conflicts for service %s: %s", service_id, e)
            raise RepositoryException(f"Failed to check appointment conflicts: {e}") from e

    def list_active_between(
        self, service_id: str, window_start: datetime, window_end: datetime
    ) -> List[Appointment]:
        """Active appointments of a service touching a window (used for the day grid)."""
        return self.find_conflicts(service_id, window_start, window_end)

    # ------------------------------------------------------------- scoped reads
    def scoped_query(self, scope: "TenantScope"):
        return scope.apply(self.db.query(Appointment), Appointment.store_id)

    def get_in_scope(self, scope: "TenantScope", appointment_id: str) -> Optional[Appointment]:
        try:
            return self.scoped_query(scope).filter(Appointment.id == appointment_id).first()
        except SQLAlchemyError as e:
            self.logger.error("Error loading appointment %s: %s", appointment_id, e)
            raise RepositoryException(f"Failed to retrieve Appointment: {e}") from e

    def list_in_scope(
        self,
        scope: "TenantScope",
        filters: AppointmentFilters,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Appointment], int]:
        """Return one page of matching appointments and the total match count."""
        query = self.scoped_query(scope)
        if filters.status:
            query = query.filter(Appointment.status == filters.status)
        if filters.service_id:
            query = query.filter(Appointment.service_id == filters.service_id)
        if filters.client_email:
            query = query.filter(Appointment.client_email == filters.client_email.strip().lower())
        if filters.start_from:
            query = query.filter(Appointment.start_at >= filters.start_from)
        if filters.start_to:
            query = query.filter(Appointment.start_at <= filters.start_to)
        try:
            total = query.count()
            items = (
                query.order_by(Appointment.start_at.desc(), Appointment.id.asc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return items, total
        except SQLAlchemyError as e:
            self.logger.error("Error listing appointments: %s", e)
            raise RepositoryException(f"Failed to list appointments: {e}") from e

    # ------------------------------------------------------------- writes
    def compare_and_set_status(
        self,
        appointment_id: str,
        expected: Sequence[str],
        target: str,
        extra_values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Move an appointment to ``target`` only if its status is still one of ``expected``.

        Returns:
            True when exactly one row changed; False when another writer got there first
        """
        values: Dict[str, Any] = {"status": target}
        values.update(extra_values or {})
        result = self.db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status.in_(list(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return bool(result.rowcount == 1)

    def move(
        self,
        appointment: Appointment,
        start_at: datetime,
        end_at: datetime,
        updated_at: datetime,
    ) -> Appointment:
        """Shift an appointment to a new interval; active-slot collisions raise on flush."""
        appointment.start_at = start_at
        appointment.end_at = end_at
        appointment.updated_at = updated_at
        self.db.flush()
        return appointment
