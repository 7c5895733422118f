# backend/agenda/services/appointment_service.py
"""
Appointment Lifecycle Manager for the Agenda booking engine.

Owns every write to appointments:

- ``create``: scope check, availability, coupon pricing, then one atomic commit
  of the appointment, its coupon usage and its notification event.
- ``transition``: status changes along the lifecycle table, applied as a
  compare-and-set on the current status.
- ``reschedule``: moves an active appointment after re-running availability
  without counting its own slot.
- ``update_details``, ``get`` and ``list`` for the integration API.

Concurrency: inside the write transaction the service row is locked and the
availability rules re-run. If the active-slot unique index still rejects the
insert (or the database reports a deadlock) the transaction is rolled back and
the whole check runs once more from scratch; a second collision is reported
as ``TIME_SLOT_UNAVAILABLE``.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import ACTIVE_APPOINTMENT_STATUSES, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.enums import ApiAction, ApiResource, ErrorCode
from ..core.exceptions import (
    DomainException,
    InvalidStateTransitionException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import Clock, ensure_utc
from ..events import (
    STATUS_EVENT_KINDS,
    AppointmentEventKind,
    AppointmentNotification,
    EventPublisher,
)
from ..models.appointment import (
    Appointment,
    AppointmentSource,
    AppointmentStatus,
    can_transition,
)
from ..models.service import Service
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.appointment_repository import AppointmentFilters
from .availability_resolver import AvailabilityResolver
from .base import BaseService, is_retryable_write_conflict
from .coupon_evaluator import ZERO, ClientIdentity, CouponEvaluator, to_money
from .tenant_scope import TenantScope

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields callers may edit without touching the schedule or status
EDITABLE_DETAIL_FIELDS = ("notes", "client_name", "client_phone")


@dataclass(frozen=True)
class AppointmentRequest:
    """Validated input for ``AppointmentService.create``."""

    service_id: str
    start_at: datetime
    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    coupon_code: Optional[str] = None
    is_simple_booking: bool = False


@dataclass(frozen=True)
class AppointmentPage:
    items: List[Appointment]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


class AppointmentService(BaseService):
    """Service layer for appointment writes and scoped reads."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        resolver: Optional[AvailabilityResolver] = None,
        coupon_evaluator: Optional[CouponEvaluator] = None,
    ):
        super().__init__(db, clock)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)
        self.coupon_repository = RepositoryFactory.create_coupon_repository(db)
        self.resolver = resolver or AvailabilityResolver(
            db, clock=self.clock, appointment_repository=self.appointment_repository
        )
        self.coupon_evaluator = coupon_evaluator or CouponEvaluator(
            db, clock=self.clock, coupon_repository=self.coupon_repository
        )
        self.publisher = EventPublisher(RepositoryFactory.create_event_outbox_repository(db))

    # ------------------------------------------------------------------ create
    @BaseService.measure_operation("create_appointment")
    def create(self, scope: TenantScope, request: AppointmentRequest) -> Appointment:
        """
        Book ``request.start_at`` on a service visible to ``scope``.

        Raises:
            ForbiddenException: Caller may not create appointments
            NotFoundException: Service missing, inactive or out of scope
            SlotRejectedException: Date, lead-time or working-hours rule failed
            SlotUnavailableException: Slot already held
            CouponRejectedException / NotFoundException: Coupon not usable
        """
        scope.require(ApiResource.APPOINTMENTS, ApiAction.CREATE)
        source = scope.source.value
        try:
            appointment = self._with_conflict_retry(
                "create_appointment", lambda: self._create_once(scope, request)
            )
        except DomainException as exc:
            prometheus_metrics.record_booking_attempt(source, exc.code)
            raise
        prometheus_metrics.record_booking_attempt(source, "created")
        self.log_operation(
            "create_appointment",
            appointment_id=appointment.id,
            service_id=appointment.service_id,
            status=appointment.status,
            scope=scope.describe(),
        )
        return appointment

    def _create_once(self, scope: TenantScope, request: AppointmentRequest) -> Appointment:
        with self.transaction():
            service = self._load_bookable_service(scope, request.service_id)
            now = self.now()
            start_at = ensure_utc(request.start_at)

            self.resolver.ensure_bookable(service, start_at)

            # Staff booking on behalf of a client is not that client
            client_user_id = scope.user_id if scope.is_public else None
            client = ClientIdentity(user_id=client_user_id, email=request.client_email)
            raw_price = to_money(service.price)
            application = None
            if request.coupon_code:
                coupon = self.coupon_repository.get_by_code(service.store_id, request.coupon_code)
                if coupon is None:
                    raise NotFoundException(
                        "Coupon not found",
                        code=ErrorCode.COUPON_NOT_FOUND,
                        details={"code": request.coupon_code.strip().upper()},
                    )
                coupon = self.coupon_repository.lock_for_update(coupon.id) or coupon
                application = self.coupon_evaluator.apply(
                    coupon, raw_price, client, booking_instant=now
                )

            status = self._initial_status(scope, request)
            appointment = Appointment(
                service_id=service.id,
                store_id=service.store_id,
                start_at=start_at,
                end_at=start_at + timedelta(minutes=service.duration),
                duration_minutes=service.duration,
                status=status.value,
                client_name=request.client_name,
                client_email=client.normalized_email,
                client_phone=request.client_phone,
                client_id=client_user_id,
                total_price=application.final_price if application else raw_price,
                discount_amount=application.discount if application else ZERO,
                coupon_id=application.coupon.id if application else None,
                notes=request.notes,
                is_simple_booking=request.is_simple_booking,
                source=scope.source.value,
                api_key_id=scope.api_key_id,
                confirmed_at=now if status == AppointmentStatus.CONFIRMED else None,
                created_at=now,
                updated_at=now,
            )
            self.appointment_repository.add(appointment)

            if application is not None and application.usage is not None:
                application.usage.appointment_id = appointment.id
                application.usage.created_at = now
                self.coupon_repository.add(application.usage)

            self._publish(appointment, AppointmentEventKind.CREATED, now)
        return appointment

    def _initial_status(self, scope: TenantScope, request: AppointmentRequest) -> AppointmentStatus:
        if scope.auto_confirm:
            return AppointmentStatus.CONFIRMED
        if (
            scope.source == AppointmentSource.WEB
            and request.is_simple_booking
            and settings.simple_booking_auto_confirm
        ):
            return AppointmentStatus.CONFIRMED
        return AppointmentStatus.PENDING

    # ------------------------------------------------------------------ transition
    @BaseService.measure_operation("transition_appointment")
    def transition(
        self,
        scope: TenantScope,
        appointment_id: str,
        target: AppointmentStatus,
        expected_status: Optional[AppointmentStatus] = None,
        action: ApiAction = ApiAction.UPDATE,
    ) -> Appointment:
        """
        Move an appointment to ``target``.

        ``expected_status`` lets a caller assert what it last saw; the write is
        a compare-and-set on the status read here, so of two concurrent
        transitions from the same state only one applies.

        Raises:
            ForbiddenException: Caller may not change appointments
            NotFoundException: Missing or out of scope
            InvalidStateTransitionException: Not allowed from the current state,
                NO_SHOW before the start time, or a concurrent change won
        """
        scope.require(ApiResource.APPOINTMENTS, action)
        target = AppointmentStatus(target)
        with self.transaction():
            appointment = self._load_in_scope(scope, appointment_id)
            current = AppointmentStatus(appointment.status)
            now = self.now()

            if expected_status is not None and AppointmentStatus(expected_status) != current:
                raise InvalidStateTransitionException(
                    current.value,
                    target.value,
                    reason=(
                        f"Appointment status is {current.value}, "
                        f"expected {AppointmentStatus(expected_status).value}"
                    ),
                )
            if not can_transition(current, target):
                raise InvalidStateTransitionException(current.value, target.value)
            if target == AppointmentStatus.NO_SHOW and now < appointment.start_at:
                raise InvalidStateTransitionException(
                    current.value,
                    target.value,
                    reason="An appointment can only be marked as no-show after it has started",
                )

            values: Dict[str, Any] = {"updated_at": now}
            if target == AppointmentStatus.CONFIRMED:
                values["confirmed_at"] = now
            elif target == AppointmentStatus.CANCELLED:
                values["cancelled_at"] = now
            elif target == AppointmentStatus.COMPLETED:
                values["completed_at"] = now

            applied = self.appointment_repository.compare_and_set_status(
                appointment.id, [current.value], target.value, values
            )
            self.db.refresh(appointment)
            if not applied:
                raise InvalidStateTransitionException(
                    appointment.status,
                    target.value,
                    reason="Appointment was changed by another request",
                )
            self._publish(appointment, STATUS_EVENT_KINDS[target], now)

        prometheus_metrics.record_transition(current.value, target.value)
        self.log_operation(
            "transition_appointment",
            appointment_id=appointment.id,
            from_status=current.value,
            to_status=target.value,
        )
        return appointment

    def cancel(self, scope: TenantScope, appointment_id: str) -> Appointment:
        """Integration API DELETE: cancellation guarded by the delete capability."""
        return self.transition(
            scope, appointment_id, AppointmentStatus.CANCELLED, action=ApiAction.DELETE
        )

    # ------------------------------------------------------------------ reschedule
    @BaseService.measure_operation("reschedule_appointment")
    def reschedule(self, scope: TenantScope, appointment_id: str, new_start: datetime) -> Appointment:
        """
        Move a PENDING or CONFIRMED appointment to ``new_start``.

        Availability is re-evaluated without counting the appointment's own
        slot, so shifting within its current interval is allowed.
        """
        scope.require(ApiResource.APPOINTMENTS, ApiAction.UPDATE)
        appointment = self._with_conflict_retry(
            "reschedule_appointment",
            lambda: self._reschedule_once(scope, appointment_id, new_start),
        )
        self.log_operation(
            "reschedule_appointment",
            appointment_id=appointment.id,
            start_at=appointment.start_at.isoformat(),
        )
        return appointment

    def _reschedule_once(
        self, scope: TenantScope, appointment_id: str, new_start: datetime
    ) -> Appointment:
        with self.transaction():
            appointment = self._load_in_scope(scope, appointment_id)
            service = self.service_repository.lock_for_update(appointment.service_id)
            if service is None:
                raise NotFoundException("Service not found", details={"id": appointment.service_id})
            # status may have changed while waiting for the lock
            self.db.refresh(appointment)
            if appointment.status not in ACTIVE_APPOINTMENT_STATUSES:
                raise InvalidStateTransitionException(
                    appointment.status,
                    appointment.status,
                    reason=f"Cannot reschedule an appointment that is {appointment.status}",
                )

            start_at = ensure_utc(new_start)
            self.resolver.ensure_bookable(service, start_at, exclude_appointment_id=appointment.id)

            now = self.now()
            self.appointment_repository.move(
                appointment,
                start_at=start_at,
                end_at=start_at + timedelta(minutes=service.duration),
                updated_at=now,
            )
            appointment.duration_minutes = service.duration
            self._publish(appointment, AppointmentEventKind.RESCHEDULED, now)
        return appointment

    # ------------------------------------------------------------------ details
    @BaseService.measure_operation("update_appointment_details")
    def update_details(
        self, scope: TenantScope, appointment_id: str, changes: Dict[str, Any]
    ) -> Appointment:
        """Edit notes and client contact fields; other keys are rejected."""
        scope.require(ApiResource.APPOINTMENTS, ApiAction.UPDATE)
        unknown = sorted(set(changes) - set(EDITABLE_DETAIL_FIELDS))
        if unknown:
            raise ValidationException(
                "Unsupported fields for appointment update", details={"fields": unknown}
            )
        if "client_name" in changes and not (changes["client_name"] or "").strip():
            raise ValidationException("Client name cannot be empty", details={"field": "client_name"})

        with self.transaction():
            appointment = self._load_in_scope(scope, appointment_id)
            for key, value in changes.items():
                setattr(appointment, key, value)
            appointment.updated_at = self.now()
            self.appointment_repository.flush()
        return appointment

    # ------------------------------------------------------------------ reads
    @BaseService.measure_operation("get_appointment")
    def get(self, scope: TenantScope, appointment_id: str) -> Appointment:
        scope.require(ApiResource.APPOINTMENTS, ApiAction.READ)
        return self._load_in_scope(scope, appointment_id)

    @BaseService.measure_operation("list_appointments")
    def list(
        self,
        scope: TenantScope,
        filters: Optional[AppointmentFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> AppointmentPage:
        """One page of appointments visible to ``scope``; ``limit`` is capped at 100."""
        scope.require(ApiResource.APPOINTMENTS, ApiAction.READ)
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        if filters and filters.status:
            try:
                AppointmentStatus(filters.status)
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown status: {filters.status}", details={"field": "status"}
                ) from exc
        filters = self._normalize_filters(filters or AppointmentFilters())
        items, total = self.appointment_repository.list_in_scope(
            scope, filters, offset=(page - 1) * limit, limit=limit
        )
        return AppointmentPage(items=items, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------ helpers
    @staticmethod
    def _normalize_filters(filters: AppointmentFilters) -> AppointmentFilters:
        return replace(
            filters,
            start_from=ensure_utc(filters.start_from) if filters.start_from else None,
            start_to=ensure_utc(filters.start_to) if filters.start_to else None,
        )

    def _with_conflict_retry(self, operation: str, attempt: Callable[[], T]) -> T:
        retries = settings.booking_commit_retries
        for attempt_no in range(retries + 1):
            try:
                return attempt()
            except DBAPIError as exc:
                if not is_retryable_write_conflict(exc):
                    raise
                self.logger.warning(
                    "%s hit a write conflict on attempt %d: %s",
                    operation,
                    attempt_no + 1,
                    type(exc).__name__,
                )
                if attempt_no >= retries:
                    raise SlotUnavailableException() from exc
                prometheus_metrics.record_commit_retry(operation)
        raise SlotUnavailableException()

    def _load_bookable_service(self, scope: TenantScope, service_id: str) -> Service:
        service = self.service_repository.get_in_scope(scope, service_id)
        if service is None or not service.active or not service.store.active:
            raise NotFoundException("Service not found", details={"id": service_id})
        locked = self.service_repository.lock_for_update(service.id)
        return locked or service

    def _load_in_scope(self, scope: TenantScope, appointment_id: str) -> Appointment:
        appointment = self.appointment_repository.get_in_scope(scope, appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found", details={"id": appointment_id})
        return appointment

    def _publish(self, appointment: Appointment, kind: AppointmentEventKind, now: datetime) -> None:
        self.publisher.publish(AppointmentNotification.from_appointment(appointment, kind, now))
