"""Unit tests for the appointment lifecycle manager."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from agenda.core.config import settings
from agenda.core.enums import ErrorCode
from agenda.core.exceptions import (
    CouponRejectedException,
    ForbiddenException,
    InvalidStateTransitionException,
    NotFoundException,
    SlotRejectedException,
    SlotUnavailableException,
    ValidationException,
)
from agenda.models import Appointment, AppointmentStatus, CouponUsage, EventOutbox, User
from agenda.repositories.appointment_repository import AppointmentFilters, AppointmentRepository
from agenda.repositories.event_outbox_repository import EventOutboxRepository
from agenda.services.api_key_service import ApiKeyService
from agenda.services.appointment_service import AppointmentRequest, AppointmentService
from agenda.services.tenant_scope import TenantScope

from ..factories import MONDAY, at, make_appointment, make_coupon, make_service, make_store


@pytest.fixture
def appointment_service(db, clock) -> AppointmentService:
    return AppointmentService(db, clock=clock)


def _request(service, start_at, **overrides) -> AppointmentRequest:
    values = {
        "service_id": service.id,
        "start_at": start_at,
        "client_name": "Maria Silva",
        "client_email": "Maria@Example.com",
        "client_phone": "5511988887777",
    }
    values.update(overrides)
    return AppointmentRequest(**values)


def _event_types(db, appointment_id):
    return {row.event_type for row in EventOutboxRepository(db).list_for_aggregate(appointment_id)}


def _api_scope(db, store, permissions, **kwargs) -> TenantScope:
    issued = ApiKeyService(db).issue("Integração", permissions, store_id=store.id, **kwargs)
    return TenantScope.for_api_key(issued.api_key)


class TestCreate:
    def test_public_booking_starts_pending(self, db, appointment_service, service, public_scope):
        appointment = appointment_service.create(public_scope, _request(service, at(14, 0)))

        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.end_at == at(15, 30)
        assert appointment.duration_minutes == 90
        assert appointment.total_price == Decimal("80.00")
        assert appointment.discount_amount == Decimal("0.00")
        assert appointment.client_email == "maria@example.com"
        assert appointment.source == "web"
        assert appointment.confirmed_at is None
        assert _event_types(db, appointment.id) == {"appointment.created"}

    def test_simple_booking_is_confirmed(self, appointment_service, service, public_scope, clock):
        appointment = appointment_service.create(
            public_scope, _request(service, at(14, 0), is_simple_booking=True)
        )
        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.confirmed_at == clock()

    def test_auto_confirm_key_books_confirmed_api_appointments(
        self, db, appointment_service, service, store
    ):
        scope = _api_scope(db, store, {"appointments": ["create"]}, auto_confirm=True)
        appointment = appointment_service.create(scope, _request(service, at(14, 0)))
        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.source == "api"
        assert appointment.api_key_id == scope.api_key_id

    def test_simple_booking_flag_is_ignored_for_api_callers(
        self, db, appointment_service, service, store
    ):
        scope = _api_scope(db, store, {"appointments": ["create"]})
        appointment = appointment_service.create(
            scope, _request(service, at(14, 0), is_simple_booking=True)
        )
        assert appointment.status == AppointmentStatus.PENDING.value

    def test_key_without_create_permission(self, db, appointment_service, service, store):
        scope = _api_scope(db, store, {"appointments": ["read"]})
        with pytest.raises(ForbiddenException) as exc_info:
            appointment_service.create(scope, _request(service, at(14, 0)))
        assert exc_info.value.code == ErrorCode.PERMISSION_DENIED.value

    def test_logged_in_client_is_linked(self, appointment_service, service, client_user):
        scope = TenantScope.for_user(client_user)
        appointment = appointment_service.create(scope, _request(service, at(14, 0)))
        assert appointment.client_id == client_user.id

    def test_staff_booking_is_not_linked_to_staff(self, appointment_service, service, owner_scope):
        appointment = appointment_service.create(owner_scope, _request(service, at(14, 0)))
        assert appointment.client_id is None

    def test_coupon_prices_booking_and_records_usage(
        self, db, appointment_service, service, coupon, public_scope
    ):
        """Scenario: 80.00 service with a 20% coupon capped at 10.00."""
        appointment = appointment_service.create(
            public_scope, _request(service, at(14, 0), coupon_code="bemvindo")
        )

        assert appointment.total_price == Decimal("70.00")
        assert appointment.discount_amount == Decimal("10.00")
        assert appointment.coupon_id == coupon.id
        usage = db.query(CouponUsage).filter_by(appointment_id=appointment.id).one()
        assert usage.coupon_id == coupon.id
        assert usage.client_email == "maria@example.com"
        assert usage.discount_amount == Decimal("10.00")

    def test_rejected_coupon_leaves_nothing_behind(
        self, db, appointment_service, service, store, public_scope
    ):
        make_coupon(db, store, code="VIP", min_amount=Decimal("200.00"))
        with pytest.raises(CouponRejectedException) as exc_info:
            appointment_service.create(
                public_scope, _request(service, at(14, 0), coupon_code="VIP")
            )
        assert exc_info.value.code == ErrorCode.MIN_AMOUNT_NOT_MET.value
        assert db.query(Appointment).count() == 0
        assert db.query(CouponUsage).count() == 0
        assert db.query(EventOutbox).count() == 0

    def test_unknown_coupon(self, appointment_service, service, public_scope):
        with pytest.raises(NotFoundException) as exc_info:
            appointment_service.create(
                public_scope, _request(service, at(14, 0), coupon_code="NOPE")
            )
        assert exc_info.value.code == ErrorCode.COUPON_NOT_FOUND.value

    def test_short_notice_is_rejected(self, db, appointment_service, service, public_scope):
        with pytest.raises(SlotRejectedException) as exc_info:
            appointment_service.create(public_scope, _request(service, at(11, 0)))
        assert exc_info.value.code == ErrorCode.INSUFFICIENT_ADVANCE_TIME.value
        assert db.query(Appointment).count() == 0

    def test_taken_slot_is_unavailable(self, db, appointment_service, service, public_scope):
        make_appointment(db, service, at(14, 0))
        with pytest.raises(SlotUnavailableException):
            appointment_service.create(public_scope, _request(service, at(15, 0)))

    def test_inactive_service_is_not_found(self, db, appointment_service, store, public_scope):
        retired = make_service(db, store, name="Antigo", active=False)
        with pytest.raises(NotFoundException):
            appointment_service.create(public_scope, _request(retired, at(14, 0)))

    def test_service_of_another_tenant_is_not_found(self, db, appointment_service, owner_scope):
        stranger = User(email="outro@example.com", name="Outro", role="STORE_OWNER")
        db.add(stranger)
        db.commit()
        foreign_service = make_service(db, make_store(db, "outro-salao", owner=stranger))
        with pytest.raises(NotFoundException):
            appointment_service.create(owner_scope, _request(foreign_service, at(14, 0)))


class TestCommitRace:
    """A booking that slips past the conflict check is caught by the slot index."""

    @staticmethod
    def _blind_first_check():
        real_find_conflicts = AppointmentRepository.find_conflicts
        calls = []

        def find_conflicts(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return []
            return real_find_conflicts(self, *args, **kwargs)

        return calls, find_conflicts

    def test_collision_is_retried_then_reported_unavailable(
        self, db, appointment_service, service, public_scope
    ):
        winner = make_appointment(db, service, at(14, 0))
        calls, blind = self._blind_first_check()

        with patch.object(AppointmentRepository, "find_conflicts", blind):
            with pytest.raises(SlotUnavailableException) as exc_info:
                appointment_service.create(public_scope, _request(service, at(14, 0)))

        assert exc_info.value.code == ErrorCode.TIME_SLOT_UNAVAILABLE.value
        assert len(calls) == 2
        active = db.query(Appointment).filter(Appointment.status.in_(["PENDING", "CONFIRMED"]))
        assert [row.id for row in active] == [winner.id]

    def test_collision_without_retries(self, db, appointment_service, service, public_scope):
        make_appointment(db, service, at(14, 0))
        calls, blind = self._blind_first_check()

        with patch.object(settings, "booking_commit_retries", 0), patch.object(
            AppointmentRepository, "find_conflicts", blind
        ):
            with pytest.raises(SlotUnavailableException):
                appointment_service.create(public_scope, _request(service, at(14, 0)))
        assert len(calls) == 1

    def test_cancelled_slot_can_be_rebooked(self, db, appointment_service, service, public_scope):
        make_appointment(db, service, at(14, 0), status=AppointmentStatus.CANCELLED)
        appointment = appointment_service.create(public_scope, _request(service, at(14, 0)))
        assert appointment.status == AppointmentStatus.PENDING.value


class TestTransitions:
    @pytest.fixture
    def pending(self, db, service):
        return make_appointment(db, service, at(14, 0), status=AppointmentStatus.PENDING)

    def test_confirm_stamps_time_and_emits_event(
        self, db, appointment_service, pending, owner_scope, clock
    ):
        appointment = appointment_service.transition(
            owner_scope, pending.id, AppointmentStatus.CONFIRMED
        )
        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.confirmed_at == clock()
        assert "appointment.confirmed" in _event_types(db, pending.id)

    def test_cancel_stamps_cancelled_at(self, appointment_service, pending, owner_scope, clock):
        appointment = appointment_service.transition(
            owner_scope, pending.id, AppointmentStatus.CANCELLED
        )
        assert appointment.cancelled_at == clock()

    def test_pending_cannot_complete(self, appointment_service, pending, owner_scope):
        with pytest.raises(InvalidStateTransitionException) as exc_info:
            appointment_service.transition(owner_scope, pending.id, AppointmentStatus.COMPLETED)
        assert exc_info.value.code == ErrorCode.INVALID_STATE_TRANSITION.value
        assert exc_info.value.details == {
            "current_status": "PENDING",
            "target_status": "COMPLETED",
        }

    @pytest.mark.parametrize(
        "terminal",
        [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW],
    )
    @pytest.mark.parametrize("target", list(AppointmentStatus))
    def test_terminal_states_are_final(
        self, db, appointment_service, service, owner_scope, terminal, target
    ):
        done = make_appointment(db, service, at(14, 0), status=terminal)
        with pytest.raises(InvalidStateTransitionException):
            appointment_service.transition(owner_scope, done.id, target)

    def test_no_show_only_after_start(self, db, appointment_service, service, owner_scope, clock):
        confirmed = make_appointment(db, service, at(14, 0))
        with pytest.raises(InvalidStateTransitionException):
            appointment_service.transition(owner_scope, confirmed.id, AppointmentStatus.NO_SHOW)

        clock.advance(hours=4, minutes=5)
        appointment = appointment_service.transition(
            owner_scope, confirmed.id, AppointmentStatus.NO_SHOW
        )
        assert appointment.status == AppointmentStatus.NO_SHOW.value

    def test_complete_stamps_completed_at(
        self, db, appointment_service, service, owner_scope, clock
    ):
        confirmed = make_appointment(db, service, at(14, 0))
        appointment = appointment_service.transition(
            owner_scope, confirmed.id, AppointmentStatus.COMPLETED
        )
        assert appointment.completed_at == clock()
        assert "appointment.completed" in _event_types(db, confirmed.id)

    def test_expected_status_mismatch(self, appointment_service, pending, owner_scope):
        with pytest.raises(InvalidStateTransitionException) as exc_info:
            appointment_service.transition(
                owner_scope,
                pending.id,
                AppointmentStatus.CANCELLED,
                expected_status=AppointmentStatus.CONFIRMED,
            )
        assert "expected CONFIRMED" in exc_info.value.message

    def test_losing_compare_and_set(self, appointment_service, pending, owner_scope):
        with patch.object(AppointmentRepository, "compare_and_set_status", return_value=False):
            with pytest.raises(InvalidStateTransitionException) as exc_info:
                appointment_service.transition(
                    owner_scope, pending.id, AppointmentStatus.CONFIRMED
                )
        assert "another request" in exc_info.value.message

    def test_public_caller_cannot_change_status(self, appointment_service, pending, public_scope):
        with pytest.raises(ForbiddenException) as exc_info:
            appointment_service.transition(public_scope, pending.id, AppointmentStatus.CANCELLED)
        assert exc_info.value.code == ErrorCode.PERMISSION_DENIED.value

    def test_out_of_scope_appointment_is_not_found(self, db, appointment_service, pending):
        other_key_scope = _api_scope(
            db, make_store(db, "vizinho"), {"appointments": ["read", "update"]}
        )
        with pytest.raises(NotFoundException) as exc_info:
            appointment_service.transition(
                other_key_scope, pending.id, AppointmentStatus.CONFIRMED
            )
        assert exc_info.value.code == ErrorCode.NOT_FOUND.value

    def test_cancel_requires_delete_permission(self, db, appointment_service, pending, store):
        updater = _api_scope(db, store, {"appointments": ["update"]})
        with pytest.raises(ForbiddenException):
            appointment_service.cancel(updater, pending.id)

        deleter = _api_scope(db, store, {"appointments": ["delete"]})
        assert appointment_service.cancel(deleter, pending.id).status == "CANCELLED"


class TestReschedule:
    @pytest.fixture
    def booked(self, db, service):
        return make_appointment(db, service, at(14, 0))

    def test_moves_interval_and_emits_event(self, db, appointment_service, booked, owner_scope):
        appointment = appointment_service.reschedule(owner_scope, booked.id, at(16, 0))
        assert appointment.start_at == at(16, 0)
        assert appointment.end_at == at(17, 30)
        assert "appointment.rescheduled" in _event_types(db, booked.id)

    def test_every_move_emits_its_own_event(self, db, appointment_service, booked, owner_scope):
        for start in (at(16, 0), at(14, 0), at(16, 0)):
            appointment_service.reschedule(owner_scope, booked.id, start)

        rows = EventOutboxRepository(db).list_for_aggregate(booked.id)
        moves = [row for row in rows if row.event_type == "appointment.rescheduled"]
        assert len(moves) == 3
        assert sorted(row.payload["local_time"] for row in moves) == ["14:00", "16:00", "16:00"]

    def test_shift_inside_own_interval(self, appointment_service, booked, owner_scope):
        appointment = appointment_service.reschedule(owner_scope, booked.id, at(14, 30))
        assert appointment.start_at == at(14, 30)

    def test_cannot_move_onto_another_booking(
        self, db, appointment_service, service, booked, owner_scope
    ):
        make_appointment(db, service, at(16, 0), client_email="other@example.com")
        with pytest.raises(SlotUnavailableException):
            appointment_service.reschedule(owner_scope, booked.id, at(15, 30))

    def test_new_start_must_respect_working_hours(self, appointment_service, booked, owner_scope):
        with pytest.raises(SlotRejectedException) as exc_info:
            appointment_service.reschedule(owner_scope, booked.id, at(17, 0))
        assert exc_info.value.code == ErrorCode.OUTSIDE_WORKING_HOURS.value

    def test_cancelled_appointment_cannot_move(self, db, appointment_service, service, owner_scope):
        cancelled = make_appointment(db, service, at(14, 0), status=AppointmentStatus.CANCELLED)
        with pytest.raises(InvalidStateTransitionException):
            appointment_service.reschedule(owner_scope, cancelled.id, at(16, 0))


class TestDetailsAndReads:
    @pytest.fixture
    def booked(self, db, service):
        return make_appointment(db, service, at(14, 0), client_email="maria@example.com")

    def test_update_details(self, appointment_service, booked, owner_scope, clock):
        appointment = appointment_service.update_details(
            owner_scope, booked.id, {"notes": "Prefere a cadeira da janela", "client_phone": None}
        )
        assert appointment.notes == "Prefere a cadeira da janela"
        assert appointment.client_phone is None
        assert appointment.updated_at == clock()

    def test_update_rejects_schedule_fields(self, appointment_service, booked, owner_scope):
        with pytest.raises(ValidationException) as exc_info:
            appointment_service.update_details(owner_scope, booked.id, {"start_at": at(16, 0)})
        assert exc_info.value.details == {"fields": ["start_at"]}

    def test_update_rejects_blank_name(self, appointment_service, booked, owner_scope):
        with pytest.raises(ValidationException):
            appointment_service.update_details(owner_scope, booked.id, {"client_name": "  "})

    def test_get_in_scope(self, appointment_service, booked, owner_scope):
        assert appointment_service.get(owner_scope, booked.id).id == booked.id

    def test_get_unknown(self, appointment_service, owner_scope):
        with pytest.raises(NotFoundException):
            appointment_service.get(owner_scope, "01HZZZZZZZZZZZZZZZZZZZZZZZ")

    def test_list_filters_and_paginates(self, db, appointment_service, service, owner_scope):
        for hour in (8, 10, 12):
            make_appointment(db, service, at(hour, day=MONDAY + timedelta(days=1)))
        make_appointment(db, service, at(16, 0), status=AppointmentStatus.CANCELLED)

        page = appointment_service.list(owner_scope, page=1, limit=2)
        assert page.total == 4
        assert page.pages == 2
        assert len(page.items) == 2
        assert page.items[0].start_at >= page.items[1].start_at

        cancelled = appointment_service.list(
            owner_scope, AppointmentFilters(status="CANCELLED")
        )
        assert [row.status for row in cancelled.items] == ["CANCELLED"]

    def test_list_limit_is_capped(self, appointment_service, owner_scope):
        assert appointment_service.list(owner_scope, limit=1000).limit == 100

    def test_list_unknown_status(self, appointment_service, owner_scope):
        with pytest.raises(ValidationException):
            appointment_service.list(owner_scope, AppointmentFilters(status="LOST"))

    def test_list_accepts_store_local_date_bounds(
        self, db, appointment_service, service, booked, owner_scope
    ):
        page = appointment_service.list(
            owner_scope,
            AppointmentFilters(
                start_from=datetime(2030, 1, 7, 13, 0), start_to=datetime(2030, 1, 7, 15, 0)
            ),
        )
        assert [row.id for row in page.items] == [booked.id]

    def test_list_hides_other_tenants(self, db, appointment_service, booked):
        scope = _api_scope(db, make_store(db, "vizinho"), {"appointments": ["read"]})
        assert appointment_service.list(scope).total == 0
