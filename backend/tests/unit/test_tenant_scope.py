"""Unit tests for caller scoping and API key capabilities."""

from types import SimpleNamespace

import pytest

from agenda.core.enums import ApiAction, ApiResource, ErrorCode
from agenda.core.exceptions import ForbiddenException
from agenda.models import Appointment, AppointmentSource, Company, User
from agenda.services.tenant_scope import CapabilitySet, ScopeKind, TenantScope

from ..factories import at, make_appointment, make_service, make_store

APPOINTMENTS_READ = (ApiResource.APPOINTMENTS, ApiAction.READ)
APPOINTMENTS_CREATE = (ApiResource.APPOINTMENTS, ApiAction.CREATE)


def _api_key(**overrides):
    values = {
        "id": "01HZZZZZZZZZZZZZZZZZZZZZZZ",
        "permissions": {"appointments": ["read"]},
        "company_id": None,
        "store_id": None,
        "auto_confirm": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestCapabilitySetParse:
    def test_wildcard_string_grants_everything(self):
        assert CapabilitySet.parse("*") == CapabilitySet.full()

    def test_admin_flag_grants_everything(self):
        assert CapabilitySet.parse({"admin": True}) == CapabilitySet.full()

    def test_resource_true_grants_all_actions(self):
        caps = CapabilitySet.parse({"appointments": True})
        assert len(caps) == len(ApiAction)
        assert not caps.allows(ApiResource.SERVICES, ApiAction.READ)

    def test_action_list(self):
        caps = CapabilitySet.parse({"appointments": ["read", "create"]})
        assert APPOINTMENTS_READ in caps
        assert APPOINTMENTS_CREATE in caps
        assert not caps.allows(ApiResource.APPOINTMENTS, ApiAction.DELETE)

    def test_action_mapping_uses_truthy_entries(self):
        caps = CapabilitySet.parse({"appointments": {"read": True, "delete": False}})
        assert caps.grants == frozenset({APPOINTMENTS_READ})

    def test_resource_wildcard(self):
        caps = CapabilitySet.parse({"*": ["read"]})
        assert all(caps.allows(resource, ApiAction.READ) for resource in ApiResource)
        assert not caps.allows(ApiResource.COUPONS, ApiAction.UPDATE)

    def test_unknown_resources_and_actions_are_ignored(self):
        caps = CapabilitySet.parse({"invoices": True, "appointments": ["read", "launch"]})
        assert caps.grants == frozenset({APPOINTMENTS_READ})

    @pytest.mark.parametrize("raw", [None, [], "read", 42, {"appointments": "yes"}])
    def test_malformed_documents_grant_nothing(self, raw):
        assert len(CapabilitySet.parse(raw)) == 0


class TestTenantScopeBuilders:
    def test_owner_scope(self):
        user = User(id="u1", email="o@example.com", name="Owner", role="STORE_OWNER", active=True)
        scope = TenantScope.for_user(user)
        assert scope.kind == ScopeKind.OWNER
        assert scope.owner_id == "u1"
        assert scope.can(ApiResource.APPOINTMENTS, ApiAction.UPDATE)

    def test_admin_scope(self):
        user = User(id="a1", email="a@example.com", name="Admin", role="ADMIN", active=True)
        assert TenantScope.for_user(user).kind == ScopeKind.ADMIN

    def test_client_user_is_public_but_identified(self):
        user = User(id="c1", email="c@example.com", name="Client", role="CLIENT", active=True)
        scope = TenantScope.for_user(user)
        assert scope.is_public
        assert scope.user_id == "c1"
        assert not scope.can(ApiResource.APPOINTMENTS, ApiAction.UPDATE)

    def test_inactive_user_falls_back_to_anonymous(self):
        user = User(id="o2", email="x@example.com", name="Gone", role="STORE_OWNER", active=False)
        scope = TenantScope.for_user(user)
        assert scope.is_public
        assert scope.user_id is None

    def test_store_bound_key(self):
        scope = TenantScope.for_api_key(_api_key(store_id="s1", auto_confirm=True))
        assert scope.kind == ScopeKind.STORE
        assert scope.store_id == "s1"
        assert scope.auto_confirm is True
        assert scope.source == AppointmentSource.API

    def test_company_bound_key(self):
        scope = TenantScope.for_api_key(_api_key(company_id="c1"))
        assert scope.kind == ScopeKind.COMPANY
        assert scope.company_id == "c1"

    def test_unbound_key_is_platform_wide(self):
        assert TenantScope.for_api_key(_api_key()).kind == ScopeKind.ADMIN

    def test_require_raises_permission_denied(self):
        scope = TenantScope.for_api_key(_api_key())
        scope.require(ApiResource.APPOINTMENTS, ApiAction.READ)
        with pytest.raises(ForbiddenException) as exc_info:
            scope.require(ApiResource.APPOINTMENTS, ApiAction.CREATE)
        assert exc_info.value.code == ErrorCode.PERMISSION_DENIED.value
        assert exc_info.value.details == {"resource": "appointments", "action": "create"}


class TestStoreFilter:
    """Scoped queries only ever return rows from visible stores."""

    @pytest.fixture
    def layout(self, db, owner, company):
        other_owner = User(email="other@example.com", name="Other", role="STORE_OWNER")
        db.add(other_owner)
        db.commit()
        mine = make_store(db, "mine", owner=owner, company_id=company.id)
        theirs = make_store(db, "theirs", owner=other_owner)
        closed = make_store(db, "closed", owner=owner, active=False)
        rows = {}
        for store in (mine, theirs, closed):
            service = make_service(db, store)
            rows[store.slug] = make_appointment(db, service, at(14, 0))
        return SimpleNamespace(mine=mine, theirs=theirs, closed=closed, rows=rows)

    def _visible(self, db, scope):
        query = scope.apply(db.query(Appointment), Appointment.store_id)
        return {row.store_id for row in query.all()}

    def test_admin_sees_everything(self, db, layout):
        assert self._visible(db, TenantScope.admin()) == {
            layout.mine.id,
            layout.theirs.id,
            layout.closed.id,
        }

    def test_owner_sees_own_stores_only(self, db, layout, owner):
        assert self._visible(db, TenantScope.for_user(owner)) == {layout.mine.id, layout.closed.id}

    def test_company_key_sees_company_stores(self, db, layout, company: Company):
        scope = TenantScope.for_api_key(_api_key(company_id=company.id))
        assert self._visible(db, scope) == {layout.mine.id}

    def test_store_key_sees_one_store(self, db, layout):
        scope = TenantScope.for_api_key(_api_key(store_id=layout.theirs.id))
        assert self._visible(db, scope) == {layout.theirs.id}

    def test_public_sees_active_stores(self, db, layout):
        assert self._visible(db, TenantScope.public()) == {layout.mine.id, layout.theirs.id}

    def test_covers_store_matches_sql_filter(self, layout, owner):
        scope = TenantScope.for_user(owner)
        assert scope.covers_store(layout.mine)
        assert not scope.covers_store(layout.theirs)
