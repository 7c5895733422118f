# backend/agenda/services/tenant_scope.py
"""
Tenant scope for every booking operation.

A ``TenantScope`` is built once per request from whoever is calling: a
session user, an anonymous visitor of the public booking page, or an
integration API key. It answers two questions:

* ``require(resource, action)``: may this caller perform the action at all?
  Raises ``ForbiddenException`` (``PERMISSION_DENIED``) otherwise.
* ``apply(query, store_column)``: restrict a store-joined query to the stores
  the caller may see. Repositories only ever return rows from scoped queries,
  so an id outside the caller's tenant is indistinguishable from a missing one.

API key permissions are stored as loosely shaped JSON; ``CapabilitySet.parse``
turns them into a typed set of (resource, action) pairs once, at the edge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

from sqlalchemy import false, select
from sqlalchemy.orm import Query

from ..core.enums import ApiAction, ApiResource, ErrorCode, UserRole
from ..core.exceptions import ForbiddenException
from ..models.appointment import AppointmentSource
from ..models.store import Store

logger = logging.getLogger(__name__)

Capability = Tuple[ApiResource, ApiAction]

_WILDCARD = "*"


def _all_actions(resource: ApiResource) -> FrozenSet[Capability]:
    return frozenset((resource, action) for action in ApiAction)


@dataclass(frozen=True)
class CapabilitySet:
    """Immutable set of (resource, action) grants."""

    grants: FrozenSet[Capability] = frozenset()

    @classmethod
    def full(cls) -> "CapabilitySet":
        return cls(frozenset((res, act) for res in ApiResource for act in ApiAction))

    @classmethod
    def of(cls, *grants: Capability) -> "CapabilitySet":
        return cls(frozenset(grants))

    @classmethod
    def parse(cls, raw: Any) -> "CapabilitySet":
        """
        Parse a stored permissions document.

        Accepted shapes::

            "*"                                   -> everything
            {"admin": true}                       -> everything
            {"appointments": true}                -> every action on appointments
            {"appointments": ["read", "create"]}  -> listed actions
            {"appointments": {"read": true}}      -> truthy actions
            {"*": ["read"]}                       -> read on every resource

        Unknown resources and actions are ignored.
        """
        if raw == _WILDCARD:
            return cls.full()
        if not isinstance(raw, Mapping):
            return cls()
        if raw.get("admin") is True:
            return cls.full()

        grants: set[Capability] = set()
        for key, granted in raw.items():
            if key == "admin":
                continue
            if key == _WILDCARD:
                resources: Iterable[ApiResource] = list(ApiResource)
            else:
                try:
                    resources = [ApiResource(str(key))]
                except ValueError:
                    logger.debug("Ignoring unknown API resource %r in permissions", key)
                    continue
            actions = cls._parse_actions(granted)
            for resource in resources:
                grants.update((resource, action) for action in actions)
        return cls(frozenset(grants))

    @staticmethod
    def _parse_actions(granted: Any) -> FrozenSet[ApiAction]:
        if granted is True or granted == _WILDCARD:
            return frozenset(ApiAction)
        if isinstance(granted, Mapping):
            names = [name for name, enabled in granted.items() if enabled]
        elif isinstance(granted, (list, tuple, set)):
            names = list(granted)
        else:
            return frozenset()
        if _WILDCARD in names:
            return frozenset(ApiAction)
        actions = set()
        for name in names:
            try:
                actions.add(ApiAction(str(name)))
            except ValueError:
                logger.debug("Ignoring unknown API action %r in permissions", name)
        return frozenset(actions)

    def allows(self, resource: ApiResource, action: ApiAction) -> bool:
        return (resource, action) in self.grants

    def __contains__(self, item: Capability) -> bool:
        return item in self.grants

    def __len__(self) -> int:
        return len(self.grants)


PUBLIC_CAPABILITIES = CapabilitySet.of(
    (ApiResource.SERVICES, ApiAction.READ),
    (ApiResource.APPOINTMENTS, ApiAction.CREATE),
    (ApiResource.COUPONS, ApiAction.READ),
)


class ScopeKind(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    COMPANY = "company"
    STORE = "store"
    PUBLIC = "public"


@dataclass(frozen=True)
class TenantScope:
    """
    Resolved caller context.

    Attributes:
        kind: How visibility is restricted
        capabilities: Allowed (resource, action) pairs
        user_id: Session user, when known
        owner_id: Owner whose stores are visible (``OWNER``)
        company_id: Company whose stores are visible (``COMPANY``)
        store_id: Single visible store (``STORE``)
        api_key_id: Integration key behind the request
        auto_confirm: Appointments created by this caller start CONFIRMED
    """

    kind: ScopeKind
    capabilities: CapabilitySet = field(default_factory=CapabilitySet)
    user_id: Optional[str] = None
    owner_id: Optional[str] = None
    company_id: Optional[str] = None
    store_id: Optional[str] = None
    api_key_id: Optional[str] = None
    auto_confirm: bool = False

    # ------------------------------------------------------------- builders
    @classmethod
    def public(cls, user_id: Optional[str] = None) -> "TenantScope":
        return cls(kind=ScopeKind.PUBLIC, capabilities=PUBLIC_CAPABILITIES, user_id=user_id)

    @classmethod
    def admin(cls, user_id: Optional[str] = None) -> "TenantScope":
        return cls(kind=ScopeKind.ADMIN, capabilities=CapabilitySet.full(), user_id=user_id)

    @classmethod
    def for_user(cls, user: Any) -> "TenantScope":
        """Scope for a session user (``User`` model or anything shaped like it)."""
        if not getattr(user, "active", True):
            return cls.public()
        role = str(getattr(user, "role", UserRole.CLIENT.value))
        if role == UserRole.ADMIN.value:
            return cls.admin(user_id=user.id)
        if role == UserRole.STORE_OWNER.value:
            return cls(
                kind=ScopeKind.OWNER,
                capabilities=CapabilitySet.full(),
                user_id=user.id,
                owner_id=user.id,
            )
        return cls.public(user_id=user.id)

    @classmethod
    def for_api_key(cls, api_key: Any) -> "TenantScope":
        """Scope for an authenticated integration key."""
        capabilities = CapabilitySet.parse(api_key.permissions)
        if api_key.store_id:
            kind, company_id, store_id = ScopeKind.STORE, None, api_key.store_id
        elif api_key.company_id:
            kind, company_id, store_id = ScopeKind.COMPANY, api_key.company_id, None
        else:
            kind, company_id, store_id = ScopeKind.ADMIN, None, None
        return cls(
            kind=kind,
            capabilities=capabilities,
            company_id=company_id,
            store_id=store_id,
            api_key_id=api_key.id,
            auto_confirm=bool(api_key.auto_confirm),
        )

    # ------------------------------------------------------------- queries
    @property
    def source(self) -> AppointmentSource:
        return AppointmentSource.API if self.api_key_id else AppointmentSource.WEB

    @property
    def is_public(self) -> bool:
        return self.kind == ScopeKind.PUBLIC

    def can(self, resource: ApiResource, action: ApiAction) -> bool:
        return self.capabilities.allows(resource, action)

    def require(self, resource: ApiResource, action: ApiAction) -> None:
        if not self.can(resource, action):
            raise ForbiddenException(
                f"Permission denied: {resource.value}:{action.value}",
                code=ErrorCode.PERMISSION_DENIED,
                details={"resource": resource.value, "action": action.value},
            )

    def store_filter(self, store_column: Any) -> Optional[Any]:
        """SQL criterion restricting ``store_column`` to visible stores, or None for all."""
        if self.kind == ScopeKind.ADMIN:
            return None
        if self.kind == ScopeKind.STORE:
            return store_column == self.store_id
        if self.kind == ScopeKind.COMPANY:
            return store_column.in_(select(Store.id).where(Store.company_id == self.company_id))
        if self.kind == ScopeKind.OWNER:
            return store_column.in_(select(Store.id).where(Store.owner_id == self.owner_id))
        if self.kind == ScopeKind.PUBLIC:
            return store_column.in_(select(Store.id).where(Store.active.is_(True)))
        return false()

    def apply(self, query: Query, store_column: Any) -> Query:
        criterion = self.store_filter(store_column)
        if criterion is None:
            return query
        return query.filter(criterion)

    def covers_store(self, store: Store) -> bool:
        """In-memory counterpart of ``store_filter`` for an already loaded store."""
        if self.kind == ScopeKind.ADMIN:
            return True
        if self.kind == ScopeKind.STORE:
            return store.id == self.store_id
        if self.kind == ScopeKind.COMPANY:
            return store.company_id == self.company_id
        if self.kind == ScopeKind.OWNER:
            return store.owner_id == self.owner_id
        if self.kind == ScopeKind.PUBLIC:
            return bool(store.active)
        return False

    def describe(self) -> dict[str, Any]:
        """Log-friendly summary."""
        return {
            "kind": self.kind.value,
            "user_id": self.user_id,
            "api_key_id": self.api_key_id,
            "store_id": self.store_id,
            "company_id": self.company_id,
        }
