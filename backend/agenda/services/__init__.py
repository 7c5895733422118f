# backend/agenda/services/__init__.py
"""
Service layer for the Agenda booking engine.

Services own business rules and transactions; repositories below them only
read and flush.
"""

from .api_key_service import ApiKeyService, IssuedApiKey, hash_api_key
from .appointment_service import AppointmentPage, AppointmentRequest, AppointmentService
from .availability_resolver import AvailabilityResolver, DaySlots, SlotDecision, SlotOption
from .base import BaseService
from .catalog_service import CatalogService
from .coupon_evaluator import ClientIdentity, CouponApplication, CouponEvaluator, to_money
from .tenant_scope import PUBLIC_CAPABILITIES, CapabilitySet, ScopeKind, TenantScope

__all__ = [
    "ApiKeyService",
    "AppointmentPage",
    "AppointmentRequest",
    "AppointmentService",
    "AvailabilityResolver",
    "BaseService",
    "CapabilitySet",
    "CatalogService",
    "ClientIdentity",
    "CouponApplication",
    "CouponEvaluator",
    "DaySlots",
    "IssuedApiKey",
    "PUBLIC_CAPABILITIES",
    "ScopeKind",
    "SlotDecision",
    "SlotOption",
    "TenantScope",
    "hash_api_key",
    "to_money",
]
