# backend/agenda/repositories/__init__.py
"""Data access layer. Repositories flush; services commit."""

from .api_key_repository import ApiKeyRepository
from .appointment_repository import AppointmentFilters, AppointmentRepository
from .base_repository import BaseRepository
from .coupon_repository import CouponRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .store_repository import ServiceRepository, StoreRepository

__all__ = [
    "ApiKeyRepository",
    "AppointmentFilters",
    "AppointmentRepository",
    "BaseRepository",
    "CouponRepository",
    "EventOutboxRepository",
    "RepositoryFactory",
    "ServiceRepository",
    "StoreRepository",
]
