# backend/agenda/repositories/factory.py
"""
Repository Factory for the Agenda booking engine.

Provides centralized creation of repository instances so services receive
their data access collaborators from one place.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .api_key_repository import ApiKeyRepository
    from .appointment_repository import AppointmentRepository
    from .coupon_repository import CouponRepository
    from .event_outbox_repository import EventOutboxRepository
    from .store_repository import ServiceRepository, StoreRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_store_repository(db: Session) -> "StoreRepository":
        from .store_repository import StoreRepository

        return StoreRepository(db)

    @staticmethod
    def create_service_repository(db: Session) -> "ServiceRepository":
        from .store_repository import ServiceRepository

        return ServiceRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

    @staticmethod
    def create_coupon_repository(db: Session) -> "CouponRepository":
        from .coupon_repository import CouponRepository

        return CouponRepository(db)

    @staticmethod
    def create_api_key_repository(db: Session) -> "ApiKeyRepository":
        from .api_key_repository import ApiKeyRepository

        return ApiKeyRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> "EventOutboxRepository":
        from .event_outbox_repository import EventOutboxRepository

        return EventOutboxRepository(db)
