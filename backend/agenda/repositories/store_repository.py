# backend/agenda/repositories/store_repository.py
"""Store and service catalog data access."""

import logging
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.service import Service
from ..models.store import Store
from .base_repository import BaseRepository

if TYPE_CHECKING:
    from ..services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)


class StoreRepository(BaseRepository[Store]):
    def __init__(self, db: Session):
        super().__init__(db, Store)

    def get_in_scope(self, scope: "TenantScope", store_id: str) -> Optional[Store]:
        query = scope.apply(self.query().filter(Store.id == store_id), Store.id)
        return query.first()


class ServiceRepository(BaseRepository[Service]):
    """Service catalog queries; every lookup goes through a tenant scope."""

    def __init__(self, db: Session):
        super().__init__(db, Service)

    def scoped_query(self, scope: "TenantScope"):
        query = self.db.query(Service).options(joinedload(Service.store))
        return scope.apply(query, Service.store_id)

    def get_in_scope(self, scope: "TenantScope", service_id: str) -> Optional[Service]:
        try:
            return self.scoped_query(scope).filter(Service.id == service_id).first()
        except SQLAlchemyError as e:
            self.logger.error("Error loading service %s: %s", service_id, e)
            raise RepositoryException(f"Failed to retrieve Service: {e}") from e

    def list_in_scope(
        self,
        scope: "TenantScope",
        store_id: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Service]:
        query = self.scoped_query(scope)
        if store_id:
            query = query.filter(Service.store_id == store_id)
        if active_only:
            query = query.filter(Service.active.is_(True))
        return query.order_by(Service.name.asc(), Service.id.asc()).all()

    def lock_for_update(self, service_id: str) -> Optional[Service]:
        """Serialise bookings of one service: the conflict re-check runs under this lock."""
        return self.lock_row(service_id)
