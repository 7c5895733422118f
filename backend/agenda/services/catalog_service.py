# backend/agenda/services/catalog_service.py
"""Scoped reads of the service catalog."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import ApiAction, ApiResource
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import Clock
from ..models.service import Service
from ..repositories import RepositoryFactory
from .base import BaseService
from .tenant_scope import TenantScope

logger = logging.getLogger(__name__)


class CatalogService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.service_repository = RepositoryFactory.create_service_repository(db)

    @BaseService.measure_operation("list_services")
    def list_services(
        self,
        scope: TenantScope,
        store_id: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Service]:
        scope.require(ApiResource.SERVICES, ApiAction.READ)
        # Only store staff may see deactivated services
        active_only = scope.is_public or not include_inactive
        return self.service_repository.list_in_scope(scope, store_id, active_only=active_only)

    @BaseService.measure_operation("get_service")
    def get_service(self, scope: TenantScope, service_id: str, bookable_only: bool = True) -> Service:
        """
        Load a service visible to ``scope``.

        With ``bookable_only`` an inactive service or store is reported as
        missing, the same way booking it would be.
        """
        scope.require(ApiResource.SERVICES, ApiAction.READ)
        service = self.service_repository.get_in_scope(scope, service_id)
        if service is None:
            raise NotFoundException("Service not found", details={"id": service_id})
        if bookable_only and not (service.active and service.store.active):
            raise NotFoundException("Service not found", details={"id": service_id})
        return service
