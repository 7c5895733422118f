# backend/agenda/routes/v1/services.py
"""
Integration service catalog routes - API v1

Endpoints:
    GET / - Services visible to the API key
    GET /{service_id} - One service
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies import get_api_key_scope, get_catalog_service
from ...core.exceptions import DomainException
from ...schemas.service import ServiceListResponse, ServiceResponse
from ...services.catalog_service import CatalogService
from ...services.tenant_scope import TenantScope
from ..common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["services-v1"])


@router.get("", response_model=ServiceListResponse)
async def list_services(
    store_id: Optional[str] = Query(None, alias="storeId"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    scope: TenantScope = Depends(get_api_key_scope),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceListResponse:
    try:
        services = await asyncio.to_thread(
            catalog.list_services, scope, store_id, include_inactive
        )
    except DomainException as e:
        handle_domain_exception(e)

    items = [ServiceResponse.model_validate(service) for service in services]
    return ServiceListResponse(items=items, total=len(items))


@router.get(
    "/{service_id}",
    response_model=ServiceResponse,
    responses={404: {"description": "Service not found"}},
)
async def get_service(
    service_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: TenantScope = Depends(get_api_key_scope),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    try:
        service = await asyncio.to_thread(catalog.get_service, scope, service_id, False)
        return ServiceResponse.model_validate(service)
    except DomainException as e:
        handle_domain_exception(e)
