# backend/agenda/routes/availability.py
"""
Availability routes for the public booking page.

Endpoints:
    GET /api/availability - Slot grid of one service for one store-local day
"""

import asyncio
from datetime import date
import logging

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_availability_resolver, get_catalog_service, get_session_scope
from ..core.exceptions import DomainException
from ..schemas.availability import AvailabilityResponse, SlotResponse
from ..services.availability_resolver import AvailabilityResolver
from ..services.catalog_service import CatalogService
from ..services.tenant_scope import TenantScope
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])


@router.get("", response_model=AvailabilityResponse)
async def get_availability(
    service_id: str = Query(..., min_length=1, max_length=26),
    day: date = Query(..., alias="date", description="Store-local day (YYYY-MM-DD)"),
    scope: TenantScope = Depends(get_session_scope),
    catalog: CatalogService = Depends(get_catalog_service),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
) -> AvailabilityResponse:
    """Every candidate start of the day, tagged available or with its rejection code."""
    try:
        service = await asyncio.to_thread(catalog.get_service, scope, service_id)
        day_slots = await asyncio.to_thread(resolver.list_slots, service, day)
    except DomainException as e:
        handle_domain_exception(e)

    return AvailabilityResponse(
        service_id=service.id,
        date=day_slots.day,
        duration_minutes=service.duration,
        closed=day_slots.closed,
        slots=[
            SlotResponse(
                start_at=slot.start_at,
                local_time=slot.local_time,
                available=slot.available,
                code=slot.code.value if slot.code else None,
                reason=slot.reason,
            )
            for slot in day_slots.slots
        ],
    )
