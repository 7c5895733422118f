# backend/agenda/routes/appointments.py
"""
First-party appointment routes.

The public booking page books anonymously; signed-in store owners and admins
(identified by the auth layer through ``X-User-Id``) list and manage the
appointments of their stores.

Endpoints:
    POST /api/appointments - Book a slot
    GET /api/appointments - List appointments visible to the caller
    GET /api/appointments/{appointment_id} - Appointment details
    PATCH /api/appointments/{appointment_id}/status - Confirm, cancel, complete, no-show
    POST /api/appointments/{appointment_id}/reschedule - Move to a new start
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..api.dependencies import get_appointment_service, get_session_scope
from ..core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..core.exceptions import DomainException
from ..repositories.appointment_repository import AppointmentFilters
from ..schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
)
from ..services.appointment_service import AppointmentRequest, AppointmentService
from ..services.tenant_scope import TenantScope
from .common import ULID_PATH_PATTERN, appointment_response, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["appointments"])


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Booking rule or coupon rule violated"},
        404: {"description": "Service or coupon not found"},
        409: {"description": "Time slot not available"},
    },
)
async def create_appointment(
    payload: AppointmentCreate = Body(...),
    scope: TenantScope = Depends(get_session_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """Book ``date`` + ``start_time`` (store-local) on a service."""
    request = AppointmentRequest(
        service_id=payload.service_id,
        start_at=payload.start_at,
        client_name=payload.client_name,
        client_email=payload.client_email,
        client_phone=payload.client_phone,
        notes=payload.notes,
        coupon_code=payload.coupon_code,
        is_simple_booking=payload.is_simple_booking,
    )
    try:
        appointment = await asyncio.to_thread(appointment_service.create, scope, request)
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    service_id: Optional[str] = Query(None),
    client_email: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    scope: TenantScope = Depends(get_session_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentListResponse:
    filters = AppointmentFilters(
        status=status_filter.upper() if status_filter else None,
        service_id=service_id,
        client_email=client_email.lower() if client_email else None,
        start_from=start_date,
        start_to=end_date,
    )
    try:
        result = await asyncio.to_thread(
            appointment_service.list, scope, filters, page, limit
        )
    except DomainException as e:
        handle_domain_exception(e)

    return AppointmentListResponse(
        items=[appointment_response(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses={404: {"description": "Appointment not found"}},
)
async def get_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: TenantScope = Depends(get_session_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        appointment = await asyncio.to_thread(appointment_service.get, scope, appointment_id)
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
async def update_appointment_status(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: AppointmentStatusUpdate = Body(...),
    scope: TenantScope = Depends(get_session_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        appointment = await asyncio.to_thread(
            appointment_service.transition,
            scope,
            appointment_id,
            payload.status,
            payload.expected_status,
        )
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "New slot not available or appointment no longer active"},
    },
)
async def reschedule_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: AppointmentReschedule = Body(...),
    scope: TenantScope = Depends(get_session_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        appointment = await asyncio.to_thread(
            appointment_service.reschedule, scope, appointment_id, payload.resolved_start()
        )
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)
