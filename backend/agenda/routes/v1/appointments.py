# backend/agenda/routes/v1/appointments.py
"""
Integration appointment routes - API v1

All business logic delegated to AppointmentService; the API key's tenant
binding and capability set come in as a ``TenantScope``.

Endpoints:
    GET / - List appointments with filters and pagination
    POST / - Create an appointment
    GET /{appointment_id} - Appointment details
    PUT /{appointment_id} - Reschedule, edit details and/or change status
    DELETE /{appointment_id} - Cancel an appointment
"""

import asyncio
from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_api_key_scope, get_appointment_service
from ...core.constants import DEFAULT_PAGE_SIZE
from ...core.exceptions import DomainException, ValidationException
from ...repositories.appointment_repository import AppointmentFilters
from ...schemas.appointment import (
    ApiAppointmentCreate,
    ApiAppointmentUpdate,
    AppointmentListResponse,
    AppointmentResponse,
)
from ...services.appointment_service import AppointmentRequest, AppointmentService
from ...services.tenant_scope import TenantScope
from ..common import ULID_PATH_PATTERN, appointment_response, handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["appointments-v1"])


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    page: int = Query(1, ge=1),
    # Larger values are capped at 100 by the service
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    status_filter: Optional[str] = Query(None, alias="status"),
    service_id: Optional[str] = Query(None, alias="serviceId"),
    client_email: Optional[str] = Query(None, alias="clientEmail"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    scope: TenantScope = Depends(get_api_key_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentListResponse:
    filters = AppointmentFilters(
        status=status_filter.upper() if status_filter else None,
        service_id=service_id,
        client_email=client_email,
        start_from=start_date,
        start_to=end_date,
    )
    try:
        result = await asyncio.to_thread(appointment_service.list, scope, filters, page, limit)
    except DomainException as e:
        handle_domain_exception(e)

    return AppointmentListResponse(
        items=[appointment_response(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "API key lacks appointments:create"},
        404: {"description": "Service not found for this key"},
        409: {"description": "Time slot not available"},
    },
)
async def create_appointment(
    payload: ApiAppointmentCreate = Body(...),
    scope: TenantScope = Depends(get_api_key_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """Book ``date`` (ISO-8601; naive values are store-local) on a service."""
    request = AppointmentRequest(
        service_id=payload.service_id,
        start_at=payload.start_at,
        client_name=payload.client_name,
        client_email=payload.client_email,
        client_phone=payload.client_phone,
        notes=payload.notes,
        coupon_code=payload.coupon_code,
    )
    try:
        appointment = await asyncio.to_thread(appointment_service.create, scope, request)
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses={404: {"description": "Appointment not found"}},
)
async def get_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: TenantScope = Depends(get_api_key_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    try:
        appointment = await asyncio.to_thread(appointment_service.get, scope, appointment_id)
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "Slot taken or status change not allowed"},
    },
)
async def update_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: ApiAppointmentUpdate = Body(...),
    scope: TenantScope = Depends(get_api_key_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """
    Apply a partial update.

    Steps run in order (reschedule, details, status), each in its own
    transaction; a failing step leaves earlier steps applied.
    """
    details = payload.detail_changes()
    try:
        if payload.date is None and not details and payload.status is None:
            raise ValidationException("No changes supplied")
        appointment = None
        if payload.date is not None:
            appointment = await asyncio.to_thread(
                appointment_service.reschedule, scope, appointment_id, payload.date
            )
        if details:
            appointment = await asyncio.to_thread(
                appointment_service.update_details, scope, appointment_id, details
            )
        if payload.status is not None:
            appointment = await asyncio.to_thread(
                appointment_service.transition, scope, appointment_id, payload.status
            )
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    responses={
        404: {"description": "Appointment not found"},
        409: {"description": "Appointment already in a terminal status"},
    },
)
async def cancel_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scope: TenantScope = Depends(get_api_key_scope),
    appointment_service: AppointmentService = Depends(get_appointment_service),
) -> AppointmentResponse:
    """Cancel; the appointment row is kept for history."""
    try:
        appointment = await asyncio.to_thread(appointment_service.cancel, scope, appointment_id)
        return appointment_response(appointment)
    except DomainException as e:
        handle_domain_exception(e)
