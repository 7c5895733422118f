# backend/agenda/routes/common.py
"""Helpers shared by the route modules."""

from typing import NoReturn

from ..core.exceptions import DomainException
from ..models.appointment import Appointment
from ..schemas.appointment import AppointmentResponse

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions carrying the error envelope."""
    raise exc.to_http_exception()


def appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)
