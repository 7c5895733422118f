# backend/agenda/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Every request gets fresh service instances bound to its own session and to
the application clock, which tests replace to freeze time.
"""

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.timezone_utils import Clock, utc_now
from ...services.api_key_service import ApiKeyService
from ...services.appointment_service import AppointmentService
from ...services.availability_resolver import AvailabilityResolver
from ...services.catalog_service import CatalogService
from ...services.coupon_evaluator import CouponEvaluator
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock(request: Request) -> Clock:
    """Clock used by booking rules: ``app.state.clock`` when set, else the wall clock."""
    return getattr(request.app.state, "clock", None) or utc_now


def get_availability_resolver(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityResolver:
    return AvailabilityResolver(db, clock=clock)


def get_coupon_evaluator(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> CouponEvaluator:
    return CouponEvaluator(db, clock=clock)


def get_appointment_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AppointmentService:
    """
    Get appointment service instance.

    The resolver and coupon evaluator share the service's session so that
    a booking and its coupon usage commit together.
    """
    return AppointmentService(db, clock=clock)


def get_catalog_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> CatalogService:
    return CatalogService(db, clock=clock)


def get_api_key_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> ApiKeyService:
    return ApiKeyService(db, clock=clock)
