# backend/agenda/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_api_key_scope, get_session_scope
from .database import get_db
from .services import (
    get_api_key_service,
    get_appointment_service,
    get_availability_resolver,
    get_catalog_service,
    get_clock,
    get_coupon_evaluator,
)

__all__ = [
    # Auth
    "get_api_key_scope",
    "get_session_scope",
    # Database
    "get_db",
    # Services
    "get_api_key_service",
    "get_appointment_service",
    "get_availability_resolver",
    "get_catalog_service",
    "get_clock",
    "get_coupon_evaluator",
]
