# backend/agenda/routes/v1/__init__.py
"""
API v1 Routes

Integration API under /api/v1, authenticated with API keys.
"""

from . import appointments, services, status

__all__ = [
    "appointments",
    "services",
    "status",
]
