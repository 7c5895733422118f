# backend/agenda/schemas/common.py
"""Small response payloads shared by the health and status endpoints."""

from datetime import datetime
from typing import Any, Dict, Optional

from ._strict_base import StrictModel


class HealthResponse(StrictModel):
    status: str
    service: str
    version: str
    environment: str
    timestamp: datetime
    database: Optional[Dict[str, Any]] = None


class ApiStatusResponse(StrictModel):
    status: str
    version: str
    timestamp: datetime
    api_key: Dict[str, Any]
    permissions: Dict[str, list[str]]


class ErrorResponse(StrictModel):
    error: str
    code: str
    details: Dict[str, Any] = {}
