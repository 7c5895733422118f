# backend/agenda/routes/health.py
"""
Health check endpoint used by load balancers and uptime monitors.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_clock, get_db
from ..core.config import settings
from ..core.constants import API_TITLE, API_VERSION
from ..core.timezone_utils import Clock
from ..database import get_db_pool_status
from ..schemas.common import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    response: Response,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> HealthResponse:
    """Report service status and database connectivity."""
    response.headers["Cache-Control"] = "no-store"
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        db_ok = False

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        service=API_TITLE,
        version=API_VERSION,
        environment=settings.environment,
        timestamp=clock(),
        database={"connected": db_ok, "pool": get_db_pool_status()},
    )
