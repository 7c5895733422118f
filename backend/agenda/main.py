# backend/agenda/main.py
"""
FastAPI application for the Agenda booking engine.

``create_app`` builds an application; the module-level ``app`` is the one
served by uvicorn. Tests build their own with an isolated session factory and
a frozen clock.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Callable, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from sqlalchemy.orm import Session

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_V1_PREFIX, API_VERSION, BRAND_NAME
from .core.logging import setup_logging
from .core.timezone_utils import Clock
from .errors import register_error_handlers
from .middleware.api_usage import ApiUsageMiddleware
from .middleware.monitoring import MonitoringMiddleware
from .routes import appointments, availability, coupons, health, prometheus
from .routes.v1 import (
    appointments as appointments_v1,
    services as services_v1,
    status as status_v1,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("%s API starting up...", BRAND_NAME)
    logger.info(
        "Environment: %s, store timezone: %s", settings.environment, settings.store_timezone
    )
    yield
    logger.info("%s API shutting down...", BRAND_NAME)


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


def create_app(
    session_factory: Optional[Callable[[], Session]] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        session_factory: Session maker used by requests and the usage audit;
            defaults to ``SessionLocal``
        clock: Source of "now" for booking rules; defaults to the wall clock
    """
    setup_logging()

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
        generate_unique_id_function=_unique_operation_id,
    )
    app.state.session_factory = session_factory
    app.state.clock = clock

    register_error_handlers(app)

    # Last added runs first: CORS, monitoring, then the usage audit
    app.add_middleware(ApiUsageMiddleware)
    app.add_middleware(MonitoringMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(prometheus.router)
    app.include_router(availability.router, prefix="/api/availability")
    app.include_router(appointments.router, prefix="/api/appointments")
    app.include_router(coupons.router, prefix="/api/coupons")

    api_v1 = APIRouter(prefix=API_V1_PREFIX)
    api_v1.include_router(appointments_v1.router, prefix="/appointments")
    api_v1.include_router(services_v1.router, prefix="/services")
    api_v1.include_router(status_v1.router, prefix="/status")
    app.include_router(api_v1)

    return app


app = create_app()
