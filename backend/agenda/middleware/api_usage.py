# backend/agenda/middleware/api_usage.py
"""
Integration API usage audit.

Every call under ``/api/v1`` that authenticated with an API key is written to
``api_usage_logs`` once the response status is known. The audit row uses its
own session so it is recorded even when the request's transaction rolled back.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.config import settings
from ..core.constants import API_V1_PREFIX
from ..core.exceptions import ServiceException
from ..core.timezone_utils import utc_now
from ..database import SessionLocal
from ..services.api_key_service import ApiKeyService

logger = logging.getLogger(__name__)


def _client_ip(scope: Scope, headers: Headers) -> Optional[str]:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    client = scope.get("client")
    return client[0] if client else None


class ApiUsageMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        path = scope.get("path", "")
        if (
            scope["type"] != "http"
            or not settings.api_usage_logging_enabled
            or not path.startswith(API_V1_PREFIX)
        ):
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        start_time = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            api_key_id = state.get("api_key_id")
            if api_key_id:
                headers = Headers(scope=scope)
                await asyncio.to_thread(
                    self._record,
                    scope,
                    api_key_id=api_key_id,
                    method=scope.get("method", ""),
                    path=path,
                    status_code=status_code,
                    duration_ms=int((time.perf_counter() - start_time) * 1000),
                    ip_address=_client_ip(scope, headers),
                    user_agent=headers.get("user-agent"),
                )

    @staticmethod
    def _record(scope: Scope, **values: Any) -> None:
        app_state = getattr(scope.get("app"), "state", None)
        session_factory: Callable[[], Session] = getattr(
            app_state, "session_factory", None
        ) or SessionLocal
        clock = getattr(app_state, "clock", None) or utc_now
        db = session_factory()
        try:
            ApiKeyService(db, clock=clock).record_usage(values.pop("api_key_id"), **values)
        except (SQLAlchemyError, ServiceException):
            logger.exception("Failed to record API usage for %s", values.get("path"))
        finally:
            db.close()
