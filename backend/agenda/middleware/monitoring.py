# backend/agenda/middleware/monitoring.py
"""
Request monitoring middleware.

Tags every request with an ``X-Request-ID`` (propagated into log records
through the request context), records Prometheus HTTP metrics and warns about
slow requests.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.request_context import reset_request_id, set_request_id
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 500

_ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)


def normalize_path(path: str) -> str:
    """Collapse id segments so metric labels stay low-cardinality."""
    return "/".join(
        ":id" if segment.isdigit() or _ULID_SEGMENT.match(segment) else segment
        for segment in path.split("/")
    )


class MonitoringMiddleware:
    """Pure ASGI middleware; skips the metrics endpoint itself."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        method = scope.get("method", "")
        if path.startswith("/metrics"):
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id
        token = set_request_id(request_id)

        endpoint = normalize_path(path)
        prometheus_metrics.track_http_request_start(method, endpoint)
        start_time = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.perf_counter() - start_time
            prometheus_metrics.record_http_request(
                method=method, endpoint=endpoint, duration=duration, status_code=status_code
            )
            prometheus_metrics.track_http_request_end(method, endpoint)
            if duration * 1000 > SLOW_REQUEST_MS:
                logger.warning("Slow request: %s %s took %.2fms", method, path, duration * 1000)
            reset_request_id(token)
