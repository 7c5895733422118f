# backend/agenda/routes/prometheus.py
"""
Prometheus metrics endpoint.

Public, unauthenticated, following standard Prometheus practice. Exposes the
HTTP metrics and the ``@measure_operation`` timings collected by services.
"""

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["monitoring"])


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
