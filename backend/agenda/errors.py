# backend/agenda/errors.py
"""
Exception handlers rendering the shared error envelope.

Every error leaving the API has the shape::

    {"error": "<message>", "code": "<ErrorCode>", "details": {...}}
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.enums import ErrorCode
from .core.exceptions import DomainException

logger = logging.getLogger(__name__)

_CODE_BY_STATUS = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHENTICATED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def _envelope(message: str, code: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"error": message, "code": code, "details": jsonable_encoder(details or {})}


def _parse_detail(status_code: int, detail: Any) -> Dict[str, Any]:
    fallback = _CODE_BY_STATUS.get(status_code, ErrorCode.INTERNAL_ERROR).value
    if isinstance(detail, dict):
        if "error" in detail and "code" in detail:
            return _envelope(str(detail["error"]), str(detail["code"]), detail.get("details"))
        message = detail.get("message") or detail.get("detail") or "Request failed"
        return _envelope(str(message), str(detail.get("code") or fallback), detail.get("details"))
    if isinstance(detail, str):
        return _envelope(detail, fallback)
    return _envelope("Request failed", fallback)


def _validation_details(errors: Any) -> Dict[str, Any]:
    fields = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        fields.append({"field": ".".join(location), "message": error.get("msg", "")})
    return {"fields": fields}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "Domain error on %s %s: %s", request.method, request.url.path, exc.message
            )
        return JSONResponse(jsonable_encoder(exc.to_payload()), status_code=exc.status_code)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            _parse_detail(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            _parse_detail(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            _envelope(
                "Invalid request data",
                ErrorCode.VALIDATION_ERROR.value,
                _validation_details(exc.errors()),
            ),
            status_code=400,
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            _envelope(
                "Invalid request data",
                ErrorCode.VALIDATION_ERROR.value,
                _validation_details(exc.errors()),
            ),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            _envelope("An error occurred processing your request", ErrorCode.INTERNAL_ERROR.value),
            status_code=500,
        )
