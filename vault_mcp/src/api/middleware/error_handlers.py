"""FastAPI exception handlers rendering errors as ``{"error": ...}`` bodies."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth_middleware import CORS_HEADERS

logger = logging.getLogger(__name__)

DEFAULT_ERRORS: Dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Not found",
    status.HTTP_429_TOO_MANY_REQUESTS: "Rate limit exceeded",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
}


def _message(status_code: int, detail: Any) -> str:
    if isinstance(detail, str) and detail and status_code not in DEFAULT_ERRORS:
        return detail
    return DEFAULT_ERRORS.get(status_code, DEFAULT_ERRORS[status.HTTP_500_INTERNAL_SERVER_ERROR])


def _response(status_code: int, detail: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": _message(status_code, detail)},
        headers=CORS_HEADERS,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _response(status.HTTP_400_BAD_REQUEST, None)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    status_code = exc.status_code
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        status_code = status.HTTP_404_NOT_FOUND
    return _response(status_code, exc.detail)


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _response(status.HTTP_500_INTERNAL_SERVER_ERROR, None)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "internal_exception_handler",
]
