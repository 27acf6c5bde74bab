"""Gateway middleware: CORS headers, API key check, rate limiting and route gating."""

from __future__ import annotations

import logging
import secrets
from typing import Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from ...services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {API_KEY_HEADER}",
}

# Only these (method, path) pairs reach the routers; everything else is 404.
ROUTES = {("GET", "/health"), ("POST", "/rpc")}


def api_key_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    """Exact comparison; with no configured key nothing is authorized."""
    if not expected or provided is None:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def client_identity(request: Request) -> str:
    """Rate-limit key for a request: the peer address, or ``unknown``."""
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _with_cors(response: Response) -> Response:
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response


def _error(status_code: int, message: str) -> Response:
    return _with_cors(JSONResponse(status_code=status_code, content={"error": message}))


def register_gateway(app: FastAPI) -> None:
    """
    Install the request gate in front of every route.

    Checks run in order: CORS preflight, API key, rate limit, route lookup.
    Reads ``app.state.config`` and ``app.state.rate_limiter`` per request.
    """

    @app.middleware("http")
    async def gateway(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=status.HTTP_200_OK)
            response.headers["Content-Type"] = "application/json"
            return _with_cors(response)

        config = request.app.state.config
        if not api_key_matches(config.api_key, request.headers.get(API_KEY_HEADER)):
            logger.warning(
                "Rejected request with invalid API key",
                extra={"path": request.url.path, "client": client_identity(request)},
            )
            return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

        limiter: RateLimiter = request.app.state.rate_limiter
        if not limiter.allow(client_identity(request)):
            return _error(status.HTTP_429_TOO_MANY_REQUESTS, "Rate limit exceeded")

        if (request.method, request.url.path) not in ROUTES:
            return _error(status.HTTP_404_NOT_FOUND, "Not found")

        response = await call_next(request)
        return _with_cors(response)


__all__ = [
    "API_KEY_HEADER",
    "CORS_HEADERS",
    "api_key_matches",
    "client_identity",
    "register_gateway",
]
