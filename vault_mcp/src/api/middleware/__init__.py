"""FastAPI middleware for authentication and error handling."""

from .auth_middleware import (
    API_KEY_HEADER,
    CORS_HEADERS,
    api_key_matches,
    client_identity,
    register_gateway,
)
from .error_handlers import (
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    validation_exception_handler,
)

__all__ = [
    "API_KEY_HEADER",
    "CORS_HEADERS",
    "api_key_matches",
    "client_identity",
    "register_gateway",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "internal_exception_handler",
]
