"""FastAPI application factory."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .middleware import register_error_handlers, register_gateway
from .routes import rpc, system
from ..mcp.server import SERVER_NAME, SERVER_VERSION
from ..services.config import AppConfig, get_config
from ..services.dataview import FrontmatterQueryEngine, QueryEngine
from ..services.rate_limiter import RateLimiter
from ..services.search import SearchService
from ..services.tool_executor import ToolExecutor
from ..services.vault import VaultService

logger = logging.getLogger(__name__)

_DEFAULT_ENGINE = object()


def create_app(
    config: Optional[AppConfig] = None,
    vault_service: Optional[VaultService] = None,
    query_engine: object = _DEFAULT_ENGINE,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Runtime configuration; loaded from the environment when omitted.
        vault_service: Vault store; built from ``config`` when omitted.
        query_engine: Structured query engine. Defaults to the frontmatter
            engine over the vault; pass None to run without one.
        rate_limiter: Per-client limiter; built from ``config`` when omitted.

    Returns:
        A FastAPI app with all state held on ``app.state``.
    """
    config = config or get_config()
    vault = vault_service or VaultService(config)
    engine: Optional[QueryEngine]
    if query_engine is _DEFAULT_ENGINE:
        engine = FrontmatterQueryEngine(vault)
    else:
        engine = query_engine  # type: ignore[assignment]

    app = FastAPI(
        title="Vault MCP Gateway",
        description="Authenticated JSON-RPC access to a Markdown notes vault",
        version=SERVER_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.config = config
    app.state.rate_limiter = rate_limiter or RateLimiter.from_config(config)
    app.state.tool_executor = ToolExecutor(
        config=config,
        vault_service=vault,
        search_service=SearchService(vault),
        query_engine=engine,
    )

    register_error_handlers(app)
    register_gateway(app)

    app.include_router(system.router, tags=["system"])
    app.include_router(rpc.router, tags=["rpc"])

    logger.info(
        f"{SERVER_NAME} ready",
        extra={
            "vault": config.display_vault_name,
            "dataview": engine is not None and config.enable_dataview_queries,
        },
    )
    return app


__all__ = ["create_app"]
