"""System routes for liveness checks."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from ...mcp.server import SERVER_NAME, SERVER_VERSION

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> Dict[str, Any]:
    """Report liveness and which vault is being served."""
    config = request.app.state.config
    return {
        "status": "ok",
        "server": SERVER_NAME,
        "version": SERVER_VERSION,
        "vault": config.display_vault_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
