"""JSON-RPC endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.responses import Response

from ...models.rpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    JsonRpcRequest,
    rpc_error,
    rpc_result,
)
from ...services.patcher import PatchError
from ...services.tool_executor import ToolError, ToolExecutor

logger = logging.getLogger(__name__)

router = APIRouter()

# Failures callers can cause; anything else is logged with a traceback.
EXPECTED_ERRORS = (
    ToolError,
    PatchError,
    FileNotFoundError,
    FileExistsError,
    IsADirectoryError,
    ValueError,
)


def _is_valid_envelope(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    method = payload.get("method")
    return isinstance(method, str) and bool(method)


@router.post("/rpc")
async def handle_rpc(request: Request) -> Response:
    """Decode one JSON-RPC message, dispatch it and encode the reply."""
    raw = await request.body()
    try:
        payload = json.loads(raw)
    except ValueError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=rpc_error(None, PARSE_ERROR, "Parse error"),
        )

    if not _is_valid_envelope(payload):
        request_id = payload.get("id") if isinstance(payload, dict) else None
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=rpc_error(request_id, INVALID_REQUEST, "Invalid request - missing method"),
        )

    message = JsonRpcRequest.model_validate(payload)
    executor: ToolExecutor = request.app.state.tool_executor

    logger.info(
        f"RPC request: {message.method}",
        extra={"method": message.method, "notification": message.is_notification},
    )

    try:
        result = await run_in_threadpool(executor.execute, message.method, message.params)
    except EXPECTED_ERRORS as exc:
        logger.warning(
            f"RPC method failed: {message.method}: {exc}",
            extra={"method": message.method, "error_type": type(exc).__name__},
        )
        if message.is_notification:
            return Response(status_code=status.HTTP_200_OK)
        return JSONResponse(content=rpc_error(message.id, INTERNAL_ERROR, str(exc)))
    except Exception as exc:
        logger.exception(f"RPC method crashed: {message.method}")
        if message.is_notification:
            return Response(status_code=status.HTTP_200_OK)
        return JSONResponse(content=rpc_error(message.id, INTERNAL_ERROR, str(exc)))

    if message.is_notification:
        return Response(status_code=status.HTTP_200_OK)
    return JSONResponse(content=rpc_result(message.id, jsonable_encoder(result)))


__all__ = ["router"]
