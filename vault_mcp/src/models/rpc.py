"""JSON-RPC 2.0 envelope models."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
INTERNAL_ERROR = -32603


class JsonRpcRequest(BaseModel):
    """Inbound JSON-RPC request or notification."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: Any = JSONRPC_VERSION
    method: str = Field(..., min_length=1)
    params: Any = None
    id: Any = None

    @property
    def is_notification(self) -> bool:
        """A request without an ``id`` member expects no response."""
        return "id" not in self.model_fields_set


class JsonRpcError(BaseModel):
    """Error member of a JSON-RPC response."""

    code: int
    message: str


def rpc_result(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "result": result, "id": request_id}


def rpc_error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    error = JsonRpcError(code=code, message=message)
    return {"jsonrpc": JSONRPC_VERSION, "error": error.model_dump(), "id": request_id}


__all__ = [
    "JSONRPC_VERSION",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "INTERNAL_ERROR",
    "JsonRpcRequest",
    "JsonRpcError",
    "rpc_result",
    "rpc_error",
]
