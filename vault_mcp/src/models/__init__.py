"""Pydantic models for data validation and serialization."""

from .dataview import QueryResult
from .patch import PatchOperation, PatchTargetType
from .rpc import JsonRpcError, JsonRpcRequest, rpc_error, rpc_result
from .search import SearchMatch

__all__ = [
    "QueryResult",
    "PatchOperation",
    "PatchTargetType",
    "JsonRpcRequest",
    "JsonRpcError",
    "rpc_result",
    "rpc_error",
    "SearchMatch",
]
