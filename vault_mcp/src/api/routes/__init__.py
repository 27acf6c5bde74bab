"""HTTP API route handlers."""

from . import rpc, system

__all__ = ["rpc", "system"]
