"""Structured query (Dataview) result models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class QueryResult(BaseModel):
    """Outcome of a structured query: a value on success, an error message otherwise."""

    successful: bool
    value: Any = None
    error: Optional[str] = None
    type: Optional[str] = Field(None, description="Query kind: list, table or task")

    @classmethod
    def ok(cls, value: Any, query_type: Optional[str] = None) -> "QueryResult":
        return cls(successful=True, value=value, type=query_type)

    @classmethod
    def fail(cls, error: str) -> "QueryResult":
        return cls(successful=False, error=error)


__all__ = ["QueryResult"]
