"""Search response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SearchMatch(BaseModel):
    """One occurrence of a query inside a note."""

    file: str = Field(..., description="Vault path of the matching note")
    match: str = Field(..., description="Match surrounded by context, case preserved")
    position: int = Field(..., ge=0, description="Character offset of the match")


__all__ = ["SearchMatch"]
