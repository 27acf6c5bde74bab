"""Patch instruction models."""

from __future__ import annotations

from enum import Enum


class PatchOperation(str, Enum):
    """How new content is combined with the located target."""

    APPEND = "append"
    PREPEND = "prepend"
    REPLACE = "replace"


class PatchTargetType(str, Enum):
    """Kind of region a patch addresses."""

    HEADING = "heading"
    BLOCK = "block"
    FRONTMATTER = "frontmatter"


__all__ = ["PatchOperation", "PatchTargetType"]
