"""Targeted note patching: heading sections, block references and frontmatter keys.

Heading and block patches operate on raw note text and return the new text;
only the located region changes. Frontmatter patches mutate the metadata
mapping handed over by ``VaultService.process_frontmatter`` and never touch
note text directly.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from ..models.patch import PatchOperation, PatchTargetType

NEXT_HEADING_PATTERN = re.compile(r"^#{1,6}[ \t]+", re.MULTILINE)


class PatchError(Exception):
    """Base class for patch failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PatchTargetNotFound(PatchError):
    """The heading or block reference does not exist in the note."""


class InvalidPatchOperation(PatchError):
    """Unknown operation / target type, or an unusable target."""


def parse_operation(operation: Any) -> PatchOperation:
    try:
        return PatchOperation(operation)
    except ValueError:
        raise InvalidPatchOperation(f"Invalid operation: {operation}") from None


def parse_target_type(target_type: Any) -> PatchTargetType:
    try:
        return PatchTargetType(target_type)
    except ValueError:
        raise InvalidPatchOperation(f"Invalid target type: {target_type}") from None


def _combine(operation: PatchOperation, existing: str, content: str) -> str:
    if operation is PatchOperation.APPEND:
        return existing + content
    if operation is PatchOperation.PREPEND:
        return content + existing
    return content


def _heading_pattern(target: str) -> re.Pattern[str]:
    # The target is a regular expression on purpose: "Tasks|Todo" matches either heading.
    try:
        return re.compile(rf"^#{{1,6}}[ \t]+(?:{target})[ \t]*\r?$\n?", re.MULTILINE)
    except re.error as exc:
        raise InvalidPatchOperation(f"Invalid heading pattern: {target} ({exc})") from exc


def find_heading_section(text: str, target: str) -> tuple[int, int]:
    """
    Return ``(start, end)`` offsets of the body of the first heading matching ``target``.

    The body begins after the heading line (including its newline) and ends at
    the next heading of any level, or at the end of the text.
    """
    match = _heading_pattern(target).search(text)
    if not match:
        raise PatchTargetNotFound(f"Heading not found: {target}")
    start = match.end()
    next_heading = NEXT_HEADING_PATTERN.search(text, start)
    end = next_heading.start() if next_heading else len(text)
    return start, end


def patch_heading(text: str, operation: PatchOperation, target: str, content: str) -> str:
    start, end = find_heading_section(text, target)
    section = _combine(operation, text[start:end], content)
    return text[:start] + section + text[end:]


def patch_block(text: str, operation: PatchOperation, target: str, content: str) -> str:
    block_id = target.lstrip("^")
    pattern = re.compile(
        rf"^(?P<text>[^\n]*?)[ \t]*\^{re.escape(block_id)}[ \t]*(?=\r?$)",
        re.MULTILINE,
    )
    match = pattern.search(text)
    if not match:
        raise PatchTargetNotFound(f"Block reference not found: ^{block_id}")
    line = _combine(operation, match.group("text"), content) + f" ^{block_id}"
    return text[: match.start()] + line + text[match.end():]


def patch_text(
    text: str,
    operation: Any,
    target_type: Any,
    target: str,
    content: str,
) -> str:
    """Apply a heading or block patch to ``text`` and return the new text."""
    op = parse_operation(operation)
    kind = parse_target_type(target_type)
    if kind is PatchTargetType.HEADING:
        return patch_heading(text, op, target, content)
    if kind is PatchTargetType.BLOCK:
        return patch_block(text, op, target, content)
    raise InvalidPatchOperation("Frontmatter patches must go through patch_frontmatter")


def _reject_constant(name: str) -> Any:
    raise ValueError(name)


def parse_value(content: str) -> Any:
    """Interpret ``content`` as JSON (numbers, booleans, null, lists, objects) or keep it as text."""
    try:
        return json.loads(content, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        return content


def _walk(metadata: Dict[str, Any], keys: List[str]) -> Dict[str, Any]:
    node = metadata
    for key in keys:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    return node


def patch_frontmatter(
    metadata: Dict[str, Any],
    operation: Any,
    target: str,
    content: str,
) -> None:
    """
    Mutate ``metadata`` in place at the dot-separated key path ``target``.

    ``replace`` overwrites the leaf. ``append``/``prepend`` extend a list
    leaf, concatenate onto a string leaf, set an absent leaf, and otherwise
    turn the existing value and the new one into a two-element list.
    """
    op = parse_operation(operation)
    keys = target.split(".")
    if not all(keys):
        raise InvalidPatchOperation(f"Invalid frontmatter key: {target}")
    parent = _walk(metadata, keys[:-1])
    leaf = keys[-1]
    value = parse_value(content)

    if op is PatchOperation.REPLACE or leaf not in parent:
        parent[leaf] = value
        return

    existing = parent[leaf]
    if isinstance(existing, list):
        if op is PatchOperation.APPEND:
            existing.append(value)
        else:
            existing.insert(0, value)
    elif isinstance(existing, str):
        addition = value if isinstance(value, str) else content
        parent[leaf] = _combine(op, existing, addition)
    elif op is PatchOperation.APPEND:
        parent[leaf] = [existing, value]
    else:
        parent[leaf] = [value, existing]


__all__ = [
    "PatchError",
    "PatchTargetNotFound",
    "InvalidPatchOperation",
    "parse_operation",
    "parse_target_type",
    "parse_value",
    "find_heading_section",
    "patch_heading",
    "patch_block",
    "patch_text",
    "patch_frontmatter",
]
