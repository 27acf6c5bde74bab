"""Plain substring search across vault notes."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ..models.search import SearchMatch
from .vault import VaultService

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LENGTH = 100


def _coerce_context_length(context_length: Any) -> int:
    if context_length is None:
        return DEFAULT_CONTEXT_LENGTH
    if isinstance(context_length, bool):
        raise ValueError("context_length must be a number")
    try:
        value = int(context_length)
    except (TypeError, ValueError) as exc:
        raise ValueError("context_length must be a number") from exc
    return max(0, value)


def find_matches(
    path: str, content: str, query: str, context_length: int
) -> List[SearchMatch]:
    """Return every case-insensitive occurrence of ``query`` in ``content``, overlaps included."""
    # A zero-width lookahead lets occurrences overlap ("aa" twice in "aaa").
    pattern = re.compile(f"(?=({re.escape(query)}))", re.IGNORECASE)
    matches: List[SearchMatch] = []
    for found in pattern.finditer(content):
        position = found.start()
        start = max(0, position - context_length)
        end = min(len(content), position + len(found.group(1)) + context_length)
        matches.append(SearchMatch(file=path, match=content[start:end], position=position))
    return matches


class SearchService:
    """Linear scan of every Markdown note in the vault."""

    def __init__(self, vault_service: Optional[VaultService] = None) -> None:
        self.vault = vault_service or VaultService()

    def search(
        self, query: str, context_length: Any = DEFAULT_CONTEXT_LENGTH
    ) -> List[Dict[str, Any]]:
        """
        Find ``query`` in all notes.

        Args:
            query: Text to look for, compared case-insensitively. An empty
                query matches nothing.
            context_length: Characters of context kept on each side.

        Returns:
            ``{file, match, position}`` dictionaries ordered by path, then offset.
        """
        window = _coerce_context_length(context_length)
        if not query:
            return []

        results: List[Dict[str, Any]] = []
        for path in self.vault.list_markdown_files():
            try:
                content = self.vault.read(path)
            except (FileNotFoundError, UnicodeDecodeError, ValueError) as exc:
                # Notes can vanish or hold non-UTF-8 bytes between listing and reading.
                logger.warning(f"Skipping unreadable note {path}: {exc}")
                continue
            results.extend(
                match.model_dump() for match in find_matches(path, content, query, window)
            )

        logger.debug(
            "Search completed",
            extra={"query_length": len(query), "results": len(results)},
        )
        return results


__all__ = ["SearchService", "find_matches", "DEFAULT_CONTEXT_LENGTH"]
