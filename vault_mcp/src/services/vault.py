"""Filesystem vault management."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import frontmatter
import yaml

from .config import AppConfig, get_config

INVALID_PATH_CHARS = {'<', '>', ':', '"', '|', '?', '*'}
MAX_PATH_LENGTH = 1024
FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

Metadata = Dict[str, Any]


@dataclass(frozen=True)
class VaultFile:
    """A document inside the vault."""

    path: str

    @property
    def extension(self) -> str:
        return Path(self.path).suffix.lstrip(".")


@dataclass(frozen=True)
class VaultFolder:
    """A directory inside the vault."""

    path: str


VaultEntry = Union[VaultFile, VaultFolder]


def normalize_vault_path(vault_path: str) -> str:
    """Trim surrounding slashes so '/notes/a.md' and 'notes/a.md' address the same file."""
    return (vault_path or "").strip().strip("/")


def validate_vault_path(vault_path: str) -> Tuple[bool, str]:
    """
    Validate a relative vault path.

    Returns (is_valid, message). Message is empty when valid.
    """
    if not vault_path or len(vault_path) > MAX_PATH_LENGTH:
        return False, f"Path must be 1-{MAX_PATH_LENGTH} characters"
    if ".." in vault_path.split("/"):
        return False, "Path must not contain '..'"
    if "\\" in vault_path:
        return False, "Path must use Unix separators (/)"
    if any(char in INVALID_PATH_CHARS for char in vault_path):
        return False, "Path contains invalid characters"
    return True, ""


def sanitize_path(vault_root: Path, vault_path: str) -> Path:
    """
    Resolve a vault path against the vault root.

    Raises ValueError if the resolved path escapes the vault root.
    """
    root = vault_root.resolve()
    full_path = (root / vault_path).resolve()
    if full_path != root and root not in full_path.parents:
        raise ValueError(f"Path escapes vault root: {vault_path}")
    return full_path


def split_frontmatter(text: str) -> Tuple[Metadata, str, bool]:
    """
    Split raw note text into ``(metadata, body, has_frontmatter)``.

    The body is returned byte-for-byte as it appears after the closing
    delimiter. Raises ValueError when the block is not a YAML mapping.
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text, False
    try:
        loaded = frontmatter.YAMLHandler().load(match.group("yaml"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Frontmatter contains invalid YAML: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ValueError("Frontmatter must be a mapping of key/value pairs")
    return loaded, text[match.end():], True


def join_frontmatter(metadata: Metadata, body: str) -> str:
    """Serialize metadata as a YAML block in front of ``body``."""
    if not metadata:
        return body
    try:
        block = frontmatter.YAMLHandler().export(metadata, sort_keys=False)
    except yaml.YAMLError as exc:
        raise ValueError(f"Frontmatter cannot be serialized to YAML: {exc}") from exc
    return f"---\n{block}\n---\n{body}"


class VaultService:
    """Document store adapter over a directory of Markdown notes."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()
        self.vault_root = self.config.vault_path
        self.vault_root.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return self.config.display_vault_name

    def resolve_path(self, vault_path: str) -> Path:
        """
        Validate and resolve a path inside the vault.

        Raises ValueError for invalid paths.
        """
        cleaned = normalize_vault_path(vault_path)
        is_valid, message = validate_vault_path(cleaned)
        if not is_valid:
            raise ValueError(message)
        return sanitize_path(self.vault_root, cleaned)

    def get_entry(self, vault_path: str) -> Optional[VaultEntry]:
        """Look up a path, returning a file, a folder, or None when absent."""
        cleaned = normalize_vault_path(vault_path)
        absolute_path = self.resolve_path(cleaned)
        if absolute_path.is_dir():
            return VaultFolder(cleaned)
        if absolute_path.is_file():
            return VaultFile(cleaned)
        return None

    def list_files(self) -> List[str]:
        """Return the sorted relative paths of every file in the vault."""
        root = self.vault_root.resolve()
        paths = []
        for file_path in root.rglob("*"):
            if not file_path.is_file():
                continue
            relative = file_path.relative_to(root)
            # Dot-folders hold tool state (.obsidian, .git, .trash), not notes.
            if any(part.startswith(".") for part in relative.parts):
                continue
            vault_path = relative.as_posix()
            # Only list what read() will accept.
            if not validate_vault_path(vault_path)[0]:
                continue
            try:
                sanitize_path(root, vault_path)
            except ValueError:
                continue
            paths.append(vault_path)
        return sorted(paths)

    def list_under(self, prefix: str) -> List[str]:
        """Return files whose path starts with ``prefix/``."""
        folder = normalize_vault_path(prefix) + "/"
        return [path for path in self.list_files() if path.startswith(folder)]

    def list_markdown_files(self) -> List[str]:
        return [path for path in self.list_files() if path.endswith(".md")]

    def read(self, vault_path: str) -> str:
        """Read a file's text exactly as stored."""
        entry = self.get_entry(vault_path)
        if not isinstance(entry, VaultFile):
            raise FileNotFoundError(f"File not found: {vault_path}")
        return self.resolve_path(entry.path).read_bytes().decode("utf-8")

    def create(self, vault_path: str, text: str) -> VaultFile:
        """Create a new file; the parent folder must already exist."""
        absolute_path = self.resolve_path(vault_path)
        if absolute_path.exists():
            raise FileExistsError(f"File already exists: {vault_path}")
        if not absolute_path.parent.is_dir():
            raise FileNotFoundError(f"Folder not found: {absolute_path.parent.name}")
        absolute_path.write_bytes(text.encode("utf-8"))
        return VaultFile(normalize_vault_path(vault_path))

    def modify(self, vault_path: str, text: str) -> None:
        """Replace the full contents of an existing file."""
        entry = self.get_entry(vault_path)
        if isinstance(entry, VaultFolder):
            raise IsADirectoryError(f"Path is a directory: {vault_path}")
        if entry is None:
            raise FileNotFoundError(f"File not found: {vault_path}")
        self.resolve_path(entry.path).write_bytes(text.encode("utf-8"))

    def delete(self, vault_path: str) -> None:
        """Delete a file, or a folder when it is empty."""
        entry = self.get_entry(vault_path)
        if entry is None:
            raise FileNotFoundError(f"File not found: {vault_path}")
        absolute_path = self.resolve_path(entry.path)
        if isinstance(entry, VaultFolder):
            if any(absolute_path.iterdir()):
                raise ValueError(f"Folder is not empty: {vault_path}")
            absolute_path.rmdir()
            return
        absolute_path.unlink()

    def ensure_folder(self, vault_path: str) -> None:
        """Create a folder (and missing parents) if it does not exist."""
        absolute_path = self.resolve_path(vault_path)
        if absolute_path.is_file():
            raise FileExistsError(f"A file exists at folder path: {vault_path}")
        absolute_path.mkdir(parents=True, exist_ok=True)

    def process_frontmatter(
        self, vault_path: str, mutator: Callable[[Metadata], None]
    ) -> Metadata:
        """
        Apply ``mutator`` to a note's frontmatter mapping and write it back.

        The note body after the frontmatter block is preserved exactly. A
        block is added when the note has none. Returns the new metadata.
        """
        text = self.read(vault_path)
        metadata, body, _ = split_frontmatter(text)
        mutator(metadata)
        self.modify(vault_path, join_frontmatter(metadata, body))
        return metadata


__all__ = [
    "VaultService",
    "VaultFile",
    "VaultFolder",
    "VaultEntry",
    "Metadata",
    "normalize_vault_path",
    "validate_vault_path",
    "sanitize_path",
    "split_frontmatter",
    "join_frontmatter",
]
