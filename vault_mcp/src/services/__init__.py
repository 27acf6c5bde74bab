"""Service layer for vault access, patching, search and structured queries."""

from .config import AppConfig, get_config, reload_config
from .dataview import DataviewSyntaxError, FrontmatterQueryEngine, QueryEngine, parse_query
from .patcher import (
    InvalidPatchOperation,
    PatchError,
    PatchTargetNotFound,
    patch_frontmatter,
    patch_text,
)
from .rate_limiter import ClientRateRecord, RateLimiter
from .search import SearchService
from .tool_executor import ToolError, ToolExecutor
from .vault import VaultFile, VaultFolder, VaultService, sanitize_path, validate_vault_path

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "VaultService",
    "VaultFile",
    "VaultFolder",
    "sanitize_path",
    "validate_vault_path",
    "PatchError",
    "PatchTargetNotFound",
    "InvalidPatchOperation",
    "patch_text",
    "patch_frontmatter",
    "SearchService",
    "RateLimiter",
    "ClientRateRecord",
    "QueryEngine",
    "FrontmatterQueryEngine",
    "DataviewSyntaxError",
    "parse_query",
    "ToolExecutor",
    "ToolError",
]
