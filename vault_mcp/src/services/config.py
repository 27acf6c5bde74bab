"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_VAULT_PATH = PROJECT_ROOT / "data" / "vault"

_FALSY = {"0", "false", "no", "off"}


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = Field(
        default=None,
        description="Shared secret expected in the X-API-Key header",
    )
    vault_path: Path = Field(..., description="Root directory of the notes vault")
    vault_name: Optional[str] = Field(
        default=None,
        description="Display name reported by /health (defaults to the vault folder name)",
    )
    port: int = Field(default=27125, ge=1, le=65535, description="HTTP port")
    enable_external_access: bool = Field(
        default=False,
        description="Bind to all interfaces instead of loopback only",
    )
    enable_dataview_queries: bool = Field(
        default=True,
        description="Allow structured (Dataview) queries through the API",
    )
    rate_limit_per_minute: int = Field(
        default=60, ge=1, description="Maximum requests per client per window"
    )
    rate_limit_window_seconds: float = Field(
        default=60.0, gt=0, description="Length of a rate-limit window in seconds"
    )
    rate_limit_max_clients: int = Field(
        default=10_000, ge=1, description="Client records kept before evicting the oldest"
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    @field_validator("vault_path", mode="before")
    @classmethod
    def _normalize_vault_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("VAULT_PATH is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @property
    def host(self) -> str:
        return "0.0.0.0" if self.enable_external_access else "127.0.0.1"

    @property
    def display_vault_name(self) -> str:
        return self.vault_name or self.vault_path.name


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def _read_flag(key: str, default: str) -> bool:
    return (_read_env(key, default) or "").strip().lower() not in _FALSY


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    config = AppConfig(
        api_key=_read_env("MCP_API_KEY"),
        vault_path=_read_env("VAULT_PATH", str(DEFAULT_VAULT_PATH)),
        vault_name=_read_env("VAULT_NAME") or None,
        port=_read_env("MCP_PORT", "27125"),
        enable_external_access=_read_flag("ENABLE_EXTERNAL_ACCESS", "false"),
        enable_dataview_queries=_read_flag("ENABLE_DATAVIEW_QUERIES", "true"),
        rate_limit_per_minute=_read_env("RATE_LIMIT_PER_MINUTE", "60"),
        rate_limit_window_seconds=_read_env("RATE_LIMIT_WINDOW_SECONDS", "60"),
        rate_limit_max_clients=_read_env("RATE_LIMIT_MAX_CLIENTS", "10000"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
    )
    # Ensure the vault directory exists for downstream services.
    config.vault_path.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "PROJECT_ROOT",
    "DEFAULT_VAULT_PATH",
]
