from pathlib import Path

import pytest
from pydantic import ValidationError

from vault_mcp.src.services import config as config_module
from vault_mcp.src.services.config import AppConfig


@pytest.fixture(autouse=True)
def restore_config_cache(monkeypatch, tmp_path: Path):
    """
    Ensure configuration cache is cleared between tests.
    """
    monkeypatch.setenv("VAULT_PATH", str(tmp_path / "vault"))
    config_module.get_config.cache_clear()
    yield
    config_module.get_config.cache_clear()


def test_get_config_defaults(monkeypatch, tmp_path: Path) -> None:
    for key in (
        "MCP_API_KEY",
        "VAULT_NAME",
        "MCP_PORT",
        "ENABLE_EXTERNAL_ACCESS",
        "ENABLE_DATAVIEW_QUERIES",
        "RATE_LIMIT_PER_MINUTE",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)

    cfg = config_module.reload_config()

    assert cfg.api_key is None
    assert cfg.port == 27125
    assert cfg.host == "127.0.0.1"
    assert cfg.enable_dataview_queries is True
    assert cfg.rate_limit_per_minute == 60
    assert cfg.vault_path == (tmp_path / "vault").resolve()
    assert cfg.vault_path.is_dir()
    assert cfg.display_vault_name == "vault"
    assert cfg.log_level == "INFO"


def test_get_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("MCP_API_KEY", "  secret-key  ")
    monkeypatch.setenv("VAULT_NAME", "Work Notes")
    monkeypatch.setenv("MCP_PORT", "8123")
    monkeypatch.setenv("ENABLE_EXTERNAL_ACCESS", "true")
    monkeypatch.setenv("ENABLE_DATAVIEW_QUERIES", "off")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = config_module.reload_config()

    assert cfg.api_key == "secret-key"
    assert cfg.display_vault_name == "Work Notes"
    assert cfg.port == 8123
    assert cfg.host == "0.0.0.0"
    assert cfg.enable_dataview_queries is False
    assert cfg.rate_limit_per_minute == 5
    assert cfg.log_level == "DEBUG"


def test_get_config_is_cached(monkeypatch) -> None:
    first = config_module.reload_config()
    monkeypatch.setenv("MCP_PORT", "9000")

    assert config_module.get_config() is first
    assert config_module.reload_config().port == 9000


def test_blank_api_key_means_unset(tmp_path: Path) -> None:
    cfg = AppConfig(vault_path=tmp_path, api_key="   ")

    assert cfg.api_key is None


@pytest.mark.parametrize("port", [0, 70000])
def test_rejects_out_of_range_port(tmp_path: Path, port: int) -> None:
    with pytest.raises(ValidationError):
        AppConfig(vault_path=tmp_path, port=port)


def test_rejects_zero_rate_limit(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        AppConfig(vault_path=tmp_path, rate_limit_per_minute=0)


def test_config_is_frozen(tmp_path: Path) -> None:
    cfg = AppConfig(vault_path=tmp_path)

    with pytest.raises(ValidationError):
        cfg.port = 1
