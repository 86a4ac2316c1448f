"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from antigravity_bridge.config import reset_config_manager
from antigravity_bridge.config.manager import ENV_OVERRIDES, ConfigManager
from antigravity_bridge.core.signature_cache import SignatureCache, clear_signature_cache


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch, tmp_path):
    """
    Isolate HOME, config overrides and the shared signature cache between tests.

    The config manager reads ~/.antigravity_bridge/config.yaml via Path.home(),
    so HOME points to a temp directory and cached state is reset.
    """
    config_path = Path(tmp_path) / ".antigravity_bridge" / "config.yaml"
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_PATH", config_path)

    for env_var, _section, _field, _converter in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    reset_config_manager()
    clear_signature_cache()
    yield
    reset_config_manager()
    clear_signature_cache()


@pytest.fixture
def cache():
    """A fresh signature cache."""
    return SignatureCache(max_entries=100)
