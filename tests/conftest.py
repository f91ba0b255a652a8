"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

import src.config as config_module

CREDENTIAL_VARS = (
    "TRELLO_API_KEY",
    "TRELLO_TOKEN",
    "TRELLO_BOARD_ID",
    "TRELLO_DOING_LIST_ID",
    "DOING_LIST_NAME",
    "DONE_LIST_ID",
    "DONE_LIST_NAME",
    "REVIEW_LIST_ID",
    "REVIEW_LIST_NAME",
    "REJECTED_LIST_ID",
    "REJECTED_LIST_NAME",
    "INCLUDE_LIST_NAMES",
    "BLACKLIST_PATTERNS",
    "GITHUB_TOKEN",
    "REJECTED_LABEL_NAME",
    "UR_STAGING_BASE_URL",
    "MATTERMOST_URL",
    "MATTERMOST_TOKEN",
    "MATTERMOST_CHANNEL_ID",
    "OPENROUTER_API_KEY",
    "LLM_API_KEY",
    "LLM_MODEL",
    "LLM_BASE_URL",
    "CARDFLOW_CACHE_DIR",
    "CARDFLOW_REPORTS_DIR",
    "CARDFLOW_LOG_API",
    "CARDFLOW_LOG_API_DIR",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Path:
    """Keep tests away from the real ~/.cardflow and the developer's environment."""
    for var in CREDENTIAL_VARS:
        monkeypatch.delenv(var, raising=False)

    home = tmp_path / ".cardflow"
    monkeypatch.setattr(config_module, "CARDFLOW_HOME", home)
    monkeypatch.setattr(config_module, "CONFIG_FILE", home / "config.toml")
    return home / "config.toml"


@pytest.fixture
def trello_env(monkeypatch, tmp_path: Path) -> None:
    """Minimal Trello configuration, with caches and reports under tmp_path."""
    monkeypatch.setenv("TRELLO_API_KEY", "test-key")
    monkeypatch.setenv("TRELLO_TOKEN", "test-token")
    monkeypatch.setenv("TRELLO_BOARD_ID", "board1")
    monkeypatch.setenv("CARDFLOW_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("CARDFLOW_REPORTS_DIR", str(tmp_path / "reports"))
