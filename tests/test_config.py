#!/usr/bin/env python3
"""Tests for the agent configuration file."""
import json
import os
import stat
from pathlib import Path

import pytest

from clipmirror.config import (
    AgentConfig,
    apply_env,
    clear_stored_auth,
    load_config,
    passphrase_from_env,
    save_config,
)
from clipmirror.constants import DEFAULT_SERVICE_URL, POLL_INTERVAL
from clipmirror.errors import ConfigError


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    """Test a saved configuration loads back with timestamps set."""
    path = tmp_path / "config.json"
    saved = save_config(AgentConfig(device_id="dev-1", access_token="tok"), path)
    loaded = load_config(path)
    assert loaded == saved
    assert loaded.created_at is not None
    assert loaded.updated_at is not None


def test_config_file_is_private(tmp_path: Path) -> None:
    """Test the file holding the token is owner-only."""
    path = tmp_path / "config.json"
    save_config(AgentConfig(access_token="tok"), path)
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_missing_file_loads_none(tmp_path: Path) -> None:
    """Test a missing configuration is None, not an error."""
    assert load_config(tmp_path / "none.json") is None


def test_unknown_keys_ignored(tmp_path: Path) -> None:
    """Test keys from newer versions are ignored."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"device_id": "d", "future_option": 1}))
    config = load_config(path)
    assert config.device_id == "d"
    assert config.poll_interval == POLL_INTERVAL
    assert config.api_url == DEFAULT_SERVICE_URL


def test_int_accepted_for_float_fields(tmp_path: Path) -> None:
    """Test integral JSON numbers are accepted for intervals."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"poll_interval": 2}))
    assert load_config(path).poll_interval == 2.0


@pytest.mark.parametrize(
    "content",
    ["{broken", "[]", json.dumps({"last_seq": "7"}), json.dumps({"allow_images": 1})],
)
def test_invalid_configuration_raises(tmp_path: Path, content: str) -> None:
    """Test invalid JSON or wrongly typed values raise ConfigError."""
    path = tmp_path / "config.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_clear_stored_auth_keeps_identity(tmp_path: Path) -> None:
    """Test clearing auth wipes token, user and cursor only."""
    path = tmp_path / "config.json"
    save_config(
        AgentConfig(device_id="d", user_id="u", access_token="t", last_seq=40, page_size=10),
        path,
    )
    assert clear_stored_auth(path)
    config = load_config(path)
    assert (config.access_token, config.user_id, config.last_seq) == ("", "", 0)
    assert config.device_id == "d"
    assert config.page_size == 10


def test_clear_stored_auth_without_file(tmp_path: Path) -> None:
    """Test clearing auth with no configuration is a no-op."""
    assert not clear_stored_auth(tmp_path / "config.json")


def test_apply_env_overrides() -> None:
    """Test environment values replace the URL and token."""
    config = apply_env(
        AgentConfig(api_url="http://old", access_token="old"),
        {"CLIPMIRROR_SERVICE_URL": "https://new", "CLIPMIRROR_API_KEY": "new"},
    )
    assert config.api_url == "https://new"
    assert config.access_token == "new"


def test_apply_env_without_variables() -> None:
    """Test an empty environment leaves the config unchanged."""
    config = AgentConfig(access_token="keep")
    assert apply_env(config, {}) is config


def test_passphrase_from_env() -> None:
    """Test the passphrase is read from CLIPMIRROR_PASSPHRASE."""
    assert passphrase_from_env({"CLIPMIRROR_PASSPHRASE": "pw"}) == "pw"
    assert passphrase_from_env({}) is None


def test_queue_path_defaults_next_to_config(tmp_path: Path) -> None:
    """Test an empty queue_path resolves beside the config file."""
    config_path = tmp_path / "config.json"
    assert AgentConfig().resolved_queue_path(config_path) == tmp_path / "queue.json"
    custom = AgentConfig(queue_path=str(tmp_path / "q" / "items.json"))
    assert custom.resolved_queue_path(config_path) == tmp_path / "q" / "items.json"


def test_sync_settings_copied() -> None:
    """Test engine settings come from the configuration."""
    settings = AgentConfig(poll_interval=1.5, page_size=7, max_attempts=3).sync_settings()
    assert settings.poll_interval == 1.5
    assert settings.page_size == 7
    assert settings.max_attempts == 3
