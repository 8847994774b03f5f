#!/usr/bin/env python3
"""Tests for DeviceStore."""
import sys
from pathlib import Path

from clipmirror.config import AgentConfig, load_config, save_config
from clipmirror.device import DeviceStore, device_platform


def test_first_run_creates_identity(tmp_path: Path) -> None:
    """Test a device id and name are generated and saved."""
    path = tmp_path / "config.json"
    config = DeviceStore(path).load_or_create()
    assert len(config.device_id) == 32
    assert config.device_name
    assert load_config(path).device_id == config.device_id


def test_identity_is_stable(tmp_path: Path) -> None:
    """Test a second store reuses the saved identity."""
    path = tmp_path / "config.json"
    first = DeviceStore(path).load_or_create()
    second = DeviceStore(path).load_or_create()
    assert first.device_id == second.device_id


def test_existing_identity_not_rewritten(tmp_path: Path) -> None:
    """Test an existing complete config is loaded without saving."""
    path = tmp_path / "config.json"
    saved = save_config(AgentConfig(device_id="dev", device_name="box"), path)
    config = DeviceStore(path).load_or_create()
    assert config.updated_at == saved.updated_at


def test_cursor_round_trip(tmp_path: Path) -> None:
    """Test save_cursor persists last_seq for the next run."""
    path = tmp_path / "config.json"
    store = DeviceStore(path)
    assert store.load_cursor() == 0
    store.save_cursor(17)
    assert DeviceStore(path).load_cursor() == 17


def test_update_persists_changes(tmp_path: Path) -> None:
    """Test update() saves the changed fields."""
    path = tmp_path / "config.json"
    store = DeviceStore(path)
    store.update(user_id="user-9")
    assert load_config(path).user_id == "user-9"
    assert store.config.user_id == "user-9"


def test_device_platform() -> None:
    """Test the reported platform is sys.platform."""
    assert device_platform() == sys.platform
