#!/usr/bin/env python3
"""Pytest fixtures for clipmirror tests.

Provides fixtures for encryption managers, sync contexts backed by a
temporary directory, and controllable clocks.
"""

from pathlib import Path

import pytest

from clipmirror.encryption import EncryptionManager
from clipmirror.sync_context import SyncContext
from conftest_sync import FakeClock, FakeUtcClock, make_context, make_manager


@pytest.fixture
def encryption() -> EncryptionManager:
    """Create a keyed EncryptionManager for device-a."""
    return make_manager("device-a")


@pytest.fixture
def sync_ctx(tmp_path: Path) -> SyncContext:
    """Create a SyncContext for device-a with a mock API."""
    return make_context(tmp_path)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a hand-driven monotonic clock."""
    return FakeClock()


@pytest.fixture
def fake_utc_clock() -> FakeUtcClock:
    """Provide a hand-driven wall clock."""
    return FakeUtcClock()
