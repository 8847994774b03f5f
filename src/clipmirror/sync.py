#!/usr/bin/env python3
"""Clipboard synchronization coordination.

This module re-exports synchronization components from submodules for
convenient imports. The actual implementations are in:
- sync_context: SyncContext, SyncSettings
- sync_state: SyncState, SyncStats
- sync_local: LocalChangeHandler, QueueDrainer
- sync_apply: RemoteApplier
- sync_poll: Poller
- sync_push: PushListener
- sync_engine: SyncEngine
"""

from clipmirror.sync_apply import RemoteApplier
from clipmirror.sync_context import SyncContext, SyncSettings
from clipmirror.sync_engine import SyncEngine
from clipmirror.sync_local import LocalChangeHandler, QueueDrainer
from clipmirror.sync_poll import Poller
from clipmirror.sync_push import PushListener
from clipmirror.sync_state import SyncState, SyncStats

__all__ = [
    "LocalChangeHandler",
    "Poller",
    "PushListener",
    "QueueDrainer",
    "RemoteApplier",
    "SyncContext",
    "SyncEngine",
    "SyncSettings",
    "SyncState",
    "SyncStats",
]
