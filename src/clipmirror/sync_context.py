#!/usr/bin/env python3
"""Shared context for the sync engine activities.

SyncContext groups everything the local-change, drain, poll, push and apply
activities need: the collaborators (API client, cipher, clipboard backend,
offline queue, cursor store), the echo suppressor, the event dispatcher and
the engine state. It plays the role a single state object plays for a
connection loop: every handler takes it as its first argument.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from clipmirror.constants import (
    CONNECTED_POLL_INTERVAL,
    DRAIN_INTERVAL,
    MAX_ATTEMPTS,
    PAGE_SIZE,
    POLL_INTERVAL,
    QUEUE_MAX_AGE,
    REQUEST_TIMEOUT,
)
from clipmirror.errors import ConfigError
from clipmirror.events import CREDENTIAL_REJECTED, EventDispatcher
from clipmirror.sync_state import SyncState

if TYPE_CHECKING:
    from clipmirror.api_client import ApiClient
    from clipmirror.clipboard import ClipboardBackend
    from clipmirror.content import ContentProcessor
    from clipmirror.echo_suppressor import EchoSuppressor
    from clipmirror.encryption import EncryptionManager
    from clipmirror.errors import InvalidCredentialError
    from clipmirror.offline_queue import OfflineQueue

logger = logging.getLogger(__name__)


class CursorStore(Protocol):
    """Durable home of the sync cursor."""

    def load_cursor(self) -> int:
        """Return the persisted cursor, 0 if none."""

    def save_cursor(self, seq: int) -> None:
        """Persist the cursor atomically."""


@dataclass(frozen=True)
class SyncSettings:
    """Timing and limit settings for the sync engine."""

    poll_interval: float = POLL_INTERVAL
    connected_poll_interval: float = CONNECTED_POLL_INTERVAL
    drain_interval: float = DRAIN_INTERVAL
    max_attempts: int = MAX_ATTEMPTS
    queue_max_age: float = QUEUE_MAX_AGE
    page_size: int = PAGE_SIZE
    request_timeout: float = REQUEST_TIMEOUT


@dataclass
class SyncContext:
    """Collaborators and state shared by the sync activities.

    Attributes:
        device_id: This device's identifier.
        api: REST client for the sync service.
        encryption: Cipher for outbound and inbound content.
        processor: Content normalizer.
        echo: Echo suppressor shared with the clipboard monitor.
        queue: Offline queue of unsent items.
        clipboard: Platform clipboard backend.
        cursor_store: Durable store for the sync cursor.
        settings: Timing and limit settings.
        state: Engine state and statistics.
        events: Observer list for engine events.
    """

    device_id: str
    api: ApiClient
    encryption: EncryptionManager
    processor: ContentProcessor
    echo: EchoSuppressor
    queue: OfflineQueue
    clipboard: ClipboardBackend
    cursor_store: CursorStore
    settings: SyncSettings = field(default_factory=SyncSettings)
    state: SyncState = field(default_factory=SyncState)
    events: EventDispatcher = field(default_factory=EventDispatcher)


async def persist_cursor(ctx: SyncContext) -> None:
    """Write the current cursor to the cursor store from a worker thread.

    Failures are logged and recorded; the in-memory cursor stays valid and
    the next successful batch persists it again.
    """
    seq = ctx.state.last_seq
    try:
        await asyncio.to_thread(ctx.cursor_store.save_cursor, seq)
    except (OSError, ConfigError) as e:
        logger.error("Failed to persist sync cursor %d: %s", seq, e)
        ctx.state.record_error(e)
    else:
        logger.debug("Persisted sync cursor %d", seq)


def flag_credential_rejected(ctx: SyncContext, error: InvalidCredentialError) -> None:
    """Record that the server rejected our access token.

    Logs once per rejection and emits the credential_rejected event; the
    drain, poll and push activities pause until the credential is replaced.
    """
    ctx.state.record_error(error)
    if not ctx.state.set_credential_rejected(True):
        logger.error(
            "Server rejected the access token (%d): %s; re-authentication required",
            error.status_code,
            error,
        )
        ctx.events.emit(CREDENTIAL_REJECTED, error)


async def wait_for_shutdown(shutdown: asyncio.Event, timeout: float) -> bool:
    """Sleep up to timeout seconds, waking early on shutdown.

    Returns:
        True if shutdown was signaled.
    """
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True
