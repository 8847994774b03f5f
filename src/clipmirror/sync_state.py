#!/usr/bin/env python3
"""Synchronization engine state.

SyncState groups the mutable state of one SyncEngine: the sequence cursor,
connection flags, counters and the last error. It is owned by exactly one
engine and only touched through its methods, which all take the same lock,
so the reporting side can read a consistent snapshot while the engine's
activities update it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from clipmirror.models import utcnow

PHASE_IDLE = "idle"
PHASE_POLLING = "polling"
PHASE_SENDING = "sending"


@dataclass(frozen=True)
class SyncStats:
    """Read-only health snapshot of a sync engine.

    Attributes:
        running: Whether the engine loops are active.
        phase: "idle", "polling" or "sending".
        push_connected: Whether the push channel is up.
        credential_rejected: Whether the server rejected the access token.
        last_seq: Highest sequence number applied or sent past.
        items_sent: Items acknowledged by the server.
        items_received: Remote items applied to the clipboard.
        items_queued: Items currently waiting in the offline queue.
        items_dropped: Items dropped after exhausting retries or aging out.
        last_error: Description of the most recent error, if any.
        last_poll_time: When the last poll completed.
        last_sync_time: When an item was last sent.
    """

    running: bool
    phase: str
    push_connected: bool
    credential_rejected: bool
    last_seq: int
    items_sent: int
    items_received: int
    items_queued: int
    items_dropped: int
    last_error: str | None
    last_poll_time: datetime | None
    last_sync_time: datetime | None


class SyncState:
    """Mutable state of one sync engine behind a single lock."""

    def __init__(self, last_seq: int = 0) -> None:
        self._lock = threading.Lock()
        self._last_seq = last_seq
        self._running = False
        self._phase = PHASE_IDLE
        self._push_connected = False
        self._credential_rejected = False
        self._items_sent = 0
        self._items_received = 0
        self._items_queued = 0
        self._items_dropped = 0
        self._last_error: str | None = None
        self._last_poll_time: datetime | None = None
        self._last_sync_time: datetime | None = None

    @property
    def last_seq(self) -> int:
        with self._lock:
            return self._last_seq

    def advance_seq(self, seq: int) -> bool:
        """Move the cursor forward to seq.

        Returns:
            True if the cursor moved, False if seq is not beyond it.
        """
        with self._lock:
            if seq <= self._last_seq:
                return False
            self._last_seq = seq
            return True

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def set_running(self, running: bool) -> None:
        with self._lock:
            self._running = running
            if not running:
                self._phase = PHASE_IDLE
                self._push_connected = False

    @property
    def phase(self) -> str:
        with self._lock:
            return self._phase

    def set_phase(self, phase: str) -> None:
        with self._lock:
            self._phase = phase

    @property
    def push_connected(self) -> bool:
        with self._lock:
            return self._push_connected

    def set_push_connected(self, connected: bool) -> bool:
        """Set the push flag and return its previous value."""
        with self._lock:
            previous = self._push_connected
            self._push_connected = connected
            return previous

    @property
    def credential_rejected(self) -> bool:
        with self._lock:
            return self._credential_rejected

    def set_credential_rejected(self, rejected: bool) -> bool:
        """Set the rejected-credential flag and return its previous value."""
        with self._lock:
            previous = self._credential_rejected
            self._credential_rejected = rejected
            return previous

    def record_sent(self) -> None:
        with self._lock:
            self._items_sent += 1
            self._last_sync_time = utcnow()

    def record_received(self) -> None:
        with self._lock:
            self._items_received += 1

    def record_dropped(self, count: int = 1) -> None:
        with self._lock:
            self._items_dropped += count

    def set_queue_size(self, size: int) -> None:
        with self._lock:
            self._items_queued = size

    def record_poll(self) -> None:
        with self._lock:
            self._last_poll_time = utcnow()

    def record_error(self, error: BaseException | str) -> None:
        with self._lock:
            self._last_error = str(error) or type(error).__name__

    def clear_error(self) -> None:
        with self._lock:
            self._last_error = None

    @property
    def last_error(self) -> str | None:
        with self._lock:
            return self._last_error

    def snapshot(self) -> SyncStats:
        """Return a consistent copy of all counters and flags."""
        with self._lock:
            return SyncStats(
                running=self._running,
                phase=self._phase,
                push_connected=self._push_connected,
                credential_rejected=self._credential_rejected,
                last_seq=self._last_seq,
                items_sent=self._items_sent,
                items_received=self._items_received,
                items_queued=self._items_queued,
                items_dropped=self._items_dropped,
                last_error=self._last_error,
                last_poll_time=self._last_poll_time,
                last_sync_time=self._last_sync_time,
            )

    def is_healthy(self) -> bool:
        """True if running, credentials accepted and no outstanding error."""
        with self._lock:
            return self._running and not self._credential_rejected and self._last_error is None
