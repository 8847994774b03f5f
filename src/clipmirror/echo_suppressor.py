#!/usr/bin/env python3
"""
Echo suppression for loop prevention.

When a remote update is applied, the local clipboard changes and the
clipboard monitor will see that change on its next read. Without tracking,
the monitor would treat the write as a new local copy and send it back,
creating an endless loop between devices.

EchoSuppressor remembers the local content hashes this device wrote itself
for a sliding window (five minutes by default). The monitor checks
is_applied() before treating a change as local.

Critical ordering: mark_applied() must be called BEFORE writing the
clipboard, so that a write which immediately triggers change detection
finds the entry already present.

Expired entries are evicted on every mark_applied() call by sweeping the
whole table. That is O(n) per call, which is fine for the handful of
entries a clipboard produces in five minutes.

Known trade-off: if the user copies, from another application, exactly the
content a remote update just applied, that copy is swallowed until the
window lapses. Shortening the window narrows this but reopens the echo loop
for slow clipboard tools, so the window stays a configuration value.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from clipmirror.constants import ECHO_WINDOW


class EchoSuppressor:
    """
    Track recently self-applied content hashes.

    Safe to use from the event loop and from worker threads at once; every
    access to the table goes through one lock.

    Attributes:
        window: Seconds a marked hash stays suppressed.
    """

    def __init__(
        self,
        window: float = ECHO_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window = window
        self._clock = clock
        self._applied: dict[str, float] = {}
        self._lock = threading.Lock()

    def mark_applied(self, content_hash: str) -> None:
        """
        Record a hash as written by this device.

        CRITICAL: Must be called BEFORE writing the clipboard.

        Args:
            content_hash: Local content hash of the applied content.
        """
        now = self._clock()
        with self._lock:
            self._applied[content_hash] = now
            cutoff = now - self.window
            expired = [h for h, stamp in self._applied.items() if stamp < cutoff]
            for h in expired:
                del self._applied[h]

    def is_applied(self, content_hash: str) -> bool:
        """
        Check if a hash was applied by this device within the window.

        Args:
            content_hash: Local content hash to check.

        Returns:
            True if the content is an echo of our own write.
        """
        now = self._clock()
        with self._lock:
            stamp = self._applied.get(content_hash)
        if stamp is None:
            return False
        return now - stamp < self.window

    def clear(self) -> None:
        """Forget every recorded hash."""
        with self._lock:
            self._applied.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._applied)
