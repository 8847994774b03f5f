#!/usr/bin/env python3
"""Durable offline queue for clipboard items that could not be sent.

The queue is a JSON list on disk. Every mutation rewrites the whole file
through write_json_atomic(), so a crash never leaves a truncated store:
after add() returns, the item survives a restart.

Retries use exponential backoff: an item that has failed k times is only
eligible again after 2**k backoff units (one minute by default) since its
last try. Drain order follows insertion order, but a young item can be
retried before an older one still waiting out its backoff.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable

from clipmirror.atomic_file import read_json, write_json_atomic
from clipmirror.constants import BACKOFF_UNIT
from clipmirror.errors import MalformedPayloadError, QueueItemNotFound, QueueStoreError
from clipmirror.models import ClipboardItem, QueuedItem, utcnow

logger = logging.getLogger(__name__)


class OfflineQueue:
    """Persistent list of QueuedItem objects awaiting transmission.

    Attributes:
        path: Location of the JSON store.
        backoff_unit: Seconds per backoff unit.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        backoff_unit: float = BACKOFF_UNIT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.path = path
        self.backoff_unit = backoff_unit
        self._clock = clock
        self._items: list[QueuedItem] = []
        self._lock = threading.RLock()

    def load(self) -> None:
        """Read the queue from disk, replacing the in-memory contents.

        A missing or empty file is an empty queue.

        Raises:
            QueueStoreError: If the file cannot be read or parsed.
        """
        try:
            raw = read_json(self.path)
        except (OSError, ValueError) as e:
            raise QueueStoreError(f"Failed to read queue file {self.path}: {e}") from e
        items: list[QueuedItem] = []
        if raw is not None:
            if not isinstance(raw, list):
                raise QueueStoreError(f"Queue file {self.path} does not hold a list")
            try:
                items = [QueuedItem.from_dict(entry) for entry in raw]
            except (KeyError, TypeError, ValueError, MalformedPayloadError) as e:
                raise QueueStoreError(f"Corrupt entry in queue file {self.path}: {e}") from e
        with self._lock:
            self._items = items
        logger.debug("Loaded %d queued items from %s", len(items), self.path)

    def add(self, item: ClipboardItem) -> QueuedItem:
        """Append an item and persist before returning.

        Args:
            item: The encrypted outbound item.

        Returns:
            The new QueuedItem with zero attempts.

        Raises:
            QueueStoreError: If the queue cannot be persisted. The item is
                not kept in memory in that case.
        """
        queued = QueuedItem(queue_id=uuid.uuid4().hex, item=item, queued_at=self._clock())
        with self._lock:
            self._items.append(queued)
            try:
                self._save_locked()
            except QueueStoreError:
                self._items.pop()
                raise
        return queued

    def pending(self, max_attempts: int) -> list[QueuedItem]:
        """Return items eligible for a retry now.

        An item is eligible when attempts < max_attempts and it has either
        never been tried or its backoff of 2**attempts units has elapsed.
        """
        now = self._clock()
        with self._lock:
            return [
                queued
                for queued in self._items
                if queued.attempts < max_attempts and self._backoff_elapsed(queued, now)
            ]

    def _backoff_elapsed(self, queued: QueuedItem, now: datetime) -> bool:
        if queued.attempts == 0 or queued.last_try is None:
            return True
        delay = timedelta(seconds=(2 ** queued.attempts) * self.backoff_unit)
        return now - queued.last_try >= delay

    def mark_attempted(self, queue_id: str) -> QueuedItem:
        """Record a failed attempt and persist.

        Returns:
            The updated QueuedItem.

        Raises:
            QueueItemNotFound: If queue_id is not queued.
        """
        with self._lock:
            queued = self._find_locked(queue_id)
            queued.attempts += 1
            queued.last_try = self._clock()
            self._save_locked()
            return queued

    def remove(self, queue_id: str) -> None:
        """Delete an item after a successful send and persist.

        Raises:
            QueueItemNotFound: If queue_id is not queued.
        """
        with self._lock:
            queued = self._find_locked(queue_id)
            self._items.remove(queued)
            self._save_locked()

    def cleanup_old(self, max_age: float) -> int:
        """Drop items queued more than max_age seconds ago.

        Returns:
            Number of items dropped.
        """
        cutoff = self._clock() - timedelta(seconds=max_age)
        with self._lock:
            kept = [queued for queued in self._items if queued.queued_at > cutoff]
            dropped = len(self._items) - len(kept)
            if dropped:
                self._items = kept
                self._save_locked()
        return dropped

    def drop_exhausted(self, max_attempts: int) -> list[QueuedItem]:
        """Remove and return items that reached max_attempts."""
        with self._lock:
            exhausted = [queued for queued in self._items if queued.attempts >= max_attempts]
            if exhausted:
                self._items = [queued for queued in self._items if queued.attempts < max_attempts]
                self._save_locked()
        return exhausted

    def clear(self) -> None:
        """Remove all items and persist."""
        with self._lock:
            self._items = []
            self._save_locked()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

    def items(self) -> list[QueuedItem]:
        """Snapshot of all queued items in insertion order."""
        with self._lock:
            return list(self._items)

    def _find_locked(self, queue_id: str) -> QueuedItem:
        for queued in self._items:
            if queued.queue_id == queue_id:
                return queued
        raise QueueItemNotFound(f"item not found in queue: {queue_id}")

    def _save_locked(self) -> None:
        try:
            write_json_atomic(self.path, [queued.to_dict() for queued in self._items])
        except OSError as e:
            raise QueueStoreError(f"Failed to write queue file {self.path}: {e}") from e
