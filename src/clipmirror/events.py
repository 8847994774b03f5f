#!/usr/bin/env python3
"""Observer list for sync engine events.

Callbacks subscribe to named events. Plain functions run inline when the
event is emitted. Coroutine functions go into a bounded queue served by
max_concurrent worker tasks, so a burst of events never fans out into an
unbounded number of tasks; when the queue is full the callback is dropped
with a warning. A failing callback is logged and never breaks the engine.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable

from clipmirror.constants import MAX_CONCURRENT_CALLBACKS, MAX_PENDING_CALLBACKS

logger = logging.getLogger(__name__)

LOCAL_CHANGE = "local_change"
ITEM_SENT = "item_sent"
ITEM_QUEUED = "item_queued"
REMOTE_APPLIED = "remote_applied"
CONNECTED = "connected"
DISCONNECTED = "disconnected"
CREDENTIAL_REJECTED = "credential_rejected"

EVENTS = (
    LOCAL_CHANGE,
    ITEM_SENT,
    ITEM_QUEUED,
    REMOTE_APPLIED,
    CONNECTED,
    DISCONNECTED,
    CREDENTIAL_REJECTED,
)


class EventDispatcher:
    """Dispatch engine events to subscribed callbacks."""

    def __init__(
        self,
        max_concurrent: int = MAX_CONCURRENT_CALLBACKS,
        max_pending: int = MAX_PENDING_CALLBACKS,
    ) -> None:
        self.max_concurrent = max_concurrent
        self._callbacks: dict[str, list[Callable[..., Any]]] = defaultdict(list)
        self._queue: asyncio.Queue[tuple[str, Callable[..., Any], tuple[Any, ...]]] = (
            asyncio.Queue(maxsize=max_pending)
        )
        self._workers: list[asyncio.Task[None]] = []
        self._unfinished = 0

    def subscribe(self, event: str, callback: Callable[..., Any]) -> None:
        """Register callback for event.

        Raises:
            ValueError: If event is not a known event name.
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        self._callbacks[event].append(callback)

    def emit(self, event: str, *args: Any) -> None:
        """Invoke every callback registered for event."""
        for callback in list(self._callbacks.get(event, ())):
            if inspect.iscoroutinefunction(callback):
                self._enqueue(event, callback, args)
            else:
                try:
                    callback(*args)
                except Exception:
                    logger.exception("Callback for %s failed", event)

    def _enqueue(self, event: str, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        if not self._workers:
            loop = asyncio.get_running_loop()
            self._workers = [
                loop.create_task(self._worker()) for _ in range(self.max_concurrent)
            ]
        try:
            self._queue.put_nowait((event, callback, args))
        except asyncio.QueueFull:
            logger.warning(
                "Dropping %s callback, %d callbacks already waiting", event, self._queue.qsize()
            )
            return
        self._unfinished += 1

    async def _worker(self) -> None:
        while True:
            event, callback, args = await self._queue.get()
            try:
                await callback(*args)
            except Exception:
                logger.exception("Callback for %s failed", event)
            finally:
                self._unfinished -= 1
                self._queue.task_done()

    @property
    def pending(self) -> int:
        """Number of coroutine callbacks not yet finished."""
        return self._unfinished

    async def aclose(self) -> None:
        """Wait for outstanding coroutine callbacks, then stop the workers."""
        if not self._workers:
            return
        await self._queue.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
