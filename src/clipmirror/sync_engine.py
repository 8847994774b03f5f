#!/usr/bin/env python3
"""Top-level sync engine.

The engine runs four concurrent activities until shutdown:
- the clipboard monitor feeding LocalChangeHandler
- the offline queue drainer
- the poller
- the push listener (optional)

Poll and push both deliver remote items through the same RemoteApplier,
which serializes them. On shutdown the activities get request_timeout
seconds to finish in-flight work before they are cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from clipmirror.sync_apply import RemoteApplier
from clipmirror.sync_local import LocalChangeHandler, QueueDrainer
from clipmirror.sync_poll import Poller
from clipmirror.sync_push import PushListener

if TYPE_CHECKING:
    from clipmirror.clipboard_monitor import ClipboardMonitor
    from clipmirror.push_channel import PushChannel
    from clipmirror.sync_context import SyncContext
    from clipmirror.sync_state import SyncStats

logger = logging.getLogger(__name__)


class SyncEngine:
    """Coordinates the local and remote sync activities."""

    def __init__(
        self,
        ctx: SyncContext,
        monitor: ClipboardMonitor,
        push_channel: PushChannel | None = None,
    ) -> None:
        self.ctx = ctx
        self.monitor = monitor
        self.local = LocalChangeHandler(ctx)
        self.drainer = QueueDrainer(ctx)
        self.applier = RemoteApplier(ctx)
        self.poller = Poller(ctx, self.applier)
        self.push = (
            PushListener(ctx, push_channel, self.poller, self.applier)
            if push_channel is not None
            else None
        )

    async def run(self, shutdown: asyncio.Event) -> None:
        """Run all activities until shutdown is set.

        Args:
            shutdown: Event that stops the engine when set.
        """
        ctx = self.ctx
        ctx.state.set_running(True)
        ctx.state.set_queue_size(ctx.queue.size)
        logger.info(
            "Sync engine started (device %s, cursor %d, %d queued)",
            ctx.device_id,
            ctx.state.last_seq,
            ctx.queue.size,
        )

        tasks = [
            asyncio.create_task(self.monitor.run(shutdown, self.local.handle), name="monitor"),
            asyncio.create_task(self.drainer.run(shutdown), name="drainer"),
            asyncio.create_task(self.poller.run(shutdown), name="poller"),
        ]
        if self.push is not None:
            tasks.append(asyncio.create_task(self.push.run(shutdown), name="push"))

        try:
            await shutdown.wait()
            logger.info("Shutting down sync engine")
            _, pending = await asyncio.wait(tasks, timeout=ctx.settings.request_timeout)
            for task in pending:
                logger.debug("Cancelling %s after grace period", task.get_name())
                task.cancel()
        finally:
            for task in tasks:
                task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for task, result in zip(tasks, results):
                if isinstance(result, Exception):
                    logger.error("Activity %s failed: %s", task.get_name(), result)
            ctx.state.set_running(False)
            await ctx.events.aclose()
            logger.info("Sync engine stopped at cursor %d", ctx.state.last_seq)

    def update_credential(self, access_token: str) -> None:
        """Install a new access token and resume paused activities."""
        self.ctx.api.set_access_token(access_token)
        if self.ctx.state.set_credential_rejected(False):
            logger.info("Access token replaced, resuming sync")
        self.ctx.state.clear_error()

    def stats(self) -> SyncStats:
        """Return a snapshot of the engine statistics."""
        return self.ctx.state.snapshot()

    def is_healthy(self) -> bool:
        return self.ctx.state.is_healthy()
