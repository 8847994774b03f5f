#!/usr/bin/env python3
"""Outbound synchronization: local changes and the offline queue.

This module provides the two activities that move locally authored content
to the server:
- LocalChangeHandler: encrypt a detected local change and send it, falling
  back to the offline queue when the send fails
- QueueDrainer: periodically retry queued items under the queue's backoff

Every locally authored change is either acknowledged by the server, waiting
in the queue, or dropped with a warning after exhausting its attempts or
aging out. Nothing is dropped silently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from clipmirror.errors import (
    EncryptionError,
    InvalidCredentialError,
    MalformedPayloadError,
    QueueError,
    QueueExhausted,
    RequestRejectedError,
    TransientNetworkError,
)
from clipmirror.events import ITEM_QUEUED, ITEM_SENT, LOCAL_CHANGE
from clipmirror.hashing import short_hash
from clipmirror.sync_context import flag_credential_rejected, persist_cursor, wait_for_shutdown
from clipmirror.sync_state import PHASE_IDLE, PHASE_SENDING

if TYPE_CHECKING:
    from clipmirror.models import ClipboardItem, LocalContent, QueuedItem, SendResult
    from clipmirror.sync_context import SyncContext

logger = logging.getLogger(__name__)


async def note_sent(ctx: SyncContext, item: ClipboardItem, result: SendResult) -> None:
    """Record a server acknowledgment.

    The cursor moves to the acknowledged seq if that is higher. Remote items
    with a lower seq that were not applied yet are older than our own write,
    so under last-writer-wins they would be overwritten anyway.
    """
    ctx.state.record_sent()
    ctx.state.clear_error()
    if result.created:
        logger.info("Synced clipboard item %s (seq %d)", result.id, result.seq)
    else:
        logger.info("Clipboard item already exists (%s): %s", result.id, result.message or "")
    if ctx.state.advance_seq(result.seq):
        await persist_cursor(ctx)
    ctx.events.emit(ITEM_SENT, item.with_ack(result.id, result.seq))


def _log_send_failure(error: TransientNetworkError) -> None:
    if isinstance(error, MalformedPayloadError):
        logger.warning("Server sent an unparseable response: %s", error)
    else:
        logger.warning("Failed to send clipboard item: %s", error)


class LocalChangeHandler:
    """Encrypt and send local clipboard changes."""

    def __init__(self, ctx: SyncContext) -> None:
        self.ctx = ctx

    async def handle(self, local: LocalContent) -> None:
        """Process one detected local change.

        Args:
            local: The new local content from the clipboard monitor.
        """
        ctx = self.ctx
        if not ctx.processor.accepts(local):
            logger.warning(
                "Skipping %s content of %d bytes (limit %d, images %s)",
                local.type,
                local.size_bytes,
                ctx.processor.max_item_bytes,
                "allowed" if ctx.processor.allow_images else "disabled",
            )
            return

        logger.debug(
            "Local clipboard change detected: %d bytes, hash %s",
            local.size_bytes,
            short_hash(local.content_hash),
        )
        ctx.events.emit(LOCAL_CHANGE, local)
        try:
            item = ctx.processor.to_wire_item(local, ctx.device_id, ctx.encryption)
        except EncryptionError as e:
            logger.error("Failed to encrypt clipboard content: %s", e)
            ctx.state.record_error(e)
            return
        await self.send_or_enqueue(item)

    async def send_or_enqueue(self, item: ClipboardItem) -> None:
        """Send an item directly, queueing it if the send fails."""
        ctx = self.ctx
        if ctx.state.credential_rejected:
            await self._enqueue(item)
            return

        ctx.state.set_phase(PHASE_SENDING)
        try:
            result = await ctx.api.send_item(item)
        except InvalidCredentialError as e:
            flag_credential_rejected(ctx, e)
            await self._enqueue(item)
        except TransientNetworkError as e:
            _log_send_failure(e)
            ctx.state.record_error(e)
            await self._enqueue(item)
        except RequestRejectedError as e:
            logger.error("Server rejected clipboard item, dropping it: %s", e)
            ctx.state.record_error(e)
            ctx.state.record_dropped()
        else:
            await note_sent(ctx, item, result)
        finally:
            ctx.state.set_phase(PHASE_IDLE)

    async def _enqueue(self, item: ClipboardItem) -> None:
        ctx = self.ctx
        try:
            queued = await asyncio.to_thread(ctx.queue.add, item)
        except QueueError as e:
            logger.error("Failed to queue clipboard item, it is lost: %s", e)
            ctx.state.record_error(e)
            ctx.state.record_dropped()
            return
        ctx.state.set_queue_size(ctx.queue.size)
        logger.info("Queued clipboard item %s for retry", queued.queue_id)
        ctx.events.emit(ITEM_QUEUED, queued)


class QueueDrainer:
    """Retry queued items on an interval."""

    def __init__(self, ctx: SyncContext) -> None:
        self.ctx = ctx

    async def drain_once(self, shutdown: asyncio.Event | None = None) -> int:
        """Run one drain pass.

        Returns:
            Number of queued items sent successfully.
        """
        ctx = self.ctx
        if ctx.state.credential_rejected:
            logger.debug("Access token rejected, not draining queue")
            return 0

        sent = 0
        try:
            await asyncio.to_thread(self._prune)
            for queued in ctx.queue.pending(ctx.settings.max_attempts):
                if shutdown is not None and shutdown.is_set():
                    break
                outcome = await self._retry(queued)
                if outcome is None:
                    break
                sent += outcome
            await asyncio.to_thread(self._prune)
        except QueueError as e:
            logger.error("Offline queue failure: %s", e)
            ctx.state.record_error(e)
        finally:
            ctx.state.set_queue_size(ctx.queue.size)
        return sent

    async def _retry(self, queued: QueuedItem) -> int | None:
        """Retry one item; 1 if sent, 0 if not, None to stop the pass."""
        ctx = self.ctx
        try:
            result = await ctx.api.send_item(queued.item)
        except InvalidCredentialError as e:
            flag_credential_rejected(ctx, e)
            return None
        except TransientNetworkError as e:
            _log_send_failure(e)
            ctx.state.record_error(e)
            updated = await asyncio.to_thread(ctx.queue.mark_attempted, queued.queue_id)
            logger.debug(
                "Queued item %s failed attempt %d", updated.queue_id, updated.attempts
            )
            return 0
        except RequestRejectedError as e:
            logger.error("Server rejected queued item %s, dropping it: %s", queued.queue_id, e)
            ctx.state.record_error(e)
            await asyncio.to_thread(ctx.queue.remove, queued.queue_id)
            ctx.state.record_dropped()
            return 0
        await asyncio.to_thread(ctx.queue.remove, queued.queue_id)
        await note_sent(ctx, queued.item, result)
        return 1

    def _prune(self) -> None:
        ctx = self.ctx
        aged = ctx.queue.cleanup_old(ctx.settings.queue_max_age)
        if aged:
            logger.warning("Dropped %d queued items older than %ds", aged, ctx.settings.queue_max_age)
            ctx.state.record_dropped(aged)
        for queued in ctx.queue.drop_exhausted(ctx.settings.max_attempts):
            error = QueueExhausted(
                f"queued item {queued.queue_id} dropped after {queued.attempts} attempts"
            )
            logger.warning("%s", error)
            ctx.state.record_dropped()

    async def run(self, shutdown: asyncio.Event) -> None:
        """Drain the queue every drain_interval until shutdown."""
        while not shutdown.is_set():
            try:
                await self.drain_once(shutdown)
            except Exception:
                logger.exception("Unexpected error draining offline queue")
            if await wait_for_shutdown(shutdown, self.ctx.settings.drain_interval):
                return
