#!/usr/bin/env python3
"""Ordered application of remote clipboard items.

Poll responses and push messages both feed RemoteApplier.apply_batch(). It
is the only place where ordering is enforced: batches are applied one at a
time under a lock, items in ascending seq order, and nothing at or below
the cursor is ever applied again.

For each item:
1. skip if seq <= last_seq
2. skip (but move past) items from this device
3. decrypt; on AuthenticationFailed or any other decrypt error skip just
   this item, the rest of the batch continues
4. mark the local content hash in the echo suppressor BEFORE writing
5. write the clipboard
6. advance the cursor to the item's seq

The cursor is persisted after every batch that moved it. A crash between a
clipboard write and the persist can replay the tail of a batch on restart;
the echo suppressor limits the visible effect but this is not exactly-once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from clipmirror.encryption import EncryptedContent
from clipmirror.errors import AuthenticationFailed, ClipboardError, EncryptionError
from clipmirror.events import REMOTE_APPLIED
from clipmirror.sync_context import persist_cursor

if TYPE_CHECKING:
    from clipmirror.models import ClipboardItem
    from clipmirror.sync_context import SyncContext

logger = logging.getLogger(__name__)


class RemoteApplier:
    """Single consumer applying remote items to the local clipboard."""

    def __init__(self, ctx: SyncContext) -> None:
        self.ctx = ctx
        self._lock = asyncio.Lock()

    async def apply_batch(self, items: list[ClipboardItem]) -> int:
        """Apply a batch of remote items in seq order.

        Args:
            items: Items from one poll page or one push message.

        Returns:
            Number of items written to the clipboard.
        """
        if not items:
            return 0
        ctx = self.ctx
        applied = 0
        async with self._lock:
            start_seq = ctx.state.last_seq
            for item in sorted(items, key=lambda i: i.seq):
                if item.seq <= ctx.state.last_seq:
                    logger.debug("Skipping already applied seq %d", item.seq)
                    continue
                if item.device_id == ctx.device_id:
                    logger.debug("Skipping own item seq %d", item.seq)
                elif await self._apply_one(item):
                    applied += 1
                ctx.state.advance_seq(item.seq)
            if ctx.state.last_seq != start_seq:
                await persist_cursor(ctx)
        return applied

    async def advance_to(self, seq: int) -> None:
        """Move the cursor forward without applying anything.

        Used when the server reports a newer sequence than any item it
        returned, e.g. because it filtered out this device's own items.
        """
        async with self._lock:
            if self.ctx.state.advance_seq(seq):
                await persist_cursor(self.ctx)

    async def _apply_one(self, item: ClipboardItem) -> bool:
        ctx = self.ctx
        envelope = EncryptedContent(
            algorithm=item.algorithm,
            ciphertext=item.content,
            is_encrypted=item.is_encrypted,
        )
        try:
            plaintext = ctx.encryption.decrypt(envelope)
            content = ctx.processor.from_remote(item, plaintext)
        except AuthenticationFailed as e:
            logger.warning(
                "Skipping item seq %d from %s: %s (wrong or stale passphrase?)",
                item.seq,
                item.device_id,
                e,
            )
            ctx.state.record_error(e)
            return False
        except EncryptionError as e:
            logger.warning("Skipping item seq %d: cannot decrypt: %s", item.seq, e)
            ctx.state.record_error(e)
            return False

        local = ctx.processor.process(content)
        ctx.echo.mark_applied(local.content_hash)
        try:
            await asyncio.to_thread(ctx.clipboard.write, content)
        except ClipboardError as e:
            logger.error("Failed to set local clipboard for seq %d: %s", item.seq, e)
            ctx.state.record_error(e)
            return False

        ctx.state.record_received()
        logger.info(
            "Applied remote clipboard item seq %d (%s, %d bytes)",
            item.seq,
            item.type,
            local.size_bytes,
        )
        ctx.events.emit(REMOTE_APPLIED, item)
        return True
