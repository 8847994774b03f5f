#!/usr/bin/env python3
"""Remote poll path.

Polling is the source of truth: it runs every poll_interval while the push
channel is down and every connected_poll_interval while it is up, and the
push channel reuses poll_once() to backfill on every (re)connect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from clipmirror.errors import (
    InvalidCredentialError,
    MalformedPayloadError,
    RequestRejectedError,
    TransientNetworkError,
)
from clipmirror.sync_context import flag_credential_rejected, wait_for_shutdown
from clipmirror.sync_state import PHASE_IDLE, PHASE_POLLING

if TYPE_CHECKING:
    from clipmirror.sync_apply import RemoteApplier
    from clipmirror.sync_context import SyncContext

logger = logging.getLogger(__name__)


class Poller:
    """Fetch remote items newer than the cursor and hand them to the applier."""

    def __init__(self, ctx: SyncContext, applier: RemoteApplier) -> None:
        self.ctx = ctx
        self.applier = applier

    async def poll_once(self) -> int:
        """Fetch and apply everything newer than the cursor.

        Keeps requesting pages while full pages come back.

        Returns:
            Number of items applied to the clipboard.
        """
        ctx = self.ctx
        if ctx.state.credential_rejected:
            logger.debug("Access token rejected, not polling")
            return 0

        applied = 0
        page_size = ctx.settings.page_size
        ctx.state.set_phase(PHASE_POLLING)
        try:
            while True:
                cursor = ctx.state.last_seq
                result = await ctx.api.poll_since(cursor, page_size)
                ctx.state.record_poll()
                ctx.state.clear_error()
                if result.items:
                    logger.debug("Received %d clipboard updates from server", len(result.items))
                applied += await self.applier.apply_batch(result.items)
                if len(result.items) < page_size:
                    await self.applier.advance_to(result.last_seq)
                    break
                if ctx.state.last_seq == cursor:
                    logger.warning(
                        "Server returned a full page with nothing past cursor %d", cursor
                    )
                    break
        except InvalidCredentialError as e:
            flag_credential_rejected(ctx, e)
        except MalformedPayloadError as e:
            logger.warning("Server sent an unparseable poll response: %s", e)
            ctx.state.record_error(e)
        except TransientNetworkError as e:
            logger.warning("Failed to poll for updates: %s", e)
            ctx.state.record_error(e)
        except RequestRejectedError as e:
            logger.error("Server rejected poll request: %s", e)
            ctx.state.record_error(e)
        finally:
            ctx.state.set_phase(PHASE_IDLE)
        return applied

    def current_interval(self) -> float:
        """Poll less often while the push channel delivers updates."""
        settings = self.ctx.settings
        if self.ctx.state.push_connected:
            return settings.connected_poll_interval
        return settings.poll_interval

    async def run(self, shutdown: asyncio.Event) -> None:
        """Poll until shutdown is set."""
        while not shutdown.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Unexpected error polling for updates")
            if await wait_for_shutdown(shutdown, self.current_interval()):
                return
