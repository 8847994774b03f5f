#!/usr/bin/env python3
"""Push channel listener with reconnect.

This module keeps the WebSocket push channel open, using tenacity for
exponential backoff between reconnect attempts. Every (re)connect runs a
poll before the first pushed message is consumed, so anything published
while the channel was down is applied before newer pushed items.

Push is an optimization: while it is down the poller runs at its normal
interval and nothing is lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_never,
    wait_exponential,
)

from clipmirror.constants import INITIAL_WAIT, MAX_WAIT, WAIT_MULTIPLIER
from clipmirror.errors import InvalidCredentialError, TransientNetworkError
from clipmirror.events import CONNECTED, DISCONNECTED
from clipmirror.sync_context import flag_credential_rejected, wait_for_shutdown

if TYPE_CHECKING:
    from clipmirror.push_channel import PushChannel
    from clipmirror.sync_apply import RemoteApplier
    from clipmirror.sync_context import SyncContext
    from clipmirror.sync_poll import Poller

logger = logging.getLogger(__name__)


class PushListener:
    """Consume pushed items and hand them to the applier."""

    def __init__(
        self,
        ctx: SyncContext,
        channel: PushChannel,
        poller: Poller,
        applier: RemoteApplier,
    ) -> None:
        self.ctx = ctx
        self.channel = channel
        self.poller = poller
        self.applier = applier

    async def run_session(self) -> None:
        """Run one push connection until it closes.

        Raises:
            TransientNetworkError: When connecting fails or the channel drops.
            InvalidCredentialError: When the handshake is rejected.
        """
        ctx = self.ctx
        logger.debug("Connecting push channel to %s", self.channel.url)
        async with self.channel.open() as session:
            ctx.state.set_push_connected(True)
            ctx.events.emit(CONNECTED, self.channel.url)
            logger.info("Push channel connected")
            try:
                # Backfill first; pushed items newer than the gap wait in
                # the socket buffer until the poll has been applied.
                await self.poller.poll_once()
                if ctx.state.credential_rejected:
                    return
                async for item in session.items():
                    await self.applier.apply_batch([item])
            finally:
                ctx.state.set_push_connected(False)
                ctx.events.emit(DISCONNECTED, self.channel.url)
                logger.info("Push channel disconnected")

    @retry(
        wait=wait_exponential(
            multiplier=WAIT_MULTIPLIER,
            min=INITIAL_WAIT,
            max=MAX_WAIT,
        ),
        retry=retry_if_exception_type(TransientNetworkError),
        stop=stop_never,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def run_with_retry(self) -> None:
        """Run push sessions, reconnecting with backoff on network errors.

        Returns only when a session ends because the credential was
        rejected during the backfill poll.
        """
        try:
            await self.run_session()
        except TransientNetworkError as e:
            self.ctx.state.record_error(e)
            logger.warning("Push channel lost: %s, will retry", e)
            raise

    async def run(self, shutdown: asyncio.Event) -> None:
        """Keep the push channel up until shutdown is set."""
        while not shutdown.is_set():
            try:
                await _until_shutdown(self.run_with_retry(), shutdown)
            except InvalidCredentialError as e:
                flag_credential_rejected(self.ctx, e)
            except Exception:
                logger.exception("Unexpected error in push channel")
                if await wait_for_shutdown(shutdown, MAX_WAIT):
                    return
                continue
            await self._wait_for_credential(shutdown)

    async def _wait_for_credential(self, shutdown: asyncio.Event) -> None:
        ctx = self.ctx
        while ctx.state.credential_rejected and not shutdown.is_set():
            await wait_for_shutdown(shutdown, ctx.settings.poll_interval)


async def _until_shutdown(coro: Coroutine[Any, Any, None], shutdown: asyncio.Event) -> None:
    """Run coro until it finishes or shutdown is set, then cancel it.

    Exceptions raised by coro propagate.
    """
    task = asyncio.create_task(coro)
    stop = asyncio.create_task(shutdown.wait())
    try:
        await asyncio.wait({task, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
        if not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    if not task.cancelled():
        task.result()
