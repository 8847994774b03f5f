#!/usr/bin/env python3
"""Local clipboard change detection.

The monitor reads the clipboard on a fixed interval in a worker thread,
normalizes the value with the ContentProcessor, and reports it as a local
change only when its hash differs from the last observed one and the echo
suppressor does not recognize it as our own write.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable

from clipmirror.constants import MONITOR_INTERVAL
from clipmirror.errors import ClipboardError, ClipboardUnavailableError
from clipmirror.hashing import short_hash
from clipmirror.sync_context import wait_for_shutdown

if TYPE_CHECKING:
    from clipmirror.clipboard import ClipboardBackend
    from clipmirror.content import ContentProcessor
    from clipmirror.echo_suppressor import EchoSuppressor
    from clipmirror.models import LocalContent

logger = logging.getLogger(__name__)


class ClipboardMonitor:
    """Poll the clipboard backend and detect local changes.

    Attributes:
        interval: Seconds between clipboard reads.
        last_hash: Local hash of the last observed clipboard value.
    """

    def __init__(
        self,
        backend: ClipboardBackend,
        processor: ContentProcessor,
        echo: EchoSuppressor,
        interval: float = MONITOR_INTERVAL,
    ) -> None:
        self.backend = backend
        self.processor = processor
        self.echo = echo
        self.interval = interval
        self.last_hash: str | None = None
        self._unavailable_logged = False

    async def check_once(self) -> LocalContent | None:
        """Read the clipboard once.

        Returns:
            The new local content, or None if nothing changed, the change
            is an echo, or the clipboard could not be read.
        """
        try:
            content = await asyncio.to_thread(self.backend.read)
        except ClipboardUnavailableError as e:
            if not self._unavailable_logged:
                logger.warning("Clipboard unavailable: %s", e)
                self._unavailable_logged = True
            return None
        except ClipboardError as e:
            logger.debug("Failed to read clipboard: %s", e)
            return None
        self._unavailable_logged = False
        if content is None:
            return None

        local = self.processor.process(content)
        if local.content_hash == self.last_hash:
            return None
        self.last_hash = local.content_hash
        if self.echo.is_applied(local.content_hash):
            logger.debug("Skipping echo of applied content %s", short_hash(local.content_hash))
            return None
        return local

    async def run(
        self,
        shutdown: asyncio.Event,
        on_change: Callable[[LocalContent], Awaitable[None]],
    ) -> None:
        """Check the clipboard every interval until shutdown is set."""
        while not shutdown.is_set():
            try:
                local = await self.check_once()
                if local is not None:
                    await on_change(local)
            except Exception:
                logger.exception("Unexpected error handling local clipboard change")
            if await wait_for_shutdown(shutdown, self.interval):
                return
