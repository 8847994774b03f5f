#!/usr/bin/env python3
"""Real-time push channel over WebSocket.

The service pushes each new clipboard item to the account's other devices
as a JSON message of the form {"item": {...}, "device_id": "..."}. A bare
item object is accepted as well. Messages without an item (keepalives,
notices) are ignored.

open() is an async context manager, so the underlying connection is closed
on every exit path and reconnect attempts never leak sockets.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from clipmirror.constants import REQUEST_TIMEOUT
from clipmirror.errors import (
    InvalidCredentialError,
    MalformedPayloadError,
    TransientNetworkError,
)
from clipmirror.models import ClipboardItem

logger = logging.getLogger(__name__)


class PushSession:
    """An open push connection yielding remote items."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection

    async def items(self) -> AsyncIterator[ClipboardItem]:
        """Yield pushed items until the connection closes.

        Raises:
            TransientNetworkError: When the connection drops or closes.
        """
        try:
            async for message in self._connection:
                item = parse_push_message(message)
                if item is not None:
                    yield item
        except ConnectionClosed as e:
            raise TransientNetworkError(f"push channel closed: {e}") from e
        raise TransientNetworkError("push channel closed by server")


def parse_push_message(message: str | bytes) -> ClipboardItem | None:
    """Extract the clipboard item from one push message.

    Returns:
        The item, or None for messages that carry no item or cannot be
        parsed. Unparseable messages are logged and dropped; the next poll
        recovers anything they might have carried.
    """
    try:
        payload = json.loads(message)
    except ValueError:
        logger.warning("Ignoring push message that is not JSON")
        return None
    if not isinstance(payload, dict):
        return None
    raw_item = payload.get("item", payload if "seq" in payload else None)
    if raw_item is None:
        logger.debug("Ignoring push message without item: %s", payload.get("type"))
        return None
    try:
        return ClipboardItem.from_wire(raw_item)
    except MalformedPayloadError as e:
        logger.warning("Ignoring malformed push item: %s", e)
        return None


class PushChannel:
    """Factory for authenticated push sessions.

    Attributes:
        url: ws:// or wss:// endpoint.
    """

    def __init__(
        self,
        url: str,
        token_provider: Callable[[], str],
        device_id: str,
        open_timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.url = url
        self.device_id = device_id
        self._token_provider = token_provider
        self._open_timeout = open_timeout

    @asynccontextmanager
    async def open(self) -> AsyncIterator[PushSession]:
        """Connect and yield a PushSession, closing it on exit.

        Raises:
            InvalidCredentialError: If the handshake is rejected with 401/403.
            TransientNetworkError: For any other connection failure.
        """
        headers = {
            "Authorization": f"Bearer {self._token_provider()}",
            "X-Device-Id": self.device_id,
        }
        try:
            connection = await connect(
                self.url,
                additional_headers=headers,
                open_timeout=self._open_timeout,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            if status in (401, 403):
                raise InvalidCredentialError(status, f"push handshake rejected ({status})") from e
            raise TransientNetworkError(f"push handshake failed with status {status}") from e
        except (WebSocketException, OSError, TimeoutError) as e:
            raise TransientNetworkError(f"push connection failed: {e}") from e

        logger.debug("Push channel connected to %s", self.url)
        try:
            yield PushSession(connection)
        finally:
            await connection.close()
            logger.debug("Push channel to %s closed", self.url)
