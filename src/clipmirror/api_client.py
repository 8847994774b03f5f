#!/usr/bin/env python3
"""HTTP client for the clipboard sync service.

Wraps an httpx.AsyncClient with bearer authentication and maps every
failure onto the clipmirror error taxonomy:

- timeouts, transport errors, 5xx and 429 -> TransientNetworkError
- 401 and 403 -> InvalidCredentialError
- other 4xx -> RequestRejectedError
- unparseable bodies -> MalformedPayloadError

The service wraps every response in {"data": ..., "error": ...}.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from clipmirror.constants import PAGE_SIZE, REQUEST_TIMEOUT
from clipmirror.errors import (
    InvalidCredentialError,
    MalformedPayloadError,
    RequestRejectedError,
    TransientNetworkError,
)
from clipmirror.models import ClipboardItem, PollResult, SendResult

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/core/v1/clipboard/sync"
USERS_PATH = "/api/core/v1/users"
PUSH_PATH = "/api/core/v1/clipboard/ws"

USER_AGENT = "clipmirror/1.0"


class ApiClient:
    """Authenticated client for the sync REST endpoints.

    Use as an async context manager, or call aclose() when done.

    Attributes:
        base_url: Service root, e.g. "https://clip.example.com".
        device_id: This device's identifier, sent as X-Device-Id.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        device_id: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.device_id = device_id
        self._access_token = access_token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": USER_AGENT, "X-Device-Id": device_id},
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def access_token(self) -> str:
        return self._access_token

    def set_access_token(self, access_token: str) -> None:
        """Replace the bearer token used for subsequent requests."""
        self._access_token = access_token

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    async def send_item(self, item: ClipboardItem) -> SendResult:
        """Upload one encrypted item.

        Returns:
            The server acknowledgment with the assigned id and seq.
        """
        payload = item.to_wire()
        data = await self._request("POST", SYNC_PATH, json=payload)
        if not isinstance(data, dict):
            raise MalformedPayloadError("Send response data is not an object")
        try:
            return SendResult(
                id=str(data["id"]),
                seq=int(data["seq"]),
                created=bool(data.get("created", True)),
                device_id=data.get("deviceId"),
                message=data.get("message"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Invalid send response: {e}") from e

    async def poll_since(self, seq: int, limit: int = PAGE_SIZE) -> PollResult:
        """Fetch items with a sequence number greater than seq.

        Args:
            seq: The caller's cursor.
            limit: Maximum number of items to return.

        Returns:
            The page of items and the server's latest sequence number.
        """
        params = {"since": seq, "limit": limit, "excludeDevice": "true"}
        data = await self._request("GET", SYNC_PATH, params=params)
        if not isinstance(data, dict):
            raise MalformedPayloadError("Poll response data is not an object")
        raw_items = data.get("items") or []
        if not isinstance(raw_items, list):
            raise MalformedPayloadError("Poll response items is not a list")
        items = [ClipboardItem.from_wire(raw) for raw in raw_items]
        last_seq = data.get("lastSeq", seq)
        if not isinstance(last_seq, int) or isinstance(last_seq, bool):
            raise MalformedPayloadError(f"Poll response has invalid lastSeq {last_seq!r}")
        return PollResult(items=items, last_seq=last_seq)

    async def fetch_user_id(self) -> str:
        """Return the account identifier that owns the access token."""
        data = await self._request("GET", USERS_PATH)
        try:
            user_id = data["user"]["id"]
        except (KeyError, TypeError) as e:
            raise MalformedPayloadError("No user data in response") from e
        if not isinstance(user_id, str) or not user_id:
            raise MalformedPayloadError("User id is empty")
        return user_id

    async def test_connection(self) -> None:
        """Verify connectivity and credentials with a minimal poll."""
        await self._request("GET", SYNC_PATH, params={"since": 0, "limit": 1})

    def push_url(self) -> str:
        """Return the WebSocket URL of the push channel."""
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        return urlunsplit((scheme, parts.netloc, PUSH_PATH, "", ""))

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(
                method, path, headers=self.auth_headers(), **kwargs
            )
        except httpx.TimeoutException as e:
            raise TransientNetworkError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientNetworkError(f"{method} {path} failed: {e}") from e
        return _unwrap(response)


def _unwrap(response: httpx.Response) -> Any:
    """Check status and return the "data" member of the response envelope."""
    status = response.status_code
    if status in (401, 403):
        raise InvalidCredentialError(status, _error_message(response))
    if status == 429 or status >= 500:
        raise TransientNetworkError(f"Server returned status {status}")
    if status >= 400:
        raise RequestRejectedError(status, _error_message(response))

    try:
        body = response.json()
    except ValueError as e:
        raise MalformedPayloadError(f"Response is not JSON (status {status})") from e
    if not isinstance(body, dict):
        raise MalformedPayloadError("Response envelope is not an object")
    if body.get("error"):
        raise RequestRejectedError(status, f"API error: {body['error']}")
    return body.get("data")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP error {response.status_code}: {response.text[:200]}"
    if isinstance(body, dict) and body.get("error"):
        return f"API error ({response.status_code}): {body['error']}"
    return f"HTTP error {response.status_code}"
