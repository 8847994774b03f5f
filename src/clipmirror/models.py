#!/usr/bin/env python3
"""Data types shared by the clipmirror components.

ClipboardItem is the unit of sync as it travels over the wire. Field names
are snake_case in Python and camelCase on the wire; to_wire() and
from_wire() do the translation. LocalContent is the plaintext view of a
clipboard value on this device, and QueuedItem wraps an outbound item
waiting in the offline queue.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from clipmirror.errors import MalformedPayloadError

TYPE_TEXT = "text"
TYPE_IMAGE = "image"
CONTENT_TYPES = (TYPE_TEXT, TYPE_IMAGE)

ALGORITHM_NONE = "none"
ALGORITHM_AES_GCM = "AES-256-GCM"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing "Z".

    Raises:
        MalformedPayloadError: If the value is not a valid timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise MalformedPayloadError(f"Invalid timestamp {value!r}") from e
    else:
        raise MalformedPayloadError(f"Invalid timestamp {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    """Format a datetime as ISO-8601, passing None through."""
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class ClipboardContent:
    """A raw clipboard value as read from or written to the platform.

    Attributes:
        type: "text" or "image".
        data: str for text, bytes for images.
        mime: MIME type of the data.
    """

    type: str
    data: str | bytes
    mime: str = "text/plain"


@dataclass(frozen=True)
class LocalContent:
    """Normalized plaintext clipboard content on this device.

    Attributes:
        type: "text" or "image".
        mime: MIME type.
        data: Plaintext text or raw image bytes.
        content_hash: Local change-detection hash over (type, content).
        size_bytes: Size of the plaintext in bytes.
        created_at: When the content was observed.
    """

    type: str
    mime: str
    data: str | bytes
    content_hash: str
    size_bytes: int
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ClipboardItem:
    """A clipboard item as exchanged with the sync service.

    Attributes:
        type: "text" or "image".
        mime: MIME type of the plaintext.
        content: Ciphertext (base64) when encrypted, plaintext otherwise.
        content_hash: Transport hash over the transmitted content.
        size_bytes: Length of the transmitted content.
        device_id: Originating device.
        is_encrypted: Whether content is ciphertext.
        algorithm: "none" or "AES-256-GCM".
        created_at: Creation time.
        id: Server-assigned id, None until acknowledged.
        seq: Server-assigned sequence number, 0 until acknowledged.
    """

    type: str
    mime: str
    content: str
    content_hash: str
    size_bytes: int
    device_id: str
    is_encrypted: bool = False
    algorithm: str = ALGORITHM_NONE
    created_at: datetime = field(default_factory=utcnow)
    id: str | None = None
    seq: int = 0

    def with_ack(self, item_id: str, seq: int) -> ClipboardItem:
        """Return a copy carrying the server-assigned identity."""
        return replace(self, id=item_id, seq=seq)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used by the service."""
        wire: dict[str, Any] = {
            "type": self.type,
            "mime": self.mime,
            "content": self.content,
            "contentHash": self.content_hash,
            "sizeBytes": self.size_bytes,
            "isEncrypted": self.is_encrypted,
            "encryptionAlgorithm": self.algorithm,
            "deviceId": self.device_id,
            "createdAt": format_timestamp(self.created_at),
        }
        if self.id is not None:
            wire["id"] = self.id
        if self.seq:
            wire["seq"] = self.seq
        return wire

    @classmethod
    def from_wire(cls, data: Any) -> ClipboardItem:
        """Parse a received item.

        Args:
            data: Decoded JSON object for one item.

        Returns:
            The parsed ClipboardItem.

        Raises:
            MalformedPayloadError: If required fields are missing or invalid.
                seq and deviceId are mandatory on every received item.
        """
        if not isinstance(data, dict):
            raise MalformedPayloadError(f"Expected item object, got {type(data).__name__}")
        seq = data.get("seq")
        device_id = data.get("deviceId")
        if not isinstance(seq, int) or isinstance(seq, bool) or seq < 0:
            raise MalformedPayloadError(f"Item has invalid seq {seq!r}")
        if not isinstance(device_id, str) or not device_id:
            raise MalformedPayloadError("Item is missing deviceId")
        content = data.get("content")
        if not isinstance(content, str):
            raise MalformedPayloadError("Item is missing content")
        content_type = data.get("type") or TYPE_TEXT
        if content_type not in CONTENT_TYPES:
            raise MalformedPayloadError(f"Unknown item type {content_type!r}")
        is_encrypted = bool(data.get("isEncrypted", False))
        algorithm = data.get("encryptionAlgorithm") or ALGORITHM_NONE
        created_raw = data.get("createdAt")
        try:
            size_bytes = int(data.get("sizeBytes") or len(content))
            created_at = parse_timestamp(created_raw) if created_raw else utcnow()
        except (TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Item seq {seq} has an invalid field: {e}") from e
        return cls(
            id=data.get("id"),
            seq=seq,
            type=content_type,
            mime=data.get("mime") or "text/plain",
            content=content,
            content_hash=data.get("contentHash") or "",
            size_bytes=size_bytes,
            device_id=device_id,
            is_encrypted=is_encrypted,
            algorithm=algorithm,
            created_at=created_at,
        )


@dataclass
class QueuedItem:
    """An outbound item waiting in the offline queue.

    Attributes:
        queue_id: Local identifier, the server id is unknown before ack.
        item: The encrypted item to send.
        attempts: Failed send attempts so far. Only ever increases.
        queued_at: When the item entered the queue.
        last_try: When the last attempt failed, None if never tried.
    """

    queue_id: str
    item: ClipboardItem
    attempts: int = 0
    queued_at: datetime = field(default_factory=utcnow)
    last_try: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "queue_id": self.queue_id,
            "item": self.item.to_wire(),
            "attempts": self.attempts,
            "queued_at": format_timestamp(self.queued_at),
            "last_try": format_timestamp(self.last_try),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueuedItem:
        item_data = dict(data["item"])
        # Items are queued before the server assigns a sequence number.
        item_data.setdefault("seq", 0)
        last_try = data.get("last_try")
        return cls(
            queue_id=data["queue_id"],
            item=ClipboardItem.from_wire(item_data),
            attempts=int(data.get("attempts", 0)),
            queued_at=parse_timestamp(data["queued_at"]),
            last_try=parse_timestamp(last_try) if last_try else None,
        )


@dataclass(frozen=True)
class SendResult:
    """Server acknowledgment of a sent item."""

    id: str
    seq: int
    created: bool = True
    device_id: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class PollResult:
    """One page of remote items newer than the requested sequence."""

    items: list[ClipboardItem]
    last_seq: int
