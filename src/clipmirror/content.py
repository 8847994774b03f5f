#!/usr/bin/env python3
"""Normalization of raw clipboard values into sync items.

ContentProcessor is pure: given the same input it produces the same result
apart from the timestamp. It computes the local change-detection hash over
(type, content) before any encryption, and converts between plaintext
LocalContent and the outbound ClipboardItem envelope.

Images travel as base64 text inside the encryption envelope so that the
cipher only ever deals with text.
"""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING

from clipmirror.constants import MAX_ITEM_BYTES
from clipmirror.errors import EncryptionError
from clipmirror.hashing import compute_content_hash
from clipmirror.models import (
    TYPE_IMAGE,
    TYPE_TEXT,
    ClipboardContent,
    ClipboardItem,
    LocalContent,
)

if TYPE_CHECKING:
    from clipmirror.encryption import EncryptedContent, EncryptionManager


class ContentProcessor:
    """Build LocalContent from clipboard data and wire items from LocalContent.

    Attributes:
        max_item_bytes: Largest plaintext accepted for sync.
        allow_images: Whether image content is synced at all.
    """

    def __init__(self, max_item_bytes: int = MAX_ITEM_BYTES, allow_images: bool = True) -> None:
        self.max_item_bytes = max_item_bytes
        self.allow_images = allow_images

    def process_text(self, text: str) -> LocalContent:
        """Normalize text content."""
        return LocalContent(
            type=TYPE_TEXT,
            mime="text/plain",
            data=text,
            content_hash=compute_content_hash(TYPE_TEXT, text),
            size_bytes=len(text.encode("utf-8")),
        )

    def process_image(self, data: bytes, fmt: str) -> LocalContent:
        """Normalize image content.

        Args:
            data: Raw image bytes, passed through without decoding.
            fmt: MIME type of the image, e.g. "image/png".
        """
        return LocalContent(
            type=TYPE_IMAGE,
            mime=fmt,
            data=data,
            content_hash=compute_content_hash(TYPE_IMAGE, data),
            size_bytes=len(data),
        )

    def process(self, content: ClipboardContent) -> LocalContent:
        """Normalize a value read from the platform clipboard."""
        if content.type == TYPE_IMAGE:
            data = content.data if isinstance(content.data, bytes) else content.data.encode("utf-8")
            return self.process_image(data, content.mime)
        text = content.data if isinstance(content.data, str) else content.data.decode("utf-8")
        return self.process_text(text)

    def validate_size(self, local: LocalContent) -> bool:
        """Check if content size is within the allowed limit."""
        return local.size_bytes <= self.max_item_bytes

    def accepts(self, local: LocalContent) -> bool:
        """Check whether content should be synced at all."""
        if local.size_bytes == 0:
            return False
        if local.type == TYPE_IMAGE and not self.allow_images:
            return False
        return self.validate_size(local)

    def to_wire_item(
        self,
        local: LocalContent,
        device_id: str,
        encryption: EncryptionManager,
    ) -> ClipboardItem:
        """Encrypt local content into an outbound item.

        Returns:
            A ClipboardItem whose content_hash is the transport hash of the
            envelope.

        Raises:
            EncryptionError: If encryption fails.
        """
        if local.type == TYPE_IMAGE:
            plaintext = base64.b64encode(local.data).decode("ascii")
        else:
            plaintext = local.data
        envelope: EncryptedContent = encryption.encrypt(plaintext)
        return ClipboardItem(
            type=local.type,
            mime=local.mime,
            content=envelope.ciphertext,
            content_hash=encryption.content_hash(envelope),
            size_bytes=len(envelope.ciphertext),
            device_id=device_id,
            is_encrypted=envelope.is_encrypted,
            algorithm=envelope.algorithm,
            created_at=local.created_at,
        )

    def from_remote(self, item: ClipboardItem, plaintext: str) -> ClipboardContent:
        """Turn a decrypted remote item into a value for the clipboard.

        Raises:
            EncryptionError: If an image payload is not valid base64.
        """
        if item.type == TYPE_IMAGE:
            try:
                data = base64.b64decode(plaintext, validate=True)
            except (binascii.Error, ValueError) as e:
                raise EncryptionError(f"image payload is not valid base64: {e}") from e
            return ClipboardContent(type=TYPE_IMAGE, data=data, mime=item.mime)
        return ClipboardContent(type=TYPE_TEXT, data=plaintext, mime=item.mime or "text/plain")
