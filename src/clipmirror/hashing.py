#!/usr/bin/env python3
"""
SHA-256 hashing for clipboard change detection and deduplication.

Two different hashes are in play and must not be confused:

- compute_content_hash(): local change detection. Hashes the content type
  followed by the plaintext content, before any encryption. The clipboard
  monitor and the echo suppressor work with this hash.
- compute_hash(): the transport hash. Applied to the ciphertext string that
  is actually sent, so it only deduplicates identical submissions, never
  semantically equal content.
"""
import hashlib

__all__ = ["compute_hash", "compute_content_hash", "short_hash"]


def compute_hash(data: bytes) -> str:
    """
    Compute SHA-256 hash of raw bytes.

    Args:
        data: Bytes to hash.

    Returns:
        Hexadecimal string representation of the SHA-256 digest.
    """
    return hashlib.sha256(data).hexdigest()


def compute_content_hash(content_type: str, content: str | bytes) -> str:
    """
    Compute the local change-detection hash of clipboard content.

    Args:
        content_type: Clipboard content type ("text" or "image").
        content: Plaintext text or raw image bytes.

    Returns:
        Hexadecimal SHA-256 digest over the type then the content bytes.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    hasher = hashlib.sha256()
    hasher.update(content_type.encode("utf-8"))
    hasher.update(content)
    return hasher.hexdigest()


def short_hash(hash_value: str) -> str:
    """Return a log-friendly prefix of a hex digest."""
    return hash_value[:12]
