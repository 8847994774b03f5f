#!/usr/bin/env python3
"""Exception hierarchy for clipmirror.

Errors fall into a few families that the sync engine treats differently:

- TransientNetworkError: timeouts, refused connections, 5xx. Retried through
  the offline queue or the push reconnect backoff, never fatal.
- MalformedPayloadError: an unparseable server response. Retried like a
  transient failure but logged under its own name.
- InvalidCredentialError: 401/403 from the server. Surfaced to the caller
  as a configuration problem and not retried until the credential changes.
- AuthenticationFailed: an AEAD tag mismatch on decrypt. The single item is
  skipped and the engine continues.
- QueueExhausted: an offline item ran out of attempts and was dropped.
"""


class ClipmirrorError(Exception):
    """Base class for all clipmirror errors."""


class EncryptionError(ClipmirrorError):
    """Raised when content cannot be encrypted or decrypted."""


class NotInitializedError(EncryptionError):
    """Raised when encrypted content arrives but no device key is set."""


class UnsupportedAlgorithmError(EncryptionError):
    """Raised for an envelope naming an algorithm we do not implement."""


class AuthenticationFailed(EncryptionError):
    """Raised when the AEAD tag does not verify.

    Covers wrong keys, corrupted data and tampering alike. No plaintext is
    ever returned alongside this error.
    """


class SyncError(ClipmirrorError):
    """Base class for errors talking to the sync service."""


class TransientNetworkError(SyncError):
    """Raised for failures that may succeed on a later attempt."""


class MalformedPayloadError(TransientNetworkError):
    """Raised when the server sends a response we cannot parse."""


class InvalidCredentialError(SyncError):
    """Raised when the server rejects the access token (401/403)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestRejectedError(SyncError):
    """Raised when the server rejects a request outright (other 4xx)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class QueueError(ClipmirrorError):
    """Base class for offline queue errors."""


class QueueStoreError(QueueError):
    """Raised when the queue file cannot be read or written."""


class QueueItemNotFound(QueueError):
    """Raised when a queue id is not present in the queue."""


class QueueExhausted(QueueError):
    """Raised (and logged) when an item exceeds its maximum attempts."""


class ClipboardError(ClipmirrorError):
    """Raised when the platform clipboard cannot be read or written."""


class ClipboardUnavailableError(ClipboardError):
    """Raised when no clipboard tool is available on this platform."""


class ConfigError(ClipmirrorError):
    """Raised for missing or invalid agent configuration."""
