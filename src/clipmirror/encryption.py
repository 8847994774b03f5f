#!/usr/bin/env python3
"""
Client-side encryption of clipboard content with AES-256-GCM.

The device key is derived from the user's master passphrase with
PBKDF2-HMAC-SHA256. The salt is a hash of a fixed namespace string and the
user id, not the device id, so every device of the same account derives the
same key from the same passphrase. That is the only thing that lets one
device decrypt what another encrypted; there is no key exchange.

Envelope wire format: base64(nonce || ciphertext || tag), with a fresh
12-byte random nonce per call.

The key lives in memory only and is never persisted.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from clipmirror.errors import (
    AuthenticationFailed,
    EncryptionError,
    NotInitializedError,
    UnsupportedAlgorithmError,
)
from clipmirror.hashing import compute_hash
from clipmirror.models import ALGORITHM_AES_GCM, ALGORITHM_NONE

logger = logging.getLogger(__name__)

# AES-256 key size in bytes.
KEY_SIZE: int = 32

# PBKDF2 iterations for key derivation.
PBKDF2_ITERATIONS: int = 100_000

# Salt size in bytes, taken from the front of the namespace hash.
SALT_SIZE: int = 16

# GCM nonce size in bytes.
NONCE_SIZE: int = 12

# GCM authentication tag size in bytes.
TAG_SIZE: int = 16

# Namespace prefix for the per-user salt. Changing it changes every key.
SALT_NAMESPACE: str = "clipmirror-user-salt-v2:"


@dataclass(frozen=True)
class EncryptedContent:
    """Encryption envelope for one clipboard payload.

    Attributes:
        algorithm: "none" or "AES-256-GCM".
        ciphertext: Base64 ciphertext, or the plaintext when not encrypted.
        is_encrypted: Whether ciphertext holds encrypted data.
    """

    algorithm: str
    ciphertext: str
    is_encrypted: bool


def user_salt(user_id: str) -> bytes:
    """Return the PBKDF2 salt shared by all devices of a user."""
    digest = hashlib.sha256((SALT_NAMESPACE + user_id).encode("utf-8")).digest()
    return digest[:SALT_SIZE]


def derive_key(passphrase: str, user_id: str) -> bytes:
    """Derive the 32-byte content key for a user.

    Args:
        passphrase: The master passphrase.
        user_id: The account identifier shared by all of the user's devices.

    Returns:
        The derived key. Same inputs always give the same key.

    Raises:
        EncryptionError: If the passphrase is empty.
    """
    if not passphrase:
        raise EncryptionError("master passphrase cannot be empty")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=user_salt(user_id),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


class EncryptionManager:
    """Encrypts and decrypts clipboard payloads for one device.

    Without a key the manager passes content through unencrypted; the
    envelope then says so with algorithm "none".
    """

    def __init__(self, device_id: str, user_id: str) -> None:
        self.device_id = device_id
        self.user_id = user_id
        self._device_key: bytes | None = None

    @property
    def is_enabled(self) -> bool:
        return self._device_key is not None and len(self._device_key) == KEY_SIZE

    @property
    def algorithm(self) -> str:
        return ALGORITHM_AES_GCM if self.is_enabled else ALGORITHM_NONE

    def setup_device_key(self, passphrase: str) -> None:
        """Derive and hold the device key from the master passphrase.

        Raises:
            EncryptionError: If the passphrase is empty.
        """
        self._device_key = derive_key(passphrase, self.user_id)
        logger.debug("Device key derived for user %s", self.user_id)

    def change_passphrase(self, passphrase: str) -> None:
        """Replace the device key with one derived from a new passphrase."""
        if not passphrase:
            raise EncryptionError("new master passphrase cannot be empty")
        self.setup_device_key(passphrase)

    def disable(self) -> None:
        """Forget the device key and fall back to pass-through."""
        self._device_key = None

    def encrypt(self, plaintext: str) -> EncryptedContent:
        """Encrypt plaintext into an envelope.

        Args:
            plaintext: Text to encrypt.

        Returns:
            An AES-256-GCM envelope, or a pass-through envelope when no key
            is set.

        Raises:
            EncryptionError: If a key is set and plaintext is empty.
        """
        if not self.is_enabled:
            return EncryptedContent(
                algorithm=ALGORITHM_NONE, ciphertext=plaintext, is_encrypted=False
            )
        if not plaintext:
            raise EncryptionError("plaintext cannot be empty")

        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(self._device_key).encrypt(nonce, plaintext.encode("utf-8"), None)
        encoded = base64.b64encode(nonce + sealed).decode("ascii")
        return EncryptedContent(
            algorithm=ALGORITHM_AES_GCM, ciphertext=encoded, is_encrypted=True
        )

    def decrypt(self, envelope: EncryptedContent) -> str:
        """Decrypt an envelope back to plaintext.

        Args:
            envelope: The envelope to decrypt.

        Returns:
            The plaintext.

        Raises:
            NotInitializedError: If the envelope is encrypted and no key is set.
            UnsupportedAlgorithmError: For algorithms other than AES-256-GCM.
            EncryptionError: If the data is not valid base64 or too short.
            AuthenticationFailed: If the authentication tag does not verify.
        """
        if not envelope.is_encrypted or envelope.algorithm == ALGORITHM_NONE:
            return envelope.ciphertext
        if not self.is_enabled:
            raise NotInitializedError("encryption manager not initialized with device key")
        if envelope.algorithm != ALGORITHM_AES_GCM:
            raise UnsupportedAlgorithmError(
                f"unsupported encryption algorithm: {envelope.algorithm}"
            )

        try:
            raw = base64.b64decode(envelope.ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncryptionError(f"failed to decode base64: {e}") from e
        if len(raw) < NONCE_SIZE + TAG_SIZE:
            raise EncryptionError("ciphertext too short")

        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            plaintext = AESGCM(self._device_key).decrypt(nonce, sealed, None)
        except InvalidTag as e:
            raise AuthenticationFailed("failed to decrypt: authentication tag mismatch") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncryptionError("decrypted content is not valid UTF-8") from e

    def validate_passphrase(self, candidate: str) -> bool:
        """Check whether a passphrase re-derives the active key.

        Returns False when no key is active or the candidate is empty.
        """
        if not self.is_enabled or not candidate:
            return False
        return hmac.compare_digest(derive_key(candidate, self.user_id), self._device_key)

    def content_hash(self, envelope: EncryptedContent) -> str:
        """Transport hash over the transmitted ciphertext (or plaintext)."""
        return compute_hash(envelope.ciphertext.encode("utf-8"))
