#!/usr/bin/env python3
"""Configuration self-test.

Checks that the service is reachable with the configured token and that
the passphrase produces a working key, without touching the clipboard.
"""

from __future__ import annotations

import logging

from clipmirror.api_client import ApiClient
from clipmirror.config import AgentConfig
from clipmirror.encryption import EncryptionManager
from clipmirror.errors import ClipmirrorError

logger = logging.getLogger(__name__)

SAMPLE_TEXT = "clipmirror self-test"


def check_encryption(device_id: str, user_id: str, passphrase: str) -> bool:
    """Round-trip a sample through the cipher and re-validate the passphrase."""
    manager = EncryptionManager(device_id, user_id)
    try:
        manager.setup_device_key(passphrase)
        envelope = manager.encrypt(SAMPLE_TEXT)
        if manager.decrypt(envelope) != SAMPLE_TEXT:
            logger.error("Encryption round-trip returned different content")
            return False
    except ClipmirrorError as e:
        logger.error("Encryption check failed: %s", e)
        return False
    if not manager.validate_passphrase(passphrase):
        logger.error("Passphrase does not re-derive the device key")
        return False
    logger.info("Encryption check passed (%s)", manager.algorithm)
    return True


async def run_self_test(config: AgentConfig, passphrase: str) -> bool:
    """Run the connection and encryption checks.

    Returns:
        True if every check passed.
    """
    async with ApiClient(
        config.api_url,
        config.access_token,
        config.device_id,
        timeout=config.request_timeout,
    ) as api:
        try:
            await api.test_connection()
            user_id = config.user_id or await api.fetch_user_id()
        except ClipmirrorError as e:
            logger.error("Connection check against %s failed: %s", config.api_url, e)
            return False
    logger.info("Connection check passed (%s)", config.api_url)
    return check_encryption(config.device_id, user_id, passphrase)
