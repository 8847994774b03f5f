#!/usr/bin/env python3
"""Agent mode implementation for clipmirror.

This module provides the main entry point for running the sync agent. It
resolves the account, derives the encryption key, loads the offline queue,
selects the platform clipboard backend and runs the SyncEngine until
SIGINT or SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from clipmirror.api_client import ApiClient
from clipmirror.clipboard import ClipboardBackend, select_backend
from clipmirror.clipboard_monitor import ClipboardMonitor
from clipmirror.config import AgentConfig
from clipmirror.constants import STATS_INTERVAL
from clipmirror.content import ContentProcessor
from clipmirror.device import DeviceStore, device_platform
from clipmirror.echo_suppressor import EchoSuppressor
from clipmirror.encryption import EncryptionManager
from clipmirror.errors import InvalidCredentialError
from clipmirror.events import CREDENTIAL_REJECTED
from clipmirror.offline_queue import OfflineQueue
from clipmirror.push_channel import PushChannel
from clipmirror.sync_context import SyncContext, wait_for_shutdown
from clipmirror.sync_engine import SyncEngine
from clipmirror.sync_state import SyncState

logger = logging.getLogger(__name__)


async def resolve_user_id(store: DeviceStore, config: AgentConfig, api: ApiClient) -> str:
    """Return the account id, asking the service and storing it if unknown.

    The user id salts the key derivation, so every device of the account
    must agree on it.
    """
    if config.user_id:
        return config.user_id
    user_id = await api.fetch_user_id()
    store.update(user_id=user_id)
    logger.info("Resolved account %s", user_id)
    return user_id


def build_engine(
    store: DeviceStore,
    config: AgentConfig,
    api: ApiClient,
    encryption: EncryptionManager,
    clipboard: ClipboardBackend,
) -> SyncEngine:
    """Assemble the sync context and engine from configuration.

    Raises:
        QueueStoreError: If the offline queue file is corrupt.
    """
    queue = OfflineQueue(
        config.resolved_queue_path(store.path),
        backoff_unit=config.backoff_unit,
    )
    queue.load()
    processor = ContentProcessor(
        max_item_bytes=config.max_item_bytes,
        allow_images=config.allow_images,
    )
    echo = EchoSuppressor(window=config.echo_window)
    ctx = SyncContext(
        device_id=config.device_id,
        api=api,
        encryption=encryption,
        processor=processor,
        echo=echo,
        queue=queue,
        clipboard=clipboard,
        cursor_store=store,
        settings=config.sync_settings(),
        state=SyncState(last_seq=store.load_cursor()),
    )
    monitor = ClipboardMonitor(clipboard, processor, echo, interval=config.monitor_interval)
    push_channel = None
    if config.push_enabled:
        push_channel = PushChannel(
            api.push_url(),
            lambda: api.access_token,
            config.device_id,
            open_timeout=config.request_timeout,
        )
    return SyncEngine(ctx, monitor, push_channel)


async def report_stats(
    engine: SyncEngine,
    shutdown: asyncio.Event,
    interval: float = STATS_INTERVAL,
) -> None:
    """Log engine counters every interval while they change."""
    previous = None
    while not await wait_for_shutdown(shutdown, interval):
        stats = engine.stats()
        counts = (stats.items_sent, stats.items_received, stats.items_queued, stats.items_dropped)
        if counts != previous and any(counts):
            logger.info(
                "Sent %d, received %d, queued %d, dropped %d (cursor %d, push %s)",
                *counts,
                stats.last_seq,
                "up" if stats.push_connected else "down",
            )
        if stats.last_error:
            logger.debug("Last error: %s", stats.last_error)
        previous = counts


async def run_agent(store: DeviceStore, config: AgentConfig, passphrase: str) -> None:
    """Run the sync agent until SIGINT or SIGTERM.

    Args:
        store: Device store backing the configuration file.
        config: Effective configuration, environment overrides applied.
        passphrase: Master passphrase for the encryption key.

    Raises:
        InvalidCredentialError: If the access token is rejected, at startup
            or while running. A rejection while running stops the engine.
        EncryptionError: If the passphrase is empty.
        ClipboardUnavailableError: If no clipboard backend is usable.
        QueueStoreError: If the offline queue file is corrupt.
    """
    clipboard = select_backend()
    logger.info("Using %s clipboard backend on %s", clipboard.name, device_platform())

    async with ApiClient(
        config.api_url,
        config.access_token,
        config.device_id,
        timeout=config.request_timeout,
    ) as api:
        user_id = await resolve_user_id(store, config, api)
        encryption = EncryptionManager(config.device_id, user_id)
        encryption.setup_device_key(passphrase)
        engine = build_engine(store, config, api, encryption, clipboard)

        # Register signal handlers for clean shutdown
        shutdown_requested = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, shutdown_requested.set)
        loop.add_signal_handler(signal.SIGTERM, shutdown_requested.set)

        # A token rejected mid-run cannot recover without a new one, so stop
        # and report it instead of idling with a paused engine.
        rejected: list[InvalidCredentialError] = []

        def stop_on_rejection(error: InvalidCredentialError) -> None:
            rejected.append(error)
            shutdown_requested.set()

        engine.ctx.events.subscribe(CREDENTIAL_REJECTED, stop_on_rejection)

        reporter = asyncio.create_task(report_stats(engine, shutdown_requested))
        try:
            await engine.run(shutdown_requested)
        finally:
            reporter.cancel()
            await asyncio.gather(reporter, return_exceptions=True)

    if rejected:
        logger.info("%d items stay queued for the next run", engine.ctx.queue.size)
        raise rejected[0]
