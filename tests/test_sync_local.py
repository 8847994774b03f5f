#!/usr/bin/env python3
"""Tests for LocalChangeHandler."""
import threading
from unittest.mock import patch

import pytest

from clipmirror.encryption import EncryptedContent
from clipmirror.errors import (
    EncryptionError,
    InvalidCredentialError,
    MalformedPayloadError,
    QueueStoreError,
    RequestRejectedError,
    TransientNetworkError,
)
from clipmirror.events import CREDENTIAL_REJECTED, ITEM_QUEUED, ITEM_SENT, LOCAL_CHANGE
from clipmirror.models import SendResult
from clipmirror.sync_context import SyncContext
from clipmirror.sync_local import LocalChangeHandler
from conftest_sync import make_manager


def local_text(ctx: SyncContext, text: str = "copied text"):
    """Create LocalContent for text."""
    return ctx.processor.process_text(text)


@pytest.mark.asyncio
async def test_change_sent_encrypted(sync_ctx: SyncContext) -> None:
    """Test a local change is sent as ciphertext another device can read."""
    sync_ctx.api.send_item.return_value = SendResult(id="srv-1", seq=10)
    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx, "top secret"))

    sent = sync_ctx.api.send_item.await_args.args[0]
    assert sent.is_encrypted
    assert "top secret" not in sent.content
    envelope = EncryptedContent(sent.algorithm, sent.content, sent.is_encrypted)
    assert make_manager("device-b").decrypt(envelope) == "top secret"


@pytest.mark.asyncio
async def test_ack_advances_cursor_and_emits(sync_ctx: SyncContext) -> None:
    """Test an acknowledgment records the send and moves the cursor."""
    sync_ctx.api.send_item.return_value = SendResult(id="srv-1", seq=10)
    events = []
    sync_ctx.events.subscribe(LOCAL_CHANGE, lambda local: events.append(LOCAL_CHANGE))
    sync_ctx.events.subscribe(ITEM_SENT, events.append)

    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))

    assert sync_ctx.state.snapshot().items_sent == 1
    assert sync_ctx.state.last_seq == 10
    sync_ctx.cursor_store.save_cursor.assert_called_once_with(10)
    assert events[0] == LOCAL_CHANGE
    assert (events[1].id, events[1].seq) == ("srv-1", 10)


@pytest.mark.asyncio
async def test_duplicate_ack_is_treated_as_sent(sync_ctx: SyncContext) -> None:
    """Test a created=False acknowledgment still counts as delivered."""
    sync_ctx.api.send_item.return_value = SendResult(
        id="srv-1", seq=3, created=False, message="duplicate"
    )
    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))
    assert sync_ctx.queue.size == 0
    assert sync_ctx.state.snapshot().items_sent == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [TransientNetworkError("timed out"), MalformedPayloadError("bad json")],
)
async def test_transient_failure_queues(sync_ctx: SyncContext, error: Exception) -> None:
    """Test network and parse failures put the item in the offline queue."""
    sync_ctx.api.send_item.side_effect = error
    queued = []
    sync_ctx.events.subscribe(ITEM_QUEUED, queued.append)

    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))

    assert sync_ctx.queue.size == 1
    assert len(queued) == 1
    assert sync_ctx.state.snapshot().items_queued == 1
    assert sync_ctx.state.last_error == str(error)


@pytest.mark.asyncio
async def test_rejected_credential_pauses_sending(sync_ctx: SyncContext) -> None:
    """Test a 401 flags the credential and later changes go straight to the queue."""
    sync_ctx.api.send_item.side_effect = InvalidCredentialError(401, "expired")
    rejected = []
    sync_ctx.events.subscribe(CREDENTIAL_REJECTED, rejected.append)
    handler = LocalChangeHandler(sync_ctx)

    await handler.handle(local_text(sync_ctx, "one"))
    await handler.handle(local_text(sync_ctx, "two"))

    assert sync_ctx.state.credential_rejected
    assert sync_ctx.api.send_item.await_count == 1
    assert sync_ctx.queue.size == 2
    assert len(rejected) == 1


@pytest.mark.asyncio
async def test_rejected_request_drops_item(sync_ctx: SyncContext) -> None:
    """Test a 4xx rejection drops the item instead of queueing it."""
    sync_ctx.api.send_item.side_effect = RequestRejectedError(413, "too large")
    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))
    assert sync_ctx.queue.size == 0
    assert sync_ctx.state.snapshot().items_dropped == 1


@pytest.mark.asyncio
async def test_unacceptable_content_not_sent(sync_ctx: SyncContext) -> None:
    """Test empty content is never sent."""
    await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx, ""))
    sync_ctx.api.send_item.assert_not_awaited()


@pytest.mark.asyncio
async def test_encryption_failure_not_sent(sync_ctx: SyncContext) -> None:
    """Test content that cannot be encrypted is neither sent nor queued."""
    with patch.object(
        sync_ctx.processor, "to_wire_item", side_effect=EncryptionError("no key")
    ):
        await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))
    sync_ctx.api.send_item.assert_not_awaited()
    assert sync_ctx.queue.size == 0
    assert sync_ctx.state.last_error == "no key"


@pytest.mark.asyncio
async def test_queue_failure_counts_as_dropped(sync_ctx: SyncContext) -> None:
    """Test an item that cannot be persisted is reported as dropped."""
    sync_ctx.api.send_item.side_effect = TransientNetworkError("offline")
    with patch.object(sync_ctx.queue, "add", side_effect=QueueStoreError("read-only")):
        await LocalChangeHandler(sync_ctx).handle(local_text(sync_ctx))
    assert sync_ctx.state.snapshot().items_dropped == 1


@pytest.mark.asyncio
async def test_disk_writes_run_off_the_event_loop(sync_ctx: SyncContext) -> None:
    """Test queue and cursor persistence happen in worker threads."""
    loop_thread = threading.get_ident()
    writer_threads = []

    def record_thread(*args: object) -> None:
        writer_threads.append(threading.get_ident())

    sync_ctx.cursor_store.save_cursor.side_effect = record_thread
    sync_ctx.api.send_item.side_effect = [
        TransientNetworkError("offline"),
        SendResult(id="srv-1", seq=4),
    ]
    handler = LocalChangeHandler(sync_ctx)
    with patch("clipmirror.offline_queue.write_json_atomic", side_effect=record_thread):
        await handler.handle(local_text(sync_ctx, "first"))
        await handler.handle(local_text(sync_ctx, "second"))

    assert len(writer_threads) == 2
    assert loop_thread not in writer_threads
