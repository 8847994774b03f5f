#!/usr/bin/env python3
"""Tests for QueueDrainer."""
import asyncio

import pytest

from clipmirror.errors import (
    InvalidCredentialError,
    RequestRejectedError,
    TransientNetworkError,
)
from clipmirror.models import SendResult
from clipmirror.offline_queue import OfflineQueue
from clipmirror.sync_context import SyncContext, SyncSettings
from clipmirror.sync_local import QueueDrainer
from conftest_sync import FakeUtcClock, make_context, make_outbound_item


@pytest.mark.asyncio
async def test_drain_sends_and_removes(sync_ctx: SyncContext) -> None:
    """Test a successful retry removes the item and advances the cursor."""
    sync_ctx.queue.add(make_outbound_item())
    sync_ctx.api.send_item.return_value = SendResult(id="srv-9", seq=9)

    sent = await QueueDrainer(sync_ctx).drain_once()

    assert sent == 1
    assert sync_ctx.queue.size == 0
    assert sync_ctx.state.last_seq == 9
    assert sync_ctx.state.snapshot().items_queued == 0


@pytest.mark.asyncio
async def test_transient_failure_counts_attempt(sync_ctx: SyncContext) -> None:
    """Test a failed retry keeps the item with one more attempt."""
    queued = sync_ctx.queue.add(make_outbound_item())
    sync_ctx.api.send_item.side_effect = TransientNetworkError("offline")

    assert await QueueDrainer(sync_ctx).drain_once() == 0

    items = sync_ctx.queue.items()
    assert [q.queue_id for q in items] == [queued.queue_id]
    assert items[0].attempts == 1


@pytest.mark.asyncio
async def test_rejected_item_removed(sync_ctx: SyncContext) -> None:
    """Test a permanently rejected item leaves the queue as dropped."""
    sync_ctx.queue.add(make_outbound_item())
    sync_ctx.api.send_item.side_effect = RequestRejectedError(400, "bad item")

    await QueueDrainer(sync_ctx).drain_once()

    assert sync_ctx.queue.size == 0
    assert sync_ctx.state.snapshot().items_dropped == 1


@pytest.mark.asyncio
async def test_credential_failure_stops_pass(sync_ctx: SyncContext) -> None:
    """Test a rejected token stops the pass and keeps all items."""
    sync_ctx.queue.add(make_outbound_item("a"))
    sync_ctx.queue.add(make_outbound_item("b"))
    sync_ctx.api.send_item.side_effect = InvalidCredentialError(403, "revoked")

    await QueueDrainer(sync_ctx).drain_once()

    assert sync_ctx.api.send_item.await_count == 1
    assert sync_ctx.queue.size == 2
    assert all(q.attempts == 0 for q in sync_ctx.queue.items())
    assert sync_ctx.state.credential_rejected


@pytest.mark.asyncio
async def test_paused_while_credential_rejected(sync_ctx: SyncContext) -> None:
    """Test nothing is sent while the credential is rejected."""
    sync_ctx.queue.add(make_outbound_item())
    sync_ctx.state.set_credential_rejected(True)

    assert await QueueDrainer(sync_ctx).drain_once() == 0
    sync_ctx.api.send_item.assert_not_awaited()


@pytest.mark.asyncio
async def test_exhausted_items_dropped(tmp_path, fake_utc_clock: FakeUtcClock) -> None:
    """Test items that used up their attempts are dropped with a count."""
    ctx = make_context(tmp_path, settings=SyncSettings(max_attempts=2))
    ctx.queue = OfflineQueue(tmp_path / "q.json", backoff_unit=1, clock=fake_utc_clock)
    queued = ctx.queue.add(make_outbound_item())
    ctx.api.send_item.side_effect = TransientNetworkError("offline")
    drainer = QueueDrainer(ctx)

    await drainer.drain_once()
    fake_utc_clock.advance(10)
    await drainer.drain_once()

    assert ctx.queue.size == 0
    assert ctx.api.send_item.await_count == 2
    assert ctx.state.snapshot().items_dropped == 1
    assert queued.attempts == 2


@pytest.mark.asyncio
async def test_aged_items_dropped(tmp_path, fake_utc_clock: FakeUtcClock) -> None:
    """Test items older than queue_max_age are dropped before retrying."""
    ctx = make_context(tmp_path, settings=SyncSettings(queue_max_age=60))
    ctx.queue = OfflineQueue(tmp_path / "q.json", clock=fake_utc_clock)
    ctx.queue.add(make_outbound_item())
    fake_utc_clock.advance(61)

    await QueueDrainer(ctx).drain_once()

    ctx.api.send_item.assert_not_awaited()
    assert ctx.queue.size == 0
    assert ctx.state.snapshot().items_dropped == 1


@pytest.mark.asyncio
async def test_shutdown_stops_pass(sync_ctx: SyncContext) -> None:
    """Test a set shutdown event stops the pass before sending."""
    sync_ctx.queue.add(make_outbound_item())
    shutdown = asyncio.Event()
    shutdown.set()

    await QueueDrainer(sync_ctx).drain_once(shutdown)

    sync_ctx.api.send_item.assert_not_awaited()
    assert sync_ctx.queue.size == 1


@pytest.mark.asyncio
async def test_run_exits_on_shutdown(sync_ctx: SyncContext) -> None:
    """Test run() drains once and returns when shutdown is set."""
    sync_ctx.queue.add(make_outbound_item())
    sync_ctx.api.send_item.return_value = SendResult(id="srv-1", seq=1)
    shutdown = asyncio.Event()

    task = asyncio.create_task(QueueDrainer(sync_ctx).run(shutdown))
    await asyncio.sleep(0.05)
    shutdown.set()
    await asyncio.wait_for(task, timeout=1)

    assert sync_ctx.queue.size == 0
