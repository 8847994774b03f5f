#!/usr/bin/env python3
"""
Tests for the echo ordering of RemoteApplier.

The echo suppressor must know about content before it lands on the
clipboard, otherwise the monitor can observe the write first.
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from clipmirror.sync_apply import RemoteApplier
from clipmirror.sync_context import SyncContext
from conftest_sync import make_call_tracker, make_manager, make_remote_item


@pytest.mark.asyncio
async def test_mark_applied_before_clipboard_write(sync_ctx: SyncContext) -> None:
    """Test mark_applied is called before the clipboard write."""
    call_order: list[str] = []
    sync_ctx.echo = MagicMock()
    sync_ctx.echo.mark_applied.side_effect = make_call_tracker(call_order, "mark_applied")
    sync_ctx.clipboard = MagicMock()
    sync_ctx.clipboard.write.side_effect = make_call_tracker(call_order, "write")

    item = make_remote_item(make_manager("device-b"), 1, "ordered")
    await RemoteApplier(sync_ctx).apply_batch([item])

    assert call_order == ["mark_applied", "write"]


@pytest.mark.asyncio
async def test_concurrent_batches_are_serialized(sync_ctx: SyncContext) -> None:
    """Test two producers feeding the applier never interleave or regress."""
    remote = make_manager("device-b")
    applier = RemoteApplier(sync_ctx)
    poll_batch = [make_remote_item(remote, seq, f"p{seq}") for seq in (1, 2, 3)]
    push_batch = [make_remote_item(remote, 2, "p2")]

    await asyncio.gather(applier.apply_batch(poll_batch), applier.apply_batch(push_batch))

    written = [content.data for content in sync_ctx.clipboard.writes]
    assert written == ["p1", "p2", "p3"]
    assert sync_ctx.state.last_seq == 3
