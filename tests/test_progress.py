"""Tests for the upload progress stream"""

from __future__ import annotations

import asyncio

from filegate.application.progress import UploadProgress


async def test_values_are_rounded_half_up():
    progress = UploadProgress()
    progress.report(1, 8)  # 12.5
    progress.report(5, 8)  # 62.5
    progress.finish()

    assert [p async for p in progress] == [13, 63, 100]


async def test_values_never_decrease():
    progress = UploadProgress()
    progress.report(50, 100)
    progress.report(30, 100)
    progress.report(50, 100)
    progress.report(70, 100)
    progress.close()

    assert [p async for p in progress] == [50, 70]
    assert progress.percent == 70
    assert not progress.completed


async def test_poll_before_any_report():
    progress = UploadProgress()
    assert progress.percent == 0
    assert not progress.closed


async def test_reports_after_close_are_ignored():
    progress = UploadProgress()
    progress.finish()
    progress.report(1, 2)

    assert [p async for p in progress] == [100]
    # Iterating again ends immediately
    assert [p async for p in progress] == []


async def test_subscriber_receives_values_while_running():
    progress = UploadProgress()
    received = []

    async def consume():
        async for percent in progress:
            received.append(percent)

    task = asyncio.create_task(consume())
    for loaded in (25, 50, 75, 100):
        progress.report(loaded, 100)
        await asyncio.sleep(0)
    progress.close()
    await task

    assert received == [25, 50, 75, 100]
