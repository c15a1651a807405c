"""Tests for the rearmable watchdog deadline."""

from __future__ import annotations

import asyncio

import pytest

from wabot.session.watchdog import Watchdog


def _recorder():
    fired: list[int] = []

    async def on_fire(generation: int) -> None:
        fired.append(generation)

    return fired, on_fire


@pytest.mark.asyncio
async def test_fires_once_with_armed_generation():
    fired, on_fire = _recorder()
    wd = Watchdog(0.02, on_fire)
    wd.arm(3)
    assert wd.pending
    assert wd.armed_generation == 3

    await asyncio.sleep(0.08)

    assert fired == [3]
    assert not wd.pending
    assert wd.armed_generation is None


@pytest.mark.asyncio
async def test_rearm_replaces_previous_deadline():
    fired, on_fire = _recorder()
    wd = Watchdog(0.02, on_fire)
    wd.arm(1)
    wd.arm(2)

    await asyncio.sleep(0.08)

    assert fired == [2]


@pytest.mark.asyncio
async def test_cancel_prevents_fire():
    fired, on_fire = _recorder()
    wd = Watchdog(0.02, on_fire)
    wd.arm(1)
    wd.cancel()
    wd.cancel()

    await asyncio.sleep(0.06)

    assert fired == []
    assert not wd.pending


@pytest.mark.asyncio
async def test_shutdown_cancels_running_fire_callback():
    started = asyncio.Event()
    cancelled: list[int] = []

    async def on_fire(generation: int) -> None:
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(generation)
            raise

    wd = Watchdog(0.01, on_fire)
    wd.arm(4)
    await asyncio.wait_for(started.wait(), timeout=1)

    await wd.shutdown()
    await wd.shutdown()

    assert cancelled == [4]
    assert not wd.pending
    assert wd._task is None
