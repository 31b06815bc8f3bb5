import asyncio

import pytest

from app.session.clock import AsyncioClock


@pytest.mark.asyncio
async def test_asyncio_clock_ticks_then_expires():
    clock = AsyncioClock(tick_seconds=0.001)
    handle = clock.start(3)
    ticks = []
    expired = asyncio.Event()
    clock.on_tick(handle, ticks.append)
    clock.on_expire(handle, expired.set)

    await asyncio.wait_for(expired.wait(), timeout=1.0)

    assert ticks == [2, 1, 0]
    assert handle.expired is True
    assert handle.live is False


@pytest.mark.asyncio
async def test_asyncio_clock_cancel_stops_callbacks():
    clock = AsyncioClock(tick_seconds=0.001)
    handle = clock.start(50)
    ticks = []
    expired = []
    clock.on_tick(handle, ticks.append)
    clock.on_expire(handle, lambda: expired.append(True))

    await asyncio.sleep(0.01)
    clock.cancel(handle)
    seen = len(ticks)
    await asyncio.sleep(0.02)

    assert handle.cancelled is True
    assert len(ticks) == seen
    assert expired == []
    # cancelling twice is a no-op
    clock.cancel(handle)


@pytest.mark.asyncio
async def test_asyncio_clock_cancel_from_tick_callback():
    clock = AsyncioClock(tick_seconds=0.001)
    handle = clock.start(5)
    ticks = []
    expired = []

    def _on_tick(remaining):
        ticks.append(remaining)
        clock.cancel(handle)

    clock.on_tick(handle, _on_tick)
    clock.on_expire(handle, lambda: expired.append(True))
    await asyncio.sleep(0.02)

    assert ticks == [4]
    assert expired == []


@pytest.mark.asyncio
async def test_zero_duration_expires_immediately():
    clock = AsyncioClock(tick_seconds=0.001)
    handle = clock.start(0)
    expired = asyncio.Event()
    clock.on_expire(handle, expired.set)

    await asyncio.wait_for(expired.wait(), timeout=1.0)
    assert handle.remaining_seconds == 0
