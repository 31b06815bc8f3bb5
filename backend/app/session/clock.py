from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol


logger = logging.getLogger("app.session.clock")

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class ClockHandle:
    duration_seconds: int
    remaining_seconds: int
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    cancelled: bool = False
    expired: bool = False
    tick_callbacks: list[TickCallback] = field(default_factory=list)
    expire_callbacks: list[ExpireCallback] = field(default_factory=list)
    task: asyncio.Task | None = None

    @property
    def live(self) -> bool:
        return not (self.cancelled or self.expired)


class Clock(Protocol):
    def start(self, duration_seconds: int) -> ClockHandle:
        ...

    def on_tick(self, handle: ClockHandle, callback: TickCallback) -> None:
        ...

    def on_expire(self, handle: ClockHandle, callback: ExpireCallback) -> None:
        ...

    def cancel(self, handle: ClockHandle) -> None:
        ...


def fire_tick(handle: ClockHandle) -> None:
    """Advance a handle by one second and run its callbacks."""
    if not handle.live:
        return
    handle.remaining_seconds = max(0, handle.remaining_seconds - 1)
    for callback in list(handle.tick_callbacks):
        if handle.cancelled:
            return
        callback(handle.remaining_seconds)


def fire_expire(handle: ClockHandle) -> None:
    if not handle.live:
        return
    handle.expired = True
    for callback in list(handle.expire_callbacks):
        callback()


class AsyncioClock:
    def __init__(self, tick_seconds: float = 1.0):
        self.tick_seconds = max(0.0, float(tick_seconds))

    def start(self, duration_seconds: int) -> ClockHandle:
        duration = max(0, int(duration_seconds))
        handle = ClockHandle(duration_seconds=duration, remaining_seconds=duration)
        handle.task = asyncio.get_running_loop().create_task(self._run(handle))
        return handle

    def on_tick(self, handle: ClockHandle, callback: TickCallback) -> None:
        handle.tick_callbacks.append(callback)

    def on_expire(self, handle: ClockHandle, callback: ExpireCallback) -> None:
        handle.expire_callbacks.append(callback)

    def cancel(self, handle: ClockHandle) -> None:
        if handle.cancelled:
            return
        handle.cancelled = True
        task = handle.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self, handle: ClockHandle) -> None:
        try:
            # yield once so callbacks registered right after start() are in place
            await asyncio.sleep(0)
            while handle.remaining_seconds > 0:
                await asyncio.sleep(self.tick_seconds)
                if handle.cancelled:
                    return
                fire_tick(handle)
            if not handle.cancelled:
                fire_expire(handle)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("clock callback failed | handle=%s", handle.handle_id)
