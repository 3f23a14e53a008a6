"""Timer scheduling for the refresh and settle debouncers.

Both debouncers only need "run this callback in N ms, unless cancelled".
Production code schedules on the asyncio loop the TUI runs on; tests drive a
virtual clock instead.
"""

import asyncio
import time
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay in milliseconds."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...

    def now_ms(self) -> float: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    The loop is looked up on first use when not given, so the scheduler can be
    created before the loop starts running.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay_ms / 1000, callback)

    def now_ms(self) -> float:
        return time.monotonic() * 1000
