# leadengine/service_layer/debounce.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)


class TrailingDebouncer:
    """
    Trailing-edge debounce for an async callable.

    Every `trigger()` pushes the deadline to now + window. The callable runs once
    the deadline passes with no further triggers, so a burst of writes costs a
    single call. Errors from the callable are logged, never raised to triggerers.

    `clock` and `sleep` are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        fn: Callable[[], Awaitable[Any]],
        window_s: float,
        *,
        name: str = "debounce",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._fn = fn
        self.window_s = float(window_s)
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._deadline: float | None = None
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def trigger(self) -> None:
        self._deadline = self._clock() + self.window_s
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self._deadline is not None:
            delay = self._deadline - self._clock()
            if delay > 0:
                await self._sleep(delay)
                continue
            self._deadline = None
            # shielded: cancelling the timer must not interrupt a call in flight
            await asyncio.shield(self._invoke())

    async def _invoke(self) -> None:
        async with self._lock:
            try:
                await self._fn()
            except Exception:
                log.exception("%s: debounced call failed", self.name)

    async def _stop_timer(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def idle(self) -> None:
        """Wait until the timer has fired and no call is running."""
        task = self._task
        if task is not None and not task.done():
            await task
        async with self._lock:
            pass

    async def flush(self) -> None:
        """Run a pending call now instead of waiting out the window."""
        await self._stop_timer()
        if self._deadline is None:
            async with self._lock:
                return
        self._deadline = None
        await self._invoke()

    async def close(self) -> None:
        """Drop any pending call and stop the timer."""
        self._deadline = None
        await self._stop_timer()
        async with self._lock:
            pass
