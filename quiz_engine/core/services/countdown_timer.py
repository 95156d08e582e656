"""Countdown for timed sessions and the asyncio task that drives it."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging

from quiz_engine.constants.quiz_constants import TIMER_TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class CountdownTimer:
    """Holds the remaining seconds; ``None`` means the session is untimed."""

    def __init__(self) -> None:
        self._time_remaining: int | None = None

    def reset(self, time_limit: int | None) -> None:
        self._time_remaining = time_limit

    def restore(self, time_remaining: int | None) -> None:
        self._time_remaining = None if time_remaining is None else max(0, time_remaining)

    def get_time_remaining(self) -> int | None:
        return self._time_remaining

    def tick(self, is_active: bool) -> bool:
        """Advance one second. Returns True when the countdown has run out."""
        if not is_active or self._time_remaining is None:
            return False
        if self._time_remaining <= 0:
            return True
        self._time_remaining -= 1
        return self._time_remaining <= 0


class CountdownTicker:
    """Calls ``on_tick`` once per interval until stopped.

    The callback runs on the event loop thread, so it shares the
    single-threaded ownership of the engine it drives.
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        interval: float = TIMER_TICK_INTERVAL_SECONDS,
    ) -> None:
        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="QuizCountdown")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._on_tick()
            except Exception:
                logger.exception("Countdown tick failed")
