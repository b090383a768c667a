"""Active study time tracking with an idle timeout."""
import asyncio
import contextlib
import time
from typing import Callable

import structlog

from flash_tutor.config import IDLE_TIMEOUT_MS, POLL_INTERVAL_MS

logger = structlog.get_logger()


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class ActivityTimer:
    """Accumulates attention-present milliseconds for one study session.

    Time is folded into a running total on every poll, so a session with
    several idle/active cycles still adds up correctly. A poll that finds no
    activity for `idle_timeout_ms` closes the current segment at the last
    activity and marks the timer idle; the next activity opens a fresh segment
    at that moment.
    """

    def __init__(
        self,
        idle_timeout_ms: int = IDLE_TIMEOUT_MS,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        clock: Callable[[], float] | None = None,
    ):
        self.idle_timeout_ms = idle_timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock or _monotonic_ms
        self._task: asyncio.Task | None = None
        self.accumulated_ms = 0.0
        self.last_activity: float | None = None
        self.segment_start: float | None = None
        self.is_active = False

    def start(self) -> None:
        now = self._clock()
        self.accumulated_ms = 0.0
        self.last_activity = now
        self.segment_start = now
        self.is_active = True

    reset = start

    def record_activity(self) -> None:
        now = self._clock()
        self.last_activity = now
        if not self.is_active:
            self.segment_start = now
            self.is_active = True
            logger.debug("study_resumed")

    def poll(self) -> None:
        if not self.is_active:
            return
        now = self._clock()
        if now - self.last_activity >= self.idle_timeout_ms:
            # Earlier polls may have folded in time past the last activity; take it back
            self.accumulated_ms += self.last_activity - self.segment_start
            self.segment_start = None
            self.is_active = False
            logger.debug("study_idle", active_ms=int(self.accumulated_ms))
        else:
            self.accumulated_ms += now - self.segment_start
            self.segment_start = now

    @property
    def active_ms(self) -> int:
        total = self.accumulated_ms
        if self.is_active:
            total += self._clock() - self.segment_start
        return int(total)

    def finalize(self) -> int:
        """Close any open segment and return the total active milliseconds."""
        if self.is_active:
            self.accumulated_ms += self._clock() - self.segment_start
            self.segment_start = None
            self.is_active = False
        return int(self.accumulated_ms)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_ms / 1000)
            self.poll()

    def start_polling(self) -> None:
        """Poll in the background on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop_polling(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()
