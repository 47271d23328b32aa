import asyncio
import heapq
import threading
from itertools import count
from typing import Any, Callable, List, Optional, Tuple, Union

import structlog

logger = structlog.get_logger(__name__)


class AsyncioScheduler:
    """
    Schedules callbacks on the running asyncio loop (or an explicit one).

    Called from synchronous code with no loop running, it falls back to a daemon
    `threading.Timer`, so a highlight armed outside a loop still times out.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], Any]) -> Union[asyncio.TimerHandle, threading.Timer]:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop, scheduling on a timer thread", delay=delay)
                timer = threading.Timer(max(delay, 0.0), _run_logged, args=(callback,))
                timer.daemon = True
                timer.start()
                return timer
        return loop.call_later(delay, callback)


def _run_logged(callback: Callable[[], Any]):
    try:
        callback()
    except Exception as e:
        logger.error(f"Timer callback failed: {e}", exc_info=True)


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], Any]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Virtual clock. Timers fire only when `advance` moves time past their deadline,
    in deadline order; timers scheduled by a callback fire in the same advance if
    they fall inside the window.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[Tuple[float, int, ManualTimer]] = []
        self._seq = count()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ManualTimer:
        timer = ManualTimer(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> int:
        """Moves the clock forward and runs due timers. Returns how many fired."""
        deadline = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, timer = heapq.heappop(self._queue)
            self.now = when
            if timer.cancelled:
                continue
            fired += 1
            try:
                timer.callback()
            except Exception as e:
                logger.error(f"Timer callback failed: {e}", exc_info=True)
        self.now = deadline
        return fired

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)
