"""
Cancelable delayed callbacks drained from the tick thread.

Phase timers (reveal hold, dissolve, delayed deck removal) are queued here
instead of on threads, so every mutation of session state happens inside
``run_due()`` on the same thread that runs the tick.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class _Timer:
    __slots__ = ("due", "seq", "handle", "callback", "args", "name", "cancelled")

    def __init__(self, due, seq, handle, callback, args, name):
        self.due = due
        self.seq = seq
        self.handle = handle
        self.callback = callback
        self.args = args
        self.name = name
        self.cancelled = False

    def __lt__(self, other):
        return (self.due, self.seq) < (other.due, other.seq)


class TimerQueue:
    """Min-heap of pending callbacks keyed by due time.

    Args:
        clock: Monotonic time source in seconds. Tests pass a manual clock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._heap = []
        self._by_handle = {}
        self._seq = itertools.count()
        self._handles = itertools.count(1)

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def schedule(self, delay: float, callback: Callable, *args, name: Optional[str] = None) -> int:
        """Run ``callback(*args)`` once ``delay`` seconds have elapsed.

        Returns:
            Handle usable with cancel()
        """
        handle = next(self._handles)
        timer = _Timer(self._clock() + max(0.0, delay), next(self._seq), handle,
                       callback, args, name or getattr(callback, "__name__", "timer"))
        heapq.heappush(self._heap, timer)
        self._by_handle[handle] = timer
        logger.debug("Timer '%s' scheduled in %.3fs (handle=%d)", timer.name, delay, handle)
        return handle

    def cancel(self, handle: int) -> bool:
        """Cancel a pending timer. Returns False if it already ran or was unknown."""
        timer = self._by_handle.pop(handle, None)
        if timer is None:
            return False
        timer.cancelled = True
        return True

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire every timer whose due time has passed, in due order.

        Returns:
            Number of callbacks fired
        """
        now = self._clock() if now is None else now
        fired = 0
        while self._heap and self._heap[0].due <= now:
            timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            self._by_handle.pop(timer.handle, None)
            fired += 1
            try:
                timer.callback(*timer.args)
            except Exception as e:
                logger.error("Timer '%s' failed: %s", timer.name, e)
        return fired

    def clear(self):
        """Drop every pending timer."""
        for timer in self._heap:
            timer.cancelled = True
        self._heap.clear()
        self._by_handle.clear()

    @property
    def next_due(self) -> Optional[float]:
        for timer in sorted(self._heap):
            if not timer.cancelled:
                return timer.due
        return None

    def __len__(self):
        return len(self._by_handle)
