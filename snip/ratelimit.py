import asyncio
import logging
import time
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Per-identifier sliding-window admission control, scoped to one process.

    Each identifier owns a deque of request timestamps inside the trailing
    window. With several server instances sharing no state, the effective
    global limit is instances * max_requests per window.
    """

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        sweep_interval: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window = window_ms / 1000
        self.max_requests = max_requests
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()
        self._reclaimer: Optional[asyncio.Task] = None

    def _prune(self, timestamps: deque[float], now: float) -> None:
        window_start = now - self.window
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

    async def admit(self, identifier: str) -> bool:
        async with self._lock:
            now = self._clock()
            timestamps = self._requests.setdefault(identifier, deque())
            self._prune(timestamps, now)

            if len(timestamps) >= self.max_requests:
                logger.warning(
                    f"Rate limit exceeded for {identifier}: {len(timestamps)} requests"
                )
                return False

            timestamps.append(now)
            return True

    async def sweep(self) -> int:
        """Forget identifiers with no requests left in the window."""

        async with self._lock:
            now = self._clock()
            stale = []
            for identifier, timestamps in self._requests.items():
                self._prune(timestamps, now)
                if not timestamps:
                    stale.append(identifier)
            for identifier in stale:
                del self._requests[identifier]
        if stale:
            logger.debug(f"Rate limiter reclaimed {len(stale)} identifiers")
        return len(stale)

    def tracked(self) -> int:
        return len(self._requests)

    async def _reclaim_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.sweep()

    def start(self) -> None:
        if self._reclaimer is None or self._reclaimer.done():
            self._reclaimer = asyncio.create_task(self._reclaim_forever())

    async def stop(self) -> None:
        if self._reclaimer is None:
            return
        self._reclaimer.cancel()
        try:
            await self._reclaimer
        except asyncio.CancelledError:
            pass
        self._reclaimer = None
