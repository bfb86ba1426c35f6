"""Sliding-window limit on job starts."""

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Deque


class SlidingWindowRateLimiter:
    """Allows at most ``max_starts`` acquisitions in any rolling window."""
    
    def __init__(
        self,
        max_starts: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if max_starts < 1:
            raise ValueError("max_starts must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        
        self.max_starts = max_starts
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._starts: Deque[float] = deque()
    
    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._starts)
    
    def try_acquire(self) -> float:
        """
        Take a slot if one is free.
        
        Returns:
            0.0 when a slot was taken, otherwise seconds until one frees up
        """
        now = self._clock()
        self._prune(now)
        
        if len(self._starts) < self.max_starts:
            self._starts.append(now)
            return 0.0
        
        return max(0.0, self._starts[0] + self.window_seconds - now)
    
    async def acquire(self) -> None:
        """Wait until a slot is free and take it."""
        while True:
            wait = self.try_acquire()
            if wait <= 0:
                return
            await self._sleep(wait)
    
    def refund(self) -> None:
        """Give back the most recent slot when no job was started with it."""
        if self._starts:
            self._starts.pop()
    
    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._starts and self._starts[0] <= cutoff:
            self._starts.popleft()
