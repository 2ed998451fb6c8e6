"""Clock abstraction so rotation and throttling can be driven without real delays."""

import asyncio
import heapq
import itertools
import time
from typing import List, Tuple


class Clock:
    """Monotonic time source with an awaitable sleep."""

    def now(self) -> float:
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time backed by time.monotonic and asyncio.sleep."""

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class ManualClock(Clock):
    """Clock that only moves when advance() is called.

    Sleepers are woken in deadline order, and the event loop gets a chance
    to run after each wake-up, so chains of sleeps inside the advanced
    window all fire.
    """

    def __init__(self, start: float = 0.0, settle_rounds: int = 50):
        self._now = start
        self._settle_rounds = settle_rounds
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        self._prune()
        heapq.heappush(self._sleepers, (self._now + seconds, next(self._seq), future))
        await future

    def _prune(self) -> None:
        """Drop sleepers whose wait was cancelled."""
        live = [entry for entry in self._sleepers if not entry[2].done()]
        if len(live) != len(self._sleepers):
            heapq.heapify(live)
            self._sleepers = live

    @property
    def pending(self) -> int:
        """Number of sleepers still waiting."""
        return sum(1 for _, _, f in self._sleepers if not f.done())

    @property
    def scheduled(self) -> int:
        """Number of entries held in the sleeper heap, cancelled ones included."""
        return len(self._sleepers)

    async def settle(self) -> None:
        """Let every runnable task make progress without moving time."""
        for _ in range(self._settle_rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking sleepers whose deadline has passed."""
        target = self._now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self._now = max(self._now, deadline)
            if not future.done():
                future.set_result(None)
                await self.settle()
        self._now = target
        await self.settle()
