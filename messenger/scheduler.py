from __future__ import annotations

import asyncio
import heapq
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from loguru import logger


@dataclass
class ScheduledTask:
    label: str
    conversation_id: str
    message_id: Optional[int]
    action: Callable[[], None] = field(repr=False)

    def run(self) -> None:
        try:
            self.action()
        except Exception:
            logger.exception(f"scheduled_task_failed | label={self.label} conv={self.conversation_id}")


class Scheduler(ABC):
    """Fires tasks after a delay. There is no cancellation."""

    @abstractmethod
    def call_later(self, delay: float, task: ScheduledTask) -> None:
        ...

    @property
    @abstractmethod
    def pending(self) -> int:
        ...

    @abstractmethod
    async def drain(self) -> None:
        ...


class LoopScheduler(Scheduler):
    """Runs tasks on the asyncio event loop's timers."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._waiters: Set[asyncio.Future] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, task: ScheduledTask) -> None:
        loop = self._get_loop()
        done = loop.create_future()
        self._waiters.add(done)

        def _fire() -> None:
            try:
                task.run()
            finally:
                self._waiters.discard(done)
                if not done.done():
                    done.set_result(None)

        loop.call_later(max(0.0, delay), _fire)
        logger.debug(f"task_scheduled | label={task.label} delay={delay:.2f}s")

    @property
    def pending(self) -> int:
        return len(self._waiters)

    async def drain(self) -> None:
        # Tasks may schedule more tasks, so loop until nothing is left.
        while self._waiters:
            await asyncio.gather(*list(self._waiters))


class VirtualScheduler(Scheduler):
    """Deterministic scheduler driven by an explicit virtual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._queue: List[Tuple[float, int, ScheduledTask]] = []

    def call_later(self, delay: float, task: ScheduledTask) -> None:
        self._seq += 1
        heapq.heappush(self._queue, (self.now + max(0.0, delay), self._seq, task))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing every task that comes due."""
        target = self.now + max(0.0, seconds)
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self.now = due
            task.run()
            fired += 1
        self.now = target
        return fired

    def run_all(self) -> int:
        fired = 0
        while self._queue:
            fired += self.advance(self._queue[0][0] - self.now)
        return fired

    async def drain(self) -> None:
        self.run_all()
