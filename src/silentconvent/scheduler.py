"""Single-threaded cooperative scheduler for timed presentation steps.

Multi-step sequences (fades, dwell periods, delayed reveals) are chains of
named callbacks registered with :class:`TaskScheduler`. Nothing here blocks:
the host loop decides when to call :meth:`TaskScheduler.run_due` (live use) or
:meth:`TaskScheduler.drain` (skip straight through every pending delay).
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Return a monotonic timestamp in milliseconds."""

    return time.monotonic() * 1000.0


class ManualClock:
    """Clock that only moves when told to; used by tests and headless runs."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now = float(start_ms)

    def __call__(self) -> float:
        return self.now

    def advance(self, delta_ms: float) -> None:
        if delta_ms < 0:
            raise ValueError("clock cannot move backwards")
        self.now += delta_ms


@dataclass(order=True)
class ScheduledTask:
    """A callback waiting for its due time."""

    due_ms: float
    sequence: int
    name: str = field(compare=False)
    callback: Callable[[], None] = field(compare=False, repr=False)


class TaskScheduler:
    """Run callbacks once their delay has elapsed, strictly in due order."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock: Callable[[], float] = clock if clock is not None else monotonic_ms
        self._queue: List[ScheduledTask] = []
        self._counter = itertools.count()

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def now(self) -> float:
        return self._clock()

    def call_later(
        self,
        delay_ms: float,
        callback: Callable[[], None],
        *,
        name: str = "task",
    ) -> ScheduledTask:
        """Schedule ``callback`` to run ``delay_ms`` from now."""

        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        task = ScheduledTask(
            due_ms=self._clock() + delay_ms,
            sequence=next(self._counter),
            name=name,
            callback=callback,
        )
        heapq.heappush(self._queue, task)
        logger.debug("Scheduled %s in %sms", name, delay_ms)
        return task

    def pending(self) -> Tuple[ScheduledTask, ...]:
        """Return the queued tasks ordered by due time."""

        return tuple(sorted(self._queue))

    def next_due(self) -> float | None:
        return self._queue[0].due_ms if self._queue else None

    def run_due(self) -> int:
        """Run every task whose due time has passed; return how many ran.

        Tasks scheduled by a callback with a zero delay run in the same pass.
        """

        ran = 0
        while self._queue and self._queue[0].due_ms <= self._clock():
            self._run(heapq.heappop(self._queue))
            ran += 1
        return ran

    def drain(self, *, limit: int = 10_000) -> int:
        """Run every pending task in due order without waiting for the clock.

        When driven by a :class:`ManualClock` the clock is moved forward to each
        task's due time so follow-up delays stay relative to it.
        """

        ran = 0
        while self._queue:
            if ran >= limit:
                raise RuntimeError(f"scheduler did not settle after {limit} tasks")
            task = heapq.heappop(self._queue)
            if isinstance(self._clock, ManualClock) and task.due_ms > self._clock.now:
                self._clock.now = task.due_ms
            self._run(task)
            ran += 1
        return ran

    def _run(self, task: ScheduledTask) -> None:
        logger.debug("Running %s", task.name)
        try:
            task.callback()
        except Exception:
            logger.exception("Scheduled task %s failed", task.name)


__all__ = ["ManualClock", "ScheduledTask", "TaskScheduler", "monotonic_ms"]
