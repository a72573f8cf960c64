"""Clocks and the one-shot / recurring task scheduler driven by ticks."""

import itertools
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from sortedcontainers import SortedKeyList

logger = structlog.get_logger(__name__)


class MonotonicClock:
    """Process-monotonic clock in milliseconds."""

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms

    def now_ms(self) -> int:
        return self._now

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += delta_ms
        return self._now

    def set(self, now_ms: int) -> None:
        if now_ms < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = now_ms


@dataclass
class ScheduledTask:
    """
    A callback due at a point in time.

    Tasks carry plain arguments (entity ids), never entity references, so a
    callback always re-reads current state when it fires.
    """
    task_id: int
    due_ms: int
    seq: int
    name: str
    callback: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    interval_ms: Optional[int] = None


class Scheduler:
    """
    Time-ordered task queue.

    Tasks are ordered by due time, then by scheduling order. Nothing runs
    on its own: ``run_due`` fires every task whose due time has passed.
    """

    def __init__(self, clock):
        self.clock = clock
        self._queue: SortedKeyList = SortedKeyList(key=lambda task: (task.due_ms, task.seq))
        self._tasks: Dict[int, ScheduledTask] = {}
        self._seq = itertools.count(1)

    def call_later(self, delay_ms: int, name: str, callback: Callable[..., Any], *args: Any) -> int:
        """
        Schedule a one-shot callback.

        Returns:
            Task id usable with ``cancel``
        """
        return self._push(self.clock.now_ms() + max(0, delay_ms), name, callback, args, None)

    def call_every(self, interval_ms: int, name: str, callback: Callable[..., Any], *args: Any) -> int:
        """Schedule a recurring callback, first firing one interval from now."""
        if interval_ms <= 0:
            raise ValueError("Interval must be positive")
        return self._push(self.clock.now_ms() + interval_ms, name, callback, args, interval_ms)

    def _push(self, due_ms, name, callback, args, interval_ms) -> int:
        seq = next(self._seq)
        task = ScheduledTask(
            task_id=seq,
            due_ms=due_ms,
            seq=seq,
            name=name,
            callback=callback,
            args=args,
            interval_ms=interval_ms,
        )
        self._queue.add(task)
        self._tasks[task.task_id] = task
        return task.task_id

    def cancel(self, task_id: int) -> bool:
        """Cancel a pending task. Returns False if it already ran or was unknown."""
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        self._queue.remove(task)
        return True

    def run_due(self, now_ms: Optional[int] = None) -> int:
        """
        Fire every task due at or before ``now_ms``.

        Recurring tasks are re-queued one interval after their previous due
        time, so a long gap fires them once per missed interval.

        Returns:
            Number of callbacks fired
        """
        if now_ms is None:
            now_ms = self.clock.now_ms()

        fired = 0
        while self._queue and self._queue[0].due_ms <= now_ms:
            task = self._queue.pop(0)
            logger.debug("scheduled_task_fired", task=task.name, due_ms=task.due_ms)
            if task.interval_ms is not None:
                task.due_ms += task.interval_ms
                task.seq = next(self._seq)
                self._queue.add(task)
            else:
                self._tasks.pop(task.task_id, None)
            task.callback(*task.args)
            fired += 1
        return fired

    def pending(self) -> List[ScheduledTask]:
        """Snapshot of queued tasks in firing order."""
        return list(self._queue)

    def __len__(self) -> int:
        return len(self._queue)
