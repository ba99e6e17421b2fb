from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules on the running event loop; must be called from inside it."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, callback)


@dataclass
class ManualTimer:
    due: float
    seq: int
    callback: Callable[[], None]
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Clock that only moves when told to. Used by tests and scripted drivers."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        self._seq += 1
        timer = ManualTimer(due=self.now + max(0.0, delay), seq=self._seq, callback=callback)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, seconds: float) -> int:
        target = self.now + seconds
        fired = 0
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self._timers.remove(timer)
            self.now = max(self.now, timer.due)
            timer.callback()
            fired += 1
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]
        return fired

    def run_all(self) -> int:
        fired = 0
        while self.pending:
            latest = max(t.due for t in self._timers if not t.cancelled)
            fired += self.advance(max(0.0, latest - self.now))
        return fired
