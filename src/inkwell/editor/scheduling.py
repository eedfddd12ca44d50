"""Deferred callbacks for gesture timers."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Runs ``callback`` once after ``delay_ms`` on the owning thread."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        ...


@dataclass(slots=True)
class ManualTimer:
    due_ms: float
    callback: Callable[[], None]
    sequence: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualScheduler:
    """Scheduler driven by explicit :meth:`advance` calls; used headless and in tests."""

    now_ms: float = 0.0
    _timers: list[ManualTimer] = field(default_factory=list, init=False, repr=False)
    _sequence: itertools.count = field(default_factory=itertools.count, init=False, repr=False)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now_ms + max(0, delay_ms), callback, next(self._sequence))
        self._timers.append(timer)
        return timer

    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, firing due timers in order. Returns how many fired."""

        target = self.now_ms + max(0.0, delta_ms)
        fired = 0
        while True:
            due = [timer for timer in self._timers if not timer.cancelled and timer.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda item: (item.due_ms, item.sequence))
            self._timers.remove(timer)
            self.now_ms = max(self.now_ms, timer.due_ms)
            timer.callback()
            fired += 1
        self.now_ms = target
        self._timers = [timer for timer in self._timers if not timer.cancelled]
        return fired


__all__ = ["ManualScheduler", "ManualTimer", "Scheduler", "TimerHandle"]
