"""Cancellable delayed callbacks used for undo windows."""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay_seconds), callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(slots=True)
class ManualTimer:
    due_at: float
    callback: Callable[[], None]
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler whose clock only moves when ``advance`` is called."""

    def __init__(self) -> None:
        self._now: float = 0.0
        self._timers: list[ManualTimer] = []

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(due_at=self._now + max(0.0, delay_seconds), callback=callback)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward and fire every due timer; return how many fired."""
        self._now += seconds
        fired = 0
        while True:
            due = [t for t in self._timers if not t.cancelled and not t.fired and t.due_at <= self._now]
            if not due:
                break
            timer = min(due, key=lambda t: t.due_at)
            timer.fired = True
            timer.callback()
            fired += 1
        self._timers = [t for t in self._timers if not t.cancelled and not t.fired]
        return fired

    def get_pending_count(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled and not t.fired)
