"""Countdown model for the Active task's timer.

The countdown keeps an end timestamp and recomputes the remaining time from
the wall clock on every poll, so a late or skipped poll never makes the
timer drift. Remaining seconds are reported to the owner every few seconds
(lossy, best effort) and completion is signalled exactly once.
"""

import math
import time
from collections.abc import Callable
from enum import Enum

from bubbletasks_models import Task

URGENT_THRESHOLD_SECONDS = 60
WARNING_THRESHOLD_SECONDS = 300
TICK_REPORT_INTERVAL_SECONDS = 5


class Urgency(str, Enum):
    """Display style for the remaining time."""

    NORMAL = "normal"
    WARNING = "warning"
    URGENT = "urgent"


def urgency_for(seconds_remaining: float) -> Urgency:
    if seconds_remaining <= URGENT_THRESHOLD_SECONDS:
        return Urgency.URGENT
    if seconds_remaining <= WARNING_THRESHOLD_SECONDS:
        return Urgency.WARNING
    return Urgency.NORMAL


def format_time(seconds_remaining: float) -> str:
    """Render seconds as MM:SS (minutes may exceed two digits)."""
    safe_seconds = max(0, math.floor(seconds_remaining))
    minutes, seconds = divmod(safe_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


class Countdown:
    """Timer for one task.

    Args:
        total_minutes: Full duration of the task
        remaining_seconds: Last known remaining time (default: full duration)
        on_tick: Called with remaining seconds every TICK_REPORT_INTERVAL_SECONDS
        on_time_up: Called once when the remaining time reaches zero
        clock: Wall clock returning epoch seconds
    """

    def __init__(
        self,
        total_minutes: int,
        remaining_seconds: float | None = None,
        on_tick: Callable[[int], None] | None = None,
        on_time_up: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.total_seconds = max(total_minutes * 60, 1)
        source = remaining_seconds if remaining_seconds is not None else total_minutes * 60
        self._remaining = max(0, math.floor(source))
        self._end: float | None = None
        self._last_reported: int | None = None
        self._finished = False
        self.on_tick = on_tick
        self.on_time_up = on_time_up
        self._clock = clock

    @classmethod
    def from_task(cls, task: Task, **kwargs) -> "Countdown":
        return cls(task.est_minutes, task.remaining_seconds, **kwargs)

    @property
    def is_running(self) -> bool:
        return self._end is not None

    @property
    def is_finished(self) -> bool:
        return self._finished

    @property
    def end_timestamp(self) -> float | None:
        return self._end

    def start(self) -> None:
        if self.is_running or self._finished:
            return
        self._end = self._clock() + self._remaining

    resume = start

    def pause(self) -> None:
        if not self.is_running:
            return
        self._remaining = self.remaining_seconds()
        self._end = None

    def toggle(self) -> None:
        if self.is_running:
            self.pause()
        else:
            self.start()

    def reset(self) -> None:
        """Stop at the full duration and report it."""
        self._end = None
        self._finished = False
        self._remaining = self.total_seconds
        self._last_reported = self.total_seconds
        if self.on_tick:
            self.on_tick(self.total_seconds)

    def remaining_seconds(self, now: float | None = None) -> int:
        """Whole seconds left, rounded up and clamped to zero."""
        if self._end is None:
            return self._remaining
        now = self._clock() if now is None else now
        return max(0, math.ceil(self._end - now))

    def progress_percent(self, now: float | None = None) -> float:
        elapsed = self.total_seconds - self.remaining_seconds(now)
        return min(max(elapsed / self.total_seconds * 100, 0.0), 100.0)

    def urgency(self, now: float | None = None) -> Urgency:
        return urgency_for(self.remaining_seconds(now))

    def display(self, now: float | None = None) -> str:
        return format_time(self.remaining_seconds(now))

    def poll(self, now: float | None = None) -> int:
        """Recompute the remaining time and fire callbacks that are due.

        Returns:
            Remaining whole seconds
        """
        if not self.is_running:
            return self._remaining

        remaining = self.remaining_seconds(now)

        if (
            remaining > 0
            and remaining % TICK_REPORT_INTERVAL_SECONDS == 0
            and remaining != self._last_reported
        ):
            self._last_reported = remaining
            if self.on_tick:
                self.on_tick(remaining)

        if remaining == 0:
            self._end = None
            self._remaining = 0
            self._finished = True
            if self.on_time_up:
                self.on_time_up()

        return remaining
