"""Clocks, one-shot timers and sleeping."""

from __future__ import annotations

import enum
import errno
import os
from dataclasses import dataclass, field

from polarkern.event import Event, await_events
from polarkern.spinlock import Spinlock

NS_PER_SEC = 1_000_000_000


class ClockId(enum.IntEnum):
    """Clock identifiers accepted by ``Clock.get_clock``."""

    REALTIME = 0
    MONOTONIC = 1
    MONOTONIC_RAW = 4
    REALTIME_COARSE = 5
    MONOTONIC_COARSE = 6
    BOOTTIME = 7


@dataclass(frozen=True, order=True)
class Timespec:
    """Seconds and nanoseconds."""

    tv_sec: int = 0
    tv_nsec: int = 0

    @classmethod
    def from_nanoseconds(cls, ns: int) -> "Timespec":
        seconds, nanoseconds = divmod(ns, NS_PER_SEC)
        return cls(seconds, nanoseconds)

    def to_nanoseconds(self) -> int:
        return self.tv_sec * NS_PER_SEC + self.tv_nsec

    @property
    def is_zero(self) -> bool:
        return self.tv_sec == 0 and self.tv_nsec == 0

    def add(self, other: "Timespec") -> "Timespec":
        return Timespec.from_nanoseconds(
            self.to_nanoseconds() + other.to_nanoseconds()
        )

    def sub(self, other: "Timespec") -> "Timespec":
        """Difference, clamped at zero."""
        diff = self.to_nanoseconds() - other.to_nanoseconds()
        return Timespec.from_nanoseconds(max(diff, 0))


@dataclass(eq=False)
class Timer:
    """A one-shot countdown that triggers its event on expiry."""

    when: Timespec
    fired: bool = False
    index: int = -1
    event: Event = field(default_factory=Event)


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class Clock:
    """System clocks plus the list of armed timers."""

    def __init__(self) -> None:
        self.monotonic = Timespec()
        self.realtime = Timespec()
        self._lock = Spinlock()
        self._armed: list[Timer] = []

    @property
    def armed(self) -> tuple[Timer, ...]:
        return tuple(self._armed)

    def new_timer(self, when: Timespec) -> Timer:
        """Create a timer and arm it."""
        timer = Timer(when)
        self.arm(timer)
        return timer

    def arm(self, timer: Timer) -> None:
        with self._lock:
            timer.index = len(self._armed)
            timer.fired = False
            self._armed.append(timer)

    def disarm(self, timer: Timer) -> None:
        with self._lock:
            if (
                not self._armed
                or timer.index == -1
                or timer.index >= len(self._armed)
            ):
                return
            last = self._armed[-1]
            self._armed[timer.index] = last
            last.index = timer.index
            self._armed.pop()
            timer.index = -1

    def tick(self, ns: int) -> None:
        """Advance the clocks by ``ns`` and expire due timers.

        Timers are skipped for this tick if the timer list is busy.
        """
        interval = Timespec.from_nanoseconds(ns)
        self.monotonic = self.monotonic.add(interval)
        self.realtime = self.realtime.add(interval)

        if not self._lock.acquire():
            return
        try:
            for timer in self._armed:
                if timer.fired:
                    continue
                timer.when = timer.when.sub(interval)
                if timer.when.is_zero:
                    timer.event.trigger(False)
                    timer.fired = True
        finally:
            self._lock.drop()

    def get_clock(self, which: int) -> Timespec:
        try:
            clock = ClockId(which)
        except ValueError:
            raise _error(errno.EINVAL) from None
        if clock in (ClockId.REALTIME, ClockId.REALTIME_COARSE):
            return self.realtime
        return self.monotonic

    def nanosleep(self, duration: Timespec) -> None:
        """Block until ``duration`` of clock ticks has passed."""
        if duration.is_zero:
            return
        if duration.tv_nsec < 0 or duration.tv_nsec > NS_PER_SEC:
            raise _error(errno.EINVAL)
        timer = self.new_timer(duration)
        try:
            await_events([timer.event], True)
        finally:
            self.disarm(timer)