"""Fast user-space mutex waiting and waking."""

from __future__ import annotations

import errno
import os
from typing import Hashable

from polarkern.event import Event, await_events
from polarkern.spinlock import Spinlock


class FutexTable:
    """Wait queues keyed by futex address."""

    def __init__(self) -> None:
        self._lock = Spinlock()
        self._entries: dict[Hashable, Event] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def wait(self, key: Hashable, expected: int, actual: int) -> int:
        """Sleep on ``key`` if the futex still holds ``expected``.

        Raises EAGAIN when ``actual`` differs from ``expected``.
        """
        if actual != expected:
            raise OSError(errno.EAGAIN, os.strerror(errno.EAGAIN))
        with self._lock:
            event = self._entries.setdefault(key, Event())
        await_events([event], True)
        return 0

    def wake(self, key: Hashable) -> int:
        """Wake the waiters on ``key``; unknown keys are ignored."""
        with self._lock:
            event = self._entries.get(key)
            if event is not None:
                event.trigger(False)
        return 0