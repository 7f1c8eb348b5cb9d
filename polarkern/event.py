"""Events that threads can wait on and that others can trigger."""

from __future__ import annotations

import threading
from typing import Iterable, Optional

EVENT_MAX_LISTENERS = 32
MAX_EVENTS = 32

_cond = threading.Condition()


class EventError(RuntimeError):
    """Raised when a wait cannot be set up."""


class _Waiter:
    __slots__ = ("which",)

    def __init__(self) -> None:
        self.which: Optional[int] = None


class Event:
    """A counting event: triggers wake listeners or are kept as pending."""

    def __init__(self) -> None:
        self.pending = 0
        self._listeners: list[tuple[_Waiter, int]] = []

    @property
    def listener_count(self) -> int:
        """Number of waiters currently attached."""
        with _cond:
            return len(self._listeners)

    def trigger(self, drop: bool = False) -> int:
        """Wake every listener and return how many were woken.

        With no listeners the trigger is remembered as pending, unless
        ``drop`` is set.
        """
        with _cond:
            if not self._listeners:
                if not drop:
                    self.pending += 1
                return 0
            for waiter, which in self._listeners:
                waiter.which = which
            count = len(self._listeners)
            self._listeners.clear()
            _cond.notify_all()
            return count

    def _detach(self, waiter: _Waiter) -> None:
        for position, (listener, _) in enumerate(self._listeners):
            if listener is waiter:
                del self._listeners[position]
                return


def await_events(events: Iterable[Event], block: bool = True) -> Optional[int]:
    """Wait for one of ``events`` and return its index.

    A pending trigger is consumed first, in list order. Without ``block``
    None is returned when nothing is pending.
    """
    events = list(events)
    with _cond:
        for index, event in enumerate(events):
            if event.pending > 0:
                event.pending -= 1
                return index

        if not block:
            return None
        if not events:
            raise EventError("nothing to wait on")
        if len(events) > MAX_EVENTS:
            raise EventError("Listening on too many events")
        if any(len(event._listeners) >= EVENT_MAX_LISTENERS for event in events):
            raise EventError("Event listeners exhausted")

        waiter = _Waiter()
        for index, event in enumerate(events):
            event._listeners.append((waiter, index))
        try:
            _cond.wait_for(lambda: waiter.which is not None)
        finally:
            for event in events:
                event._detach(waiter)
        return waiter.which