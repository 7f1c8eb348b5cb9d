import threading
import time

import pytest

from polarkern.event import MAX_EVENTS, Event, EventError, await_events


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition never became true")
        time.sleep(0.001)


def test_trigger_without_listeners_is_pending():
    event = Event()
    assert event.trigger() == 0
    assert event.pending == 1


def test_trigger_with_drop_is_not_kept():
    event = Event()
    assert event.trigger(drop=True) == 0
    assert event.pending == 0


def test_nonblocking_await_consumes_pending():
    first, second = Event(), Event()
    second.trigger()
    assert await_events([first, second], block=False) == 1
    assert second.pending == 0


def test_nonblocking_await_with_nothing_pending():
    assert await_events([Event()], block=False) is None


def test_pending_checked_in_list_order():
    first, second = Event(), Event()
    first.trigger()
    second.trigger()
    assert await_events([first, second], block=False) == 0
    assert await_events([first, second], block=False) == 1


def test_blocking_await_woken_by_trigger():
    first, second = Event(), Event()
    result = []
    worker = threading.Thread(
        target=lambda: result.append(await_events([first, second]))
    )
    worker.start()
    _wait_until(lambda: second.listener_count == 1)
    assert second.trigger() == 1
    worker.join(5)
    assert result == [1]
    assert first.listener_count == 0
    assert second.pending == 0


def test_blocking_on_nothing_raises():
    with pytest.raises(EventError):
        await_events([], block=True)


def test_too_many_events_raises():
    events = [Event() for _ in range(MAX_EVENTS + 1)]
    with pytest.raises(EventError):
        await_events(events, block=True)