"""Busy-waiting lock with optional deadlock detection."""

from __future__ import annotations

import threading
import time
from typing import Optional


class DeadlockError(RuntimeError):
    """Raised when a lock has been spun on for too long."""


class Spinlock:
    """A lock that is taken by spinning rather than sleeping."""

    def __init__(
        self, panic_on_deadlock: bool = False, spin_limit: int = 100_000_000
    ) -> None:
        self._lock = threading.Lock()
        self.panic_on_deadlock = panic_on_deadlock
        self.spin_limit = spin_limit
        self.last_owner: Optional[int] = None

    @property
    def locked(self) -> bool:
        """Whether the lock is currently held."""
        return self._lock.locked()

    def acquire(self) -> bool:
        """Try once to take the lock; return whether it was taken."""
        if self._lock.acquire(blocking=False):
            self.last_owner = threading.get_ident()
            return True
        return False

    def acquire_or_wait(self) -> None:
        """Spin until the lock is taken.

        Raises DeadlockError after ``spin_limit`` failed attempts when
        deadlock detection is on.
        """
        spins = 0
        while not self.acquire():
            if self.panic_on_deadlock:
                spins += 1
                if spins >= self.spin_limit:
                    raise DeadlockError(
                        f"deadlocked; last owner {self.last_owner}"
                    )
            time.sleep(0)

    def drop(self) -> None:
        """Release the lock; releasing a free lock does nothing."""
        try:
            self._lock.release()
        except RuntimeError:
            pass

    def __enter__(self) -> "Spinlock":
        self.acquire_or_wait()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.drop()