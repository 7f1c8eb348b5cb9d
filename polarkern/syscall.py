"""The system call table and dispatch."""

from __future__ import annotations

import errno
import os
from typing import Any, Callable, Optional

MAX_SYSCALLS = 512

SYSCALL_NUMBERS: dict[str, int] = {
    "read": 0x0,
    "write": 0x1,
    "open": 0x2,
    "close": 0x3,
    "seek": 0x8,
    "mmap": 0x9,
    "mprotect": 0xA,
    "munmap": 0xB,
    "ioctl": 0x10,
    "fcntl": 0x48,
    "getcwd": 0x4F,
    "chdir": 0x50,
    "readdir": 0x59,
    "openat": 0x101,
    "mkdirat": 0x102,
    "fstatat": 0x106,
    "unlinkat": 0x107,
    "linkat": 0x109,
    "readlinkat": 0x10B,
    "fchmodat": 0x10C,
    "dup3": 0x124,
    "pipe": 0x125,
    "openpty": 0xFF,
    "ppoll": 0x10F,
    "socket": 0x29,
    "connect": 0x2A,
    "accept": 0x2B,
    "recvmsg": 0x2F,
    "bind": 0x31,
    "listen": 0x32,
    "getpeername": 0x34,
    "socketpair": 0x53,
}


def _enosys() -> OSError:
    return OSError(errno.ENOSYS, os.strerror(errno.ENOSYS))


class SyscallTable:
    """Handlers indexed by system call number."""

    def __init__(self) -> None:
        self._handlers: list[Optional[Callable[..., Any]]] = [None] * MAX_SYSCALLS
        self._names: list[Optional[str]] = [None] * MAX_SYSCALLS

    def __contains__(self, number: int) -> bool:
        return 0 <= number < MAX_SYSCALLS and self._handlers[number] is not None

    def register(self, number: int, handler: Callable[..., Any],
                 name: Optional[str] = None) -> None:
        if not 0 <= number < MAX_SYSCALLS:
            raise ValueError(f"system call number {number} out of range")
        self._handlers[number] = handler
        self._names[number] = name or getattr(handler, "__name__", None)

    def name_of(self, number: int) -> Optional[str]:
        """The name registered for ``number``, if any."""
        if number not in self:
            return None
        return self._names[number]

    def dispatch(self, number: int, *args: Any) -> Any:
        """Run the handler for ``number``; unknown numbers raise ENOSYS."""
        if number not in self:
            raise _enosys()
        return self._handlers[number](*args)