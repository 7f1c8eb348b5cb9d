"""Resources, open file descriptions and per-process descriptor tables."""

from __future__ import annotations

import errno
import itertools
import os
import stat as _stat
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

from polarkern.event import EVENT_MAX_LISTENERS, Event, await_events
from polarkern.spinlock import Spinlock
from polarkern.timers import Clock, Timespec

MAX_FDS = 256

O_RDONLY = 0o0
O_WRONLY = 0o1
O_RDWR = 0o2
O_CREAT = 0o100
O_EXCL = 0o200
O_NOCTTY = 0o400
O_TRUNC = 0o1000
O_APPEND = 0o2000
O_NONBLOCK = 0o4000
O_DIRECTORY = 0o200000
O_NOFOLLOW = 0o400000
O_CLOEXEC = 0o2000000

FILE_CREATION_FLAGS_MASK = (
    O_CREAT | O_DIRECTORY | O_EXCL | O_NOCTTY | O_NOFOLLOW | O_TRUNC
)
FILE_DESCRIPTOR_FLAGS_MASK = O_CLOEXEC
FILE_STATUS_FLAGS_MASK = ~(FILE_CREATION_FLAGS_MASK | FILE_DESCRIPTOR_FLAGS_MASK)

POLLIN = 0x01
POLLPRI = 0x02
POLLOUT = 0x04
POLLERR = 0x08
POLLHUP = 0x10
POLLNVAL = 0x20

F_DUPFD = 0
F_GETFD = 1
F_SETFD = 2
F_GETFL = 3
F_SETFL = 4
F_DUPFD_CLOEXEC = 1030

SEEK_SET = 0
SEEK_CUR = 1
SEEK_END = 2

TCGETS = 0x5401
TCSETS = 0x5402
TIOCSCTTY = 0x540E
TIOCGWINSZ = 0x5413
FIONCLEX = 0x5450
FIOCLEX = 0x5451
FIOASYNC = 0x5452


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


def default_ioctl(request: int) -> int:
    """Fallback ioctl: terminal requests fail, a few no-ops succeed."""
    if request in (TCGETS, TCSETS, TIOCSCTTY, TIOCGWINSZ):
        raise _error(errno.ENOTTY)
    if request in (FIONCLEX, FIOCLEX, FIOASYNC):
        return 0
    raise _error(errno.EINVAL)


_dev_ids = itertools.count(1)
_dev_lock = threading.Lock()


def next_device_id() -> int:
    """Hand out a fresh device number, starting at 1."""
    with _dev_lock:
        return next(_dev_ids)


@dataclass
class Stat:
    mode: int = 0
    size: int = 0
    blocks: int = 0
    blksize: int = 0
    rdev: int = 0


class Resource:
    """Base for anything that can sit behind a file descriptor."""

    def __init__(self, mode: int = 0) -> None:
        self.stat = Stat(mode=mode)
        self.refcount = 0
        self.status = 0
        self.event = Event()
        self.lock = Spinlock()

    def read(self, description: Optional["FileDescription"], offset: int,
             count: int) -> bytes:
        raise _error(errno.ENOSYS)

    def write(self, description: Optional["FileDescription"], offset: int,
              data: bytes) -> int:
        raise _error(errno.ENOSYS)

    def ioctl(self, description: Optional["FileDescription"], request: int,
              arg: int) -> int:
        return default_ioctl(request)

    def ref(self, description: Optional["FileDescription"]) -> bool:
        self.refcount += 1
        return True

    def unref(self, description: Optional["FileDescription"]) -> bool:
        self.refcount -= 1
        return True

    def truncate(self, description: Optional["FileDescription"],
                 length: int) -> bool:
        raise _error(errno.ENOSYS)


@dataclass(eq=False)
class FileDescription:
    """An open file: shared offset and status flags."""

    resource: Resource
    flags: int = 0
    refcount: int = 1
    offset: int = 0
    lock: Spinlock = field(default_factory=Spinlock)


@dataclass(eq=False)
class FileDescriptor:
    """A slot in a descriptor table pointing at a description."""

    description: FileDescription
    flags: int = 0


@dataclass(eq=False)
class PollFd:
    fd: int
    events: int
    revents: int = 0


def create_descriptor(resource: Resource, flags: int = 0) -> FileDescriptor:
    """Open ``resource`` as a new description and descriptor."""
    resource.refcount += 1
    description = FileDescription(resource, flags & FILE_STATUS_FLAGS_MASK)
    resource.ref(description)
    return FileDescriptor(description, flags & FILE_DESCRIPTOR_FLAGS_MASK)


class FdTable:
    """A process's table of file descriptors."""

    def __init__(self) -> None:
        self._fds: list[Optional[FileDescriptor]] = [None] * MAX_FDS
        self._lock = Spinlock()

    def __contains__(self, fdnum: int) -> bool:
        return 0 <= fdnum < MAX_FDS and self._fds[fdnum] is not None

    def get(self, fdnum: int) -> FileDescriptor:
        """Look up a descriptor, taking a reference on its description."""
        with self._lock:
            if not 0 <= fdnum < MAX_FDS or self._fds[fdnum] is None:
                raise _error(errno.EBADF)
            descriptor = self._fds[fdnum]
            descriptor.description.refcount += 1
            return descriptor

    def close(self, fdnum: int) -> None:
        with self._lock:
            if not 0 <= fdnum < MAX_FDS or self._fds[fdnum] is None:
                raise _error(errno.EBADF)
            description = self._fds[fdnum].description
            description.resource.unref(description)
            description.refcount -= 1
            self._fds[fdnum] = None

    def install(self, descriptor: FileDescriptor, fdnum: int = 0,
                specific: bool = False) -> int:
        """Place ``descriptor`` at ``fdnum`` or the lowest free slot from it."""
        with self._lock:
            if not 0 <= fdnum < MAX_FDS:
                raise _error(errno.EBADF)
            if specific:
                self._fds[fdnum] = descriptor
                return fdnum
            for slot in range(fdnum, MAX_FDS):
                if self._fds[slot] is None:
                    self._fds[slot] = descriptor
                    return slot
            raise _error(errno.EMFILE)

    def open_resource(self, resource: Resource, flags: int = 0, fdnum: int = 0,
                      specific: bool = False) -> int:
        return self.install(create_descriptor(resource, flags), fdnum, specific)

    def dup(self, old_fdnum: int, new_table: Optional["FdTable"] = None,
            new_fdnum: int = 0, flags: int = 0, specific: bool = False,
            cloexec: bool = False) -> int:
        if new_table is None:
            new_table = self
        if specific and old_fdnum == new_fdnum and new_table is self:
            raise _error(errno.EINVAL)
        old = self.get(old_fdnum)
        new = FileDescriptor(old.description, old.flags)
        result = new_table.install(new, new_fdnum, specific)
        new.flags = flags & FILE_DESCRIPTOR_FLAGS_MASK
        if cloexec:
            new.flags &= O_CLOEXEC
        old.description.refcount += 1
        old.description.resource.refcount += 1
        return result

    def read(self, fdnum: int, count: int) -> bytes:
        description = self.get(fdnum).description
        data = description.resource.read(description, description.offset, count)
        description.offset += len(data)
        return data

    def write(self, fdnum: int, data: bytes) -> int:
        description = self.get(fdnum).description
        written = description.resource.write(
            description, description.offset, data
        )
        description.offset += written
        return written

    def seek(self, fdnum: int, offset: int, whence: int) -> int:
        description = self.get(fdnum).description
        kind = _stat.S_IFMT(description.resource.stat.mode)
        if kind in (_stat.S_IFCHR, _stat.S_IFIFO, _stat.S_IFSOCK):
            raise _error(errno.ESPIPE)
        if whence == SEEK_CUR:
            new_offset = description.offset + offset
        elif whence == SEEK_END:
            new_offset = description.resource.stat.size + offset
        elif whence == SEEK_SET:
            new_offset = offset
        else:
            raise _error(errno.EINVAL)
        if new_offset < 0:
            raise _error(errno.EINVAL)
        description.offset = new_offset
        return new_offset

    def fcntl(self, fdnum: int, request: int, arg: int = 0) -> int:
        descriptor = self.get(fdnum)
        if request == F_DUPFD:
            return self.dup(fdnum, self, arg, 0, False, False)
        if request == F_DUPFD_CLOEXEC:
            return self.dup(fdnum, self, arg, 0, False, True)
        if request == F_GETFD:
            return O_CLOEXEC if descriptor.flags & O_CLOEXEC else 0
        if request == F_SETFD:
            descriptor.flags = O_CLOEXEC if arg & O_CLOEXEC else 0
            return 0
        if request == F_GETFL:
            return descriptor.description.flags
        if request == F_SETFL:
            descriptor.description.flags = arg
            return 0
        raise _error(errno.EINVAL)

    def ioctl(self, fdnum: int, request: int, arg: int = 0) -> int:
        description = self.get(fdnum).description
        return description.resource.ioctl(description, request, arg)

    def dup3(self, old_fdnum: int, new_fdnum: int, flags: int = 0) -> int:
        return self.dup(old_fdnum, self, new_fdnum, flags, True, False)

    def ppoll(self, pollfds: Iterable[PollFd], timeout: Optional[Timespec] = None,
              clock: Optional[Clock] = None) -> int:
        """Wait until one of ``pollfds`` is ready; return how many are.

        Returns 0 if ``timeout`` elapses on ``clock`` first.
        """
        pollfds = list(pollfds)
        if not pollfds:
            return 0
        if len(pollfds) > EVENT_MAX_LISTENERS:
            raise _error(errno.EINVAL)
        if timeout is not None and clock is None:
            raise ValueError("a clock is needed for a timeout")

        ready = 0
        waiting: list[tuple[PollFd, FileDescription]] = []
        timer = None
        try:
            for pfd in pollfds:
                pfd.revents = 0
                if pfd.fd < 0:
                    continue
                try:
                    description = self.get(pfd.fd).description
                except OSError:
                    pfd.revents = POLLNVAL
                    ready += 1
                    continue
                status = description.resource.status & pfd.events & 0xFFFF
                if status:
                    pfd.revents = status
                    ready += 1
                    description.refcount -= 1
                    continue
                waiting.append((pfd, description))

            if ready:
                return ready

            events = [description.resource.event for _, description in waiting]
            if timeout is not None:
                timer = clock.new_timer(timeout)
                events.append(timer.event)

            while True:
                which = await_events(events, True)
                if timer is not None and which == len(events) - 1:
                    return 0
                pfd, description = waiting[which]
                status = description.resource.status & pfd.events & 0xFFFF
                if status:
                    pfd.revents = status
                    return 1
        finally:
            for _, description in waiting:
                description.refcount -= 1
            if timer is not None:
                clock.disarm(timer)