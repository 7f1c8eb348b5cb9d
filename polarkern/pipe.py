"""Anonymous pipes over a fixed-size ring buffer."""

from __future__ import annotations

import stat
from typing import Optional

from polarkern.event import await_events
from polarkern.resource import (
    O_RDONLY,
    O_WRONLY,
    POLLIN,
    POLLOUT,
    FdTable,
    FileDescription,
    Resource,
)

PAGE_SIZE = 4096
PIPE_CAPACITY = PAGE_SIZE * 32


class Pipe(Resource):
    """A one-way byte channel; writers block while the buffer is full."""

    def __init__(self, capacity: int = PIPE_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("pipe capacity must be positive")
        super().__init__(stat.S_IFIFO)
        self.capacity = capacity
        self._data = bytearray(capacity)
        self.read_ptr = 0
        self.write_ptr = 0

    @property
    def released(self) -> bool:
        """Whether the buffer was freed after the last reference went."""
        return not self._data

    @property
    def buffered(self) -> int:
        """Bytes written but not yet read."""
        return self.write_ptr - self.read_ptr

    def read(self, description: Optional[FileDescription], offset: int,
             count: int) -> bytes:
        """Return up to ``count`` buffered bytes; empty when nothing waits."""
        if self.read_ptr == self.write_ptr or self.released:
            self.event.trigger(False)
            return b""

        with self.lock:
            available = self.write_ptr - self.read_ptr
            size = min(count, available)
            if count > available:
                self.status &= ~POLLIN
            start = self.read_ptr % self.capacity
            first = min(size, self.capacity - start)
            data = bytes(self._data[start:start + first]) + bytes(
                self._data[: size - first]
            )
            self.read_ptr += size

            if self.read_ptr != self.write_ptr:
                self.status |= POLLOUT

            self.event.trigger(False)
            return data

    def write(self, description: Optional[FileDescription], offset: int,
              data: bytes) -> int:
        """Write all of ``data``, waiting for room whenever the buffer fills."""
        self.lock.acquire_or_wait()
        try:
            view = memoryview(bytes(data))
            while view:
                while self.write_ptr == self.read_ptr + self.capacity:
                    self.event.trigger(False)
                    self.lock.drop()
                    await_events([self.event], True)
                    self.lock.acquire_or_wait()
                free = self.read_ptr + self.capacity - self.write_ptr
                chunk = view[:free]
                start = self.write_ptr % self.capacity
                first = min(len(chunk), self.capacity - start)
                self._data[start:start + first] = chunk[:first]
                self._data[: len(chunk) - first] = chunk[first:]
                self.write_ptr += len(chunk)
                view = view[len(chunk):]

            if self.write_ptr == self.read_ptr + self.capacity:
                self.status &= ~POLLOUT
            self.status |= POLLIN

            self.event.trigger(False)
            return len(data)
        finally:
            self.lock.drop()

    def unref(self, description: Optional[FileDescription]) -> bool:
        self.event.trigger(False)
        self.refcount -= 1
        if not self.refcount:
            self._data = bytearray()
        return True


def open_pipe(table: FdTable, flags: int = 0) -> tuple[int, int]:
    """Create a pipe in ``table``; return the read end and the write end."""
    pipe = Pipe()
    read_end = table.open_resource(pipe, flags | O_RDONLY, 0, False)
    write_end = table.open_resource(pipe, flags | O_WRONLY, 0, False)
    return read_end, write_end