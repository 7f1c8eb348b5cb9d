"""Local (unix-domain) stream sockets."""

from __future__ import annotations

import enum
import errno
import stat
from dataclasses import replace
from typing import Optional

from polarkern.event import await_events
from polarkern.resource import (
    O_NONBLOCK,
    POLLIN,
    POLLOUT,
    FileDescription,
    Resource,
)
from polarkern.sockets import (
    AF_UNIX,
    MessageHeader,
    Socket,
    UnixAddress,
    _error,
)

FIONREAD = 0x541B
UNIX_BUFFER_SIZE = 0x100000


class UnixState(enum.IntFlag):
    NONE = 0
    LISTENING = 1
    CONNECTED = 2


class SocketNamespace:
    """Paths that sockets are bound to."""

    def __init__(self) -> None:
        self._nodes: dict[str, Resource] = {}

    def __contains__(self, path: str) -> bool:
        return path in self._nodes

    def lookup(self, path: str) -> Resource:
        try:
            return self._nodes[path]
        except KeyError:
            raise _error(errno.ENOENT) from None

    def register(self, path: str, sock: Resource) -> None:
        if path in self._nodes:
            raise _error(errno.EEXIST)
        self._nodes[path] = sock


default_namespace = SocketNamespace()


def _nonblocking(description: Optional[FileDescription]) -> bool:
    return description is not None and bool(description.flags & O_NONBLOCK)


class UnixSocket(Socket):
    """A unix stream socket with a receive ring buffer."""

    def __init__(self, type: int, protocol: int,
                 namespace: Optional[SocketNamespace] = None) -> None:
        super().__init__(AF_UNIX, type, protocol)
        self.namespace = namespace if namespace is not None else default_namespace
        self.refcount = 1
        self.name = UnixAddress(AF_UNIX, "")
        self.state = UnixState.NONE
        self.peer: Optional[UnixSocket] = None
        self.backlog: list[UnixSocket] = []
        self.backlog_max = 0
        self.capacity = UNIX_BUFFER_SIZE
        self._data = bytearray(UNIX_BUFFER_SIZE)
        self.read_ptr = 0
        self.write_ptr = 0
        self.capacity_used = 0

    def _consume(self, count: int) -> bytes:
        start = self.read_ptr
        first = min(count, self.capacity - start)
        data = bytes(self._data[start:start + first]) + bytes(
            self._data[: count - first]
        )
        self.read_ptr = (start + count) % self.capacity
        self.capacity_used -= count
        return data

    def _produce(self, data: bytes) -> None:
        start = self.write_ptr
        first = min(len(data), self.capacity - start)
        self._data[start:start + first] = data[:first]
        self._data[: len(data) - first] = data[first:]
        self.write_ptr = (start + len(data)) % self.capacity
        self.capacity_used += len(data)

    def _wait_for_data(self, description: Optional[FileDescription],
                       notify_peer: bool) -> None:
        # Called with the lock held; returns with it held.
        while self.capacity_used == 0:
            if notify_peer and self.peer is not None:
                self.peer.status |= POLLOUT
                self.peer.event.trigger(False)
            if _nonblocking(description):
                raise _error(errno.EAGAIN)
            self.lock.drop()
            await_events([self.event], True)
            self.lock.acquire_or_wait()

    def read(self, description: Optional[FileDescription], offset: int,
             count: int) -> bytes:
        self.lock.acquire_or_wait()
        try:
            self._wait_for_data(description, False)
            data = self._consume(min(count, self.capacity_used))
            if self.peer is not None:
                self.peer.status |= POLLOUT
                self.peer.event.trigger(False)
            self.status &= ~POLLIN
            return data
        finally:
            self.lock.drop()

    def write(self, description: Optional[FileDescription], offset: int,
              data: bytes) -> int:
        peer = self.peer
        if peer is None:
            raise _error(errno.ENOTCONN)
        peer.lock.acquire_or_wait()
        try:
            while peer.capacity_used == peer.capacity:
                if _nonblocking(description):
                    raise _error(errno.EAGAIN)
                peer.lock.drop()
                await_events([peer.event], True)
                peer.lock.acquire_or_wait()
            count = min(len(data), peer.capacity - peer.capacity_used)
            peer._produce(bytes(data[:count]))
            peer.status |= POLLIN
            peer.event.trigger(False)
            return count
        finally:
            peer.lock.drop()

    def ioctl(self, description: Optional[FileDescription], request: int,
              arg: int) -> int:
        """FIONREAD returns the number of bytes waiting to be read."""
        if request == FIONREAD:
            if self.state & UnixState.LISTENING:
                raise _error(errno.EINVAL)
            return self.capacity_used
        return super().ioctl(description, request, arg)

    def unref(self, description: Optional[FileDescription]) -> bool:
        return True

    def bind(self, description: Optional[FileDescription],
             addr: UnixAddress) -> None:
        with self.lock:
            if addr.family != AF_UNIX:
                raise _error(errno.EINVAL)
            self.namespace.register(addr.path, self)
            self.name = replace(addr)

    def connect(self, description: Optional[FileDescription],
                addr: UnixAddress) -> None:
        """Queue on a listening socket and wait until it is accepted."""
        if addr.family != AF_UNIX:
            raise _error(errno.EINVAL)
        node = self.namespace.lookup(addr.path)
        if not stat.S_ISSOCK(node.stat.mode):
            raise _error(errno.ENOTSOCK)
        if not isinstance(node, UnixSocket) or node.family != AF_UNIX:
            raise _error(errno.EINVAL)
        if not node.state & UnixState.LISTENING:
            raise _error(errno.ECONNREFUSED)

        with node.lock:
            if len(node.backlog) >= node.backlog_max:
                raise _error(errno.EAGAIN)
            node.status |= POLLIN
            node.backlog.append(self)
            node.event.trigger(False)

        await_events([self.connect_event], True)

        node.connect_event.trigger(False)
        self.status |= POLLOUT
        self.event.trigger(False)

    def getpeername(self, description: Optional[FileDescription]) -> UnixAddress:
        return replace(self.name)

    def listen(self, description: Optional[FileDescription],
               backlog: int) -> None:
        self.state |= UnixState.LISTENING
        self.backlog_max = backlog
        self.backlog = []

    def accept(self, description: Optional[FileDescription]) -> "UnixSocket":
        """Take the oldest pending connection and return its server end."""
        if not self.state & UnixState.LISTENING:
            raise _error(errno.EINVAL)
        if _nonblocking(description):
            raise _error(errno.EAGAIN)

        self.lock.acquire_or_wait()
        try:
            while not self.backlog:
                self.status &= ~POLLIN
                self.lock.drop()
                await_events([self.event], True)
                self.lock.acquire_or_wait()

            peer = self.backlog.pop(0)
            connection = UnixSocket(peer.type, peer.protocol, self.namespace)
            connection.name = replace(peer.name)
            connection.state |= UnixState.CONNECTED
            connection.peer = peer

            peer.refcount += 1
            peer.peer = connection
            peer.state |= UnixState.CONNECTED

            if not self.backlog:
                self.status &= ~POLLIN

            peer.connect_event.trigger(False)
            await_events([self.connect_event], True)
            return connection
        finally:
            self.lock.drop()

    def recvmsg(self, description: Optional[FileDescription],
                msg: MessageHeader, flags: int) -> int:
        """Scatter received bytes into ``msg.iov``; return how many."""
        if flags:
            raise _error(errno.EINVAL)
        self.lock.acquire_or_wait()
        try:
            count = msg.capacity
            self._wait_for_data(description, True)
            data = self._consume(min(count, self.capacity_used))

            transferred = 0
            for buf in msg.iov:
                chunk = data[transferred:transferred + len(buf)]
                buf[: len(chunk)] = chunk
                transferred += len(chunk)

            if self.peer is not None:
                self.peer.status |= POLLOUT
                self.peer.event.trigger(False)
                if msg.want_name and self.state & UnixState.CONNECTED:
                    msg.name = replace(self.peer.name)

            self.status &= ~POLLIN
            return transferred
        finally:
            self.lock.drop()


def create_unix_socket(type: int, protocol: int,
                       namespace: Optional[SocketNamespace] = None) -> UnixSocket:
    return UnixSocket(type, protocol, namespace)


def create_unix_pair(type: int, protocol: int,
                     namespace: Optional[SocketNamespace] = None
                     ) -> tuple[UnixSocket, UnixSocket]:
    """Create two fresh sockets of the same kind."""
    return (
        UnixSocket(type, protocol, namespace),
        UnixSocket(type, protocol, namespace),
    )