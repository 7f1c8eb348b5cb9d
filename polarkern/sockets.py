"""Socket addresses, message headers and the socket resource base."""

from __future__ import annotations

import errno
import os
import stat
from dataclasses import dataclass, field
from typing import Optional

from polarkern.event import Event
from polarkern.resource import O_CLOEXEC, O_NONBLOCK, FileDescription, Resource

AF_UNIX = 1
AF_LOCAL = 1

SOCK_STREAM = 1
SOCK_DGRAM = 2
SOCK_SEQPACKET = 5
SOCK_NONBLOCK = O_NONBLOCK
SOCK_CLOEXEC = O_CLOEXEC


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


@dataclass
class UnixAddress:
    """A local socket address: family and filesystem path."""

    family: int = AF_UNIX
    path: str = ""


@dataclass
class MessageHeader:
    """Scatter buffers for ``recvmsg`` and the sender name it fills in."""

    iov: list[bytearray] = field(default_factory=list)
    want_name: bool = False
    name: Optional[UnixAddress] = None
    control: bytes = b""
    flags: int = 0

    @property
    def capacity(self) -> int:
        """Total bytes the scatter buffers can hold."""
        return sum(len(buf) for buf in self.iov)


class Socket(Resource):
    """A resource with socket operations; families override them."""

    def __init__(self, family: int, type: int, protocol: int) -> None:
        super().__init__(stat.S_IFSOCK)
        self.family = family
        self.type = type
        self.protocol = protocol
        self.connect_event = Event()

    def bind(self, description: Optional[FileDescription],
             addr: UnixAddress) -> None:
        raise _error(errno.EOPNOTSUPP)

    def connect(self, description: Optional[FileDescription],
                addr: UnixAddress) -> None:
        raise _error(errno.EOPNOTSUPP)

    def getpeername(self, description: Optional[FileDescription]) -> UnixAddress:
        raise _error(errno.EOPNOTSUPP)

    def listen(self, description: Optional[FileDescription],
               backlog: int) -> None:
        raise _error(errno.EOPNOTSUPP)

    def accept(self, description: Optional[FileDescription]) -> "Socket":
        raise _error(errno.EOPNOTSUPP)

    def recvmsg(self, description: Optional[FileDescription],
                msg: MessageHeader, flags: int) -> int:
        raise _error(errno.EOPNOTSUPP)