"""Socket system calls working on a descriptor table."""

from __future__ import annotations

import errno
import stat
from typing import Optional

from polarkern.resource import FdTable, FileDescription
from polarkern.sockets import (
    AF_UNIX,
    SOCK_CLOEXEC,
    SOCK_NONBLOCK,
    MessageHeader,
    Socket,
    UnixAddress,
    _error,
)
from polarkern.unix import (
    SocketNamespace,
    create_unix_pair,
    create_unix_socket,
)


def socket_create(family: int, type: int, protocol: int,
                  namespace: Optional[SocketNamespace] = None) -> Socket:
    """Create a socket of ``family``; unknown families raise EINVAL."""
    if family == AF_UNIX:
        return create_unix_socket(type, protocol, namespace)
    raise _error(errno.EINVAL)


def socket_create_pair(family: int, type: int, protocol: int,
                       namespace: Optional[SocketNamespace] = None
                       ) -> tuple[Socket, Socket]:
    if family == AF_UNIX:
        return create_unix_pair(type, protocol, namespace)
    raise _error(errno.EINVAL)


def _open_flags(type: int) -> int:
    return type & (SOCK_CLOEXEC | SOCK_NONBLOCK)


def sys_socket(table: FdTable, family: int, type: int, protocol: int,
               namespace: Optional[SocketNamespace] = None) -> int:
    sock = socket_create(family, type, protocol, namespace)
    return table.open_resource(sock, _open_flags(type), 0, False)


def sys_socketpair(table: FdTable, family: int, type: int, protocol: int,
                   namespace: Optional[SocketNamespace] = None
                   ) -> tuple[int, int]:
    first, second = socket_create_pair(family, type, protocol, namespace)
    flags = _open_flags(type)
    return (
        table.open_resource(first, flags, 0, False),
        table.open_resource(second, flags, 0, False),
    )


def _socket_of(table: FdTable, fdnum: int) -> tuple[Socket, FileDescription]:
    description = table.get(fdnum).description
    description.resource.unref(description)
    if not stat.S_ISSOCK(description.resource.stat.mode):
        raise _error(errno.ENOTSOCK)
    return description.resource, description


def sys_bind(table: FdTable, fdnum: int, addr: UnixAddress) -> int:
    sock, description = _socket_of(table, fdnum)
    sock.bind(description, addr)
    return 0


def sys_connect(table: FdTable, fdnum: int, addr: UnixAddress) -> int:
    sock, description = _socket_of(table, fdnum)
    sock.connect(description, addr)
    return 0


def sys_getpeername(table: FdTable, fdnum: int) -> UnixAddress:
    sock, description = _socket_of(table, fdnum)
    return sock.getpeername(description)


def sys_listen(table: FdTable, fdnum: int, backlog: int) -> int:
    sock, description = _socket_of(table, fdnum)
    sock.listen(description, backlog)
    return 0


def sys_accept(table: FdTable, fdnum: int) -> int:
    """Accept a connection and return the descriptor of its server end."""
    sock, description = _socket_of(table, fdnum)
    connection = sock.accept(description)
    return table.open_resource(connection, 0, 0, False)


def sys_recvmsg(table: FdTable, fdnum: int, msg: MessageHeader,
                flags: int) -> int:
    sock, description = _socket_of(table, fdnum)
    return sock.recvmsg(description, msg, flags)