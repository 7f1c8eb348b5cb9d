import errno
import threading

import pytest

from polarkern.pipe import open_pipe
from polarkern.resource import F_GETFD, F_GETFL, O_CLOEXEC, O_NONBLOCK, FdTable
from polarkern.socketcalls import (
    socket_create,
    socket_create_pair,
    sys_accept,
    sys_bind,
    sys_connect,
    sys_getpeername,
    sys_listen,
    sys_recvmsg,
    sys_socket,
    sys_socketpair,
)
from polarkern.sockets import (
    AF_UNIX,
    SOCK_CLOEXEC,
    SOCK_NONBLOCK,
    SOCK_STREAM,
    MessageHeader,
    UnixAddress,
)
from polarkern.unix import SocketNamespace, UnixSocket

PATH = "/srv.sock"


def _errno_of(call):
    with pytest.raises(OSError) as info:
        call()
    return info.value.errno


def test_socket_create_unix():
    sock = socket_create(AF_UNIX, SOCK_STREAM, 0, SocketNamespace())
    assert isinstance(sock, UnixSocket)
    assert sock.family == AF_UNIX


def test_unknown_family():
    assert _errno_of(lambda: socket_create(2, SOCK_STREAM, 0)) == errno.EINVAL
    assert _errno_of(lambda: socket_create_pair(2, SOCK_STREAM, 0)) == errno.EINVAL
    assert _errno_of(lambda: sys_socket(FdTable(), 2, SOCK_STREAM, 0)) == errno.EINVAL


def test_sys_socket_installs_descriptor():
    table = FdTable()
    fd = sys_socket(table, AF_UNIX, SOCK_STREAM, 0, SocketNamespace())
    assert table.get(fd).description.resource.family == AF_UNIX
    assert table.fcntl(fd, F_GETFD) == 0


def test_sys_socket_flags():
    table = FdTable()
    fd = sys_socket(
        table, AF_UNIX, SOCK_STREAM | SOCK_NONBLOCK | SOCK_CLOEXEC, 0,
        SocketNamespace(),
    )
    assert table.fcntl(fd, F_GETFL) & O_NONBLOCK
    assert table.fcntl(fd, F_GETFD) == O_CLOEXEC


def test_socketpair_descriptors():
    table = FdTable()
    first, second = sys_socketpair(table, AF_UNIX, SOCK_STREAM, 0, SocketNamespace())
    assert first != second
    assert table.get(first).description.resource is not table.get(
        second
    ).description.resource


def test_bind_and_getpeername():
    ns = SocketNamespace()
    table = FdTable()
    fd = sys_socket(table, AF_UNIX, SOCK_STREAM, 0, ns)
    addr = UnixAddress(path="/bound")
    assert sys_bind(table, fd, addr) == 0
    assert ns.lookup("/bound") is table.get(fd).description.resource
    assert sys_getpeername(table, fd) == addr


def test_not_a_socket():
    table = FdTable()
    read_end, _ = open_pipe(table)
    assert _errno_of(lambda: sys_listen(table, read_end, 1)) == errno.ENOTSOCK
    assert _errno_of(
        lambda: sys_bind(table, read_end, UnixAddress(path="/x"))
    ) == errno.ENOTSOCK


def test_bad_descriptor():
    assert _errno_of(lambda: sys_listen(FdTable(), 42, 1)) == errno.EBADF


def test_nonblocking_accept():
    table = FdTable()
    fd = sys_socket(table, AF_UNIX, SOCK_STREAM | SOCK_NONBLOCK, 0, SocketNamespace())
    sys_listen(table, fd, 1)
    assert _errno_of(lambda: sys_accept(table, fd)) == errno.EAGAIN


def test_full_connection_flow():
    ns = SocketNamespace()
    table = FdTable()
    server = sys_socket(table, AF_UNIX, SOCK_STREAM, 0, ns)
    sys_bind(table, server, UnixAddress(path=PATH))
    assert sys_listen(table, server, 4) == 0
    client = sys_socket(table, AF_UNIX, SOCK_STREAM, 0, ns)

    results = []
    worker = threading.Thread(
        target=lambda: results.append(
            sys_connect(table, client, UnixAddress(path=PATH))
        ),
        daemon=True,
    )
    worker.start()
    accepted = sys_accept(table, server)
    worker.join(5)
    assert results == [0]
    assert accepted not in (server, client)

    payload = b"hello"
    assert table.write(client, payload) == len(payload)
    msg = MessageHeader([bytearray(16)])
    assert sys_recvmsg(table, accepted, msg, 0) == len(payload)
    assert bytes(msg.iov[0][: len(payload)]) == payload
    assert _errno_of(lambda: sys_recvmsg(table, accepted, msg, 1)) == errno.EINVAL