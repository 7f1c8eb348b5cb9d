import errno
import stat

import pytest

from polarkern.sockets import (
    AF_LOCAL,
    AF_UNIX,
    SOCK_STREAM,
    MessageHeader,
    Socket,
    UnixAddress,
)


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.bind(None, UnixAddress(path="/a")),
        lambda s: s.connect(None, UnixAddress(path="/a")),
        lambda s: s.getpeername(None),
        lambda s: s.listen(None, 1),
        lambda s: s.accept(None),
        lambda s: s.recvmsg(None, MessageHeader(), 0),
    ],
)
def test_base_operations_unsupported(call):
    sock = Socket(AF_UNIX, SOCK_STREAM, 0)
    with pytest.raises(OSError) as info:
        call(sock)
    assert info.value.errno == errno.EOPNOTSUPP


def test_socket_fields_and_mode():
    sock = Socket(AF_UNIX, SOCK_STREAM, 7)
    assert (sock.family, sock.type, sock.protocol) == (AF_UNIX, SOCK_STREAM, 7)
    assert stat.S_ISSOCK(sock.stat.mode)
    assert sock.connect_event.pending == 0


def test_address_defaults():
    addr = UnixAddress()
    assert addr.family == AF_UNIX == AF_LOCAL == 1
    assert addr.path == ""


def test_message_capacity():
    msg = MessageHeader([bytearray(3), bytearray(4)])
    assert msg.capacity == 7
    assert MessageHeader().capacity == 0
    assert msg.name is None