import errno
import stat
import threading
import time

import pytest

from polarkern.resource import (
    F_DUPFD,
    F_GETFD,
    F_GETFL,
    F_SETFD,
    F_SETFL,
    FIOCLEX,
    MAX_FDS,
    O_CLOEXEC,
    O_NONBLOCK,
    POLLIN,
    POLLNVAL,
    POLLOUT,
    SEEK_CUR,
    SEEK_END,
    SEEK_SET,
    TCGETS,
    FdTable,
    PollFd,
    Resource,
    create_descriptor,
    default_ioctl,
    next_device_id,
)
from polarkern.timers import Clock, Timespec


class BufferResource(Resource):
    def __init__(self):
        super().__init__(stat.S_IFREG)
        self.data = bytearray()

    def read(self, description, offset, count):
        return bytes(self.data[offset:offset + count])

    def write(self, description, offset, data):
        self.data[offset:offset + len(data)] = data
        self.stat.size = len(self.data)
        return len(data)


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition never became true")
        time.sleep(0.001)


def _errno_of(func, *args):
    with pytest.raises(OSError) as info:
        func(*args)
    return info.value.errno


def test_default_ioctl():
    assert default_ioctl(FIOCLEX) == 0
    assert _errno_of(default_ioctl, TCGETS) == errno.ENOTTY
    assert _errno_of(default_ioctl, 0xDEAD) == errno.EINVAL


def test_stub_operations_are_unsupported():
    res = Resource()
    assert _errno_of(res.read, None, 0, 4) == errno.ENOSYS
    assert _errno_of(res.write, None, 0, b"x") == errno.ENOSYS
    assert _errno_of(res.truncate, None, 0) == errno.ENOSYS


def test_device_ids_increase():
    first = next_device_id()
    assert next_device_id() == first + 1


def test_create_descriptor_splits_flags():
    res = Resource()
    fd = create_descriptor(res, O_NONBLOCK | O_CLOEXEC)
    assert fd.flags == O_CLOEXEC
    assert fd.description.flags == O_NONBLOCK
    assert fd.description.resource is res
    assert res.refcount == 2


def test_open_uses_lowest_free_slot_and_close_frees_it():
    table = FdTable()
    a = table.open_resource(Resource())
    b = table.open_resource(Resource())
    assert b == a + 1
    table.close(a)
    assert a not in table
    assert table.open_resource(Resource()) == a


def test_bad_descriptors():
    table = FdTable()
    assert _errno_of(table.get, -1) == errno.EBADF
    assert _errno_of(table.get, MAX_FDS) == errno.EBADF
    assert _errno_of(table.close, 3) == errno.EBADF


def test_read_write_advance_offset():
    table = FdTable()
    fd = table.open_resource(BufferResource())
    assert table.write(fd, b"hello") == 5
    assert table.seek(fd, 0, SEEK_SET) == 0
    assert table.read(fd, 3) == b"hel"
    assert table.read(fd, 10) == b"lo"


def test_seek_modes():
    table = FdTable()
    fd = table.open_resource(BufferResource())
    table.write(fd, b"abcdef")
    assert table.seek(fd, -2, SEEK_END) == 4
    assert table.seek(fd, 1, SEEK_CUR) == 5
    assert _errno_of(table.seek, fd, -10, SEEK_SET) == errno.EINVAL
    assert _errno_of(table.seek, fd, 0, 42) == errno.EINVAL


def test_seek_on_fifo_fails():
    table = FdTable()
    fd = table.open_resource(Resource(stat.S_IFIFO))
    assert _errno_of(table.seek, fd, 0, SEEK_SET) == errno.ESPIPE


def test_dup_shares_description():
    table = FdTable()
    fd = table.open_resource(BufferResource())
    copy = table.dup(fd)
    assert copy != fd
    assert table.get(copy).description is table.get(fd).description
    assert _errno_of(table.dup, fd, table, fd, 0, True) == errno.EINVAL


def test_dup3_places_at_requested_slot():
    table = FdTable()
    fd = table.open_resource(BufferResource())
    assert table.dup3(fd, 40) == 40
    assert table.get(40).description is table.get(fd).description


def test_fcntl_flags():
    table = FdTable()
    fd = table.open_resource(Resource())
    assert table.fcntl(fd, F_GETFD) == 0
    assert table.fcntl(fd, F_SETFD, O_CLOEXEC) == 0
    assert table.fcntl(fd, F_GETFD) == O_CLOEXEC
    assert table.fcntl(fd, F_SETFL, O_NONBLOCK) == 0
    assert table.fcntl(fd, F_GETFL) == O_NONBLOCK
    assert table.fcntl(fd, F_DUPFD, 10) == 10
    assert _errno_of(table.fcntl, fd, 0x7777) == errno.EINVAL


def test_ioctl_goes_to_resource():
    table = FdTable()
    fd = table.open_resource(Resource())
    assert table.ioctl(fd, FIOCLEX) == 0
    assert _errno_of(table.ioctl, fd, TCGETS) == errno.ENOTTY


def test_ppoll_ready_at_once():
    table = FdTable()
    res = Resource()
    res.status = POLLIN | POLLOUT
    fd = table.open_resource(res)
    pfd = PollFd(fd, POLLIN)
    skipped = PollFd(-1, POLLIN)
    assert table.ppoll([pfd, skipped]) == 1
    assert pfd.revents == POLLIN
    assert skipped.revents == 0


def test_ppoll_invalid_descriptor():
    pfd = PollFd(7, POLLIN)
    assert FdTable().ppoll([pfd]) == 1
    assert pfd.revents == POLLNVAL


def test_ppoll_too_many():
    pollfds = [PollFd(-1, POLLIN) for _ in range(33)]
    assert _errno_of(FdTable().ppoll, pollfds) == errno.EINVAL


def test_ppoll_wakes_on_event():
    table = FdTable()
    res = Resource()
    fd = table.open_resource(res)
    pfd = PollFd(fd, POLLIN)
    result = []
    worker = threading.Thread(target=lambda: result.append(table.ppoll([pfd])))
    worker.start()
    _wait_until(lambda: res.event.listener_count == 1)
    res.status = POLLIN
    res.event.trigger()
    worker.join(5)
    assert result == [1]
    assert pfd.revents == POLLIN


def test_ppoll_times_out():
    table = FdTable()
    clock = Clock()
    fd = table.open_resource(Resource())
    result = []
    worker = threading.Thread(
        target=lambda: result.append(
            table.ppoll([PollFd(fd, POLLIN)], Timespec(0, 1000), clock)
        )
    )
    worker.start()
    deadline = time.monotonic() + 5
    while worker.is_alive() and time.monotonic() < deadline:
        clock.tick(500)
        time.sleep(0.001)
    worker.join(1)
    assert result == [0]
    assert clock.armed == ()