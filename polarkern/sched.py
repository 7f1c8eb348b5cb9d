"""Processes, threads and the scheduler's bookkeeping."""

from __future__ import annotations

import enum
import errno
import itertools
import os
import stat
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from polarkern.event import Event, await_events
from polarkern.resource import MAX_FDS, FdTable
from polarkern.spinlock import Spinlock

MAX_EVENTS = 32
VIRTUAL_STACK_ADDR = 0x70000000000
MMAP_ANON_BASE = 0x80000000000
CPU_STACK_SIZE = 64 * 1024
STACK_SIZE = 1024 * 1024 * 8
PROCESS_NAME_MAX = 256
HOSTNAME_MAX = 64
DEFAULT_UMASK = stat.S_IWGRP | stat.S_IWOTH

_BUILD_STAMP = time.strftime("%b %d %Y %H:%M:%S")


def _error(code: int) -> OSError:
    return OSError(code, os.strerror(code))


class ThreadState(enum.IntEnum):
    NORMAL = 0
    READY_TO_RUN = 1
    KILLED = 2
    WAITING_FOR_EVENT = 3


class ProcessState(enum.IntEnum):
    NORMAL = 0
    READY_TO_RUN = 1


@dataclass
class Utsname:
    """System identification as reported by ``uname``."""

    sysname: str = "Polaris"
    nodename: str = "localhost"
    release: str = "0.0.0"
    version: str = f"Built on {_BUILD_STAMP}"
    machine: str = "x86_64"
    domainname: str = ""


@dataclass(eq=False)
class Thread:
    """A schedulable thread belonging to a process."""

    tid: int
    process: "Process"
    runtime: int = 0
    state: ThreadState = ThreadState.NORMAL
    which_event: int = 0
    last_scheduled: int = 0
    lock: Spinlock = field(default_factory=Spinlock)


@dataclass(eq=False)
class Process:
    """A process: its threads, children, descriptors and exit status."""

    pid: int
    name: str
    runtime: int = 0
    state: ProcessState = ProcessState.NORMAL
    parent: Optional["Process"] = None
    cwd: str = "/"
    umask: int = DEFAULT_UMASK
    mmap_anon_base: int = MMAP_ANON_BASE
    stack_top: int = VIRTUAL_STACK_ADDR
    status: int = 0
    threads: list[Thread] = field(default_factory=list)
    children: list["Process"] = field(default_factory=list)
    fds: FdTable = field(default_factory=FdTable)
    death_event: Event = field(default_factory=Event)

    @property
    def ppid(self) -> int:
        """The parent's pid, or 0 without a parent."""
        return self.parent.pid if self.parent is not None else 0


class Scheduler:
    """Keeps the process and thread lists and the system name."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._pids = itertools.count()
        self._tids = itertools.count()
        self._processes: list[Process] = []
        self._threads: list[Thread] = []
        self._utsname = Utsname()

    @property
    def processes(self) -> tuple[Process, ...]:
        with self._lock:
            return tuple(self._processes)

    @property
    def threads(self) -> tuple[Thread, ...]:
        with self._lock:
            return tuple(self._threads)

    def create_process(self, name: str, runtime: int = 0,
                       parent: Optional[Process] = None) -> Process:
        """Create a ready process with one thread; inherit from ``parent``."""
        with self._lock:
            proc = Process(
                pid=next(self._pids),
                name=name[:PROCESS_NAME_MAX],
                runtime=runtime,
                state=ProcessState.READY_TO_RUN,
            )
            if parent is not None:
                proc.parent = parent
                if parent.cwd:
                    proc.cwd = parent.cwd
                proc.umask = parent.umask
                proc.mmap_anon_base = parent.mmap_anon_base
                parent.children.append(proc)
            self._processes.append(proc)
            self.create_thread(proc)
            return proc

    def create_thread(self, process: Process) -> Thread:
        """Add a ready thread to ``process``."""
        with self._lock:
            thread = Thread(
                tid=next(self._tids),
                process=process,
                runtime=process.runtime,
                state=ThreadState.READY_TO_RUN,
            )
            process.threads.append(thread)
            self._threads.append(thread)
            return thread

    def fork(self, process: Process, thread: Thread) -> Process:
        """Duplicate ``process`` with a copy of ``thread``; return the child."""
        child_fds = FdTable()
        for fdnum in range(MAX_FDS):
            if fdnum in process.fds:
                process.fds.dup(fdnum, child_fds, fdnum, 0, True, False)

        with self._lock:
            child = Process(
                pid=next(self._pids),
                name=process.name,
                parent=process,
                cwd=process.cwd,
                umask=process.umask,
                mmap_anon_base=process.mmap_anon_base,
                stack_top=process.stack_top,
                fds=child_fds,
            )
            process.children.append(child)
            self._processes.append(child)

            copy = Thread(
                tid=next(self._tids),
                process=child,
                runtime=thread.runtime,
                state=ThreadState.READY_TO_RUN,
            )
            self._threads.append(copy)
            child.threads.append(copy)

            child.state = ProcessState.READY_TO_RUN
            return child

    def kill_process(self, process: Process) -> None:
        """Tear a process down; it stays listed until its parent waits."""
        if process.pid < 2:
            raise RuntimeError("Attempted to kill init!")

        for fdnum in range(MAX_FDS):
            if fdnum in process.fds:
                process.fds.close(fdnum)

        with self._lock:
            for thread in process.threads:
                if thread in self._threads:
                    self._threads.remove(thread)
                thread.state = ThreadState.KILLED

            if len(self._processes) < 2:
                raise RuntimeError("no init process to adopt children")
            init = self._processes[1]
            for child in process.children:
                child.parent = init
                init.children.append(child)

            process.children = []
            process.threads = []

        process.death_event.trigger(False)

    def kill_thread(self, thread: Thread) -> None:
        """Kill one thread; killing the last one kills its process."""
        process = thread.process
        if thread in process.threads:
            process.threads.remove(thread)
        if not process.threads:
            self.kill_process(process)

        with self._lock:
            if thread in self._threads:
                self._threads.remove(thread)
        thread.state = ThreadState.KILLED

    def next_thread(self, after: Optional[Thread] = None) -> Optional[Thread]:
        """Find the next ready thread whose lock can be taken, and lock it.

        The search starts after ``after``, or at the head of the list.
        """
        with self._lock:
            if after is None:
                candidates = list(self._threads)
            else:
                try:
                    start = self._threads.index(after) + 1
                except ValueError:
                    return None
                candidates = self._threads[start:]

            for thread in candidates:
                if thread.state is not ThreadState.READY_TO_RUN:
                    continue
                if thread.lock.acquire():
                    return thread
            return None

    def find_process(self, pid: int) -> Optional[Process]:
        with self._lock:
            return next((p for p in self._processes if p.pid == pid), None)

    def waitpid(self, waiter: Process, pid: int = -1,
                nohang: bool = False) -> tuple[int, int]:
        """Wait for a child to die and reap it; return ``(pid, status)``.

        ``pid`` of -1 waits for any child. With ``nohang`` and no child
        dead yet, EINTR is raised.
        """
        with self._lock:
            if not waiter.children:
                raise _error(errno.ECHILD)
            if pid < -1 or pid == 0:
                raise _error(errno.EINVAL)

            waitee: Optional[Process] = None
            if pid == -1:
                children = list(waiter.children)
                events = [child.death_event for child in children]
            else:
                waitee = next(
                    (c for c in waiter.children if c.pid == pid), None
                )
                if waitee is None:
                    raise _error(errno.ECHILD)
                children = [waitee]
                events = [waitee.death_event]

        which = await_events(events, not nohang)
        if which is None:
            raise _error(errno.EINTR)

        with self._lock:
            if waitee is None:
                waitee = children[which]
            result = (waitee.pid, waitee.status)
            if waitee in waiter.children:
                waiter.children.remove(waitee)
            if waitee in self._processes:
                self._processes.remove(waitee)
            return result

    def uname(self) -> Utsname:
        return replace(self._utsname)

    def sethostname(self, name: str) -> None:
        """Set the node name, keeping at most 64 characters."""
        self._utsname.nodename = name[:HOSTNAME_MAX]

    def set_umask(self, process: Process, mask: int) -> int:
        """Replace the process's umask and return the old one."""
        old = process.umask
        process.umask = mask
        return old