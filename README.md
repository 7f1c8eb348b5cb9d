# polarkern

`polarkern` models the core facilities of a small hobby operating-system
kernel as plain Python objects. Nothing runs on hardware. You get the data
structures and the rules the kernel follows, and you drive them directly
from Python code or from tests. The package has no dependencies beyond the
standard library.

## What is inside

- `polarkern.strings`: string helpers with C semantics: `ltoa`, `ultoa`,
  `atol`, `strspn`, `strcspn`, `strpbrk`, `strncmp`, `tokenize` and
  `strsplit`.
- `polarkern.kargs`: `parse_kernel_args` reads a boot command line into a
  `KernelArguments` record (`flags`, `cpu_count`, `init_binary_path`) with
  `KernelArgFlag` flags.
- `polarkern.mersenne`: `MersenneTwister64`, a 64-bit Mersenne Twister that
  seeds itself lazily from `default_seed` (or a seed function you pass), and
  whose `read(count)` returns bytes made of whole little-endian words.
- `polarkern.spinlock`: `Spinlock`, usable as a context manager, which can
  raise `DeadlockError` after `spin_limit` failed attempts when
  `panic_on_deadlock` is set.
- `polarkern.event`: `Event` and `await_events`, the wait and wake primitive
  used by everything else. A trigger with no listener is kept as pending
  unless it is dropped.
- `polarkern.timers`: `Timespec`, `Timer`, `Clock` and `ClockId`. A `Clock`
  holds the monotonic and realtime clocks and the armed timers; time moves
  only when you call `Clock.tick(ns)`, and `nanosleep` blocks until enough
  ticks have passed.
- `polarkern.resource`: `Resource`, `FileDescription`, `FileDescriptor`,
  `PollFd` and `FdTable`, which provides `get`, `close`, `install`,
  `open_resource`, `dup`, `read`, `write`, `seek`, `fcntl`, `ioctl`, `dup3`
  and `ppoll`. `default_ioctl` and `next_device_id` are also here.
- `polarkern.pipe`: `Pipe`, a ring-buffer resource, and `open_pipe`, which
  returns the read and write descriptor numbers.
- `polarkern.sockets`, `polarkern.unix` and `polarkern.socketcalls`:
  `UnixAddress`, `MessageHeader` and the `Socket` base; `UnixSocket` with a
  `SocketNamespace` of bound paths; and the calls `socket_create`,
  `socket_create_pair`, `sys_socket`, `sys_socketpair`, `sys_bind`,
  `sys_connect`, `sys_getpeername`, `sys_listen`, `sys_accept` and
  `sys_recvmsg`.
- `polarkern.ip`, `polarkern.udp`, `polarkern.icmp`, `polarkern.arp` and
  `polarkern.net`: `IpPacket`, `UdpHeader` and `ArpPacket` parsing and
  packing, the internet `checksum`, `send_ip`, `send_udp`, UDP echo on port
  7 (`handle_udp`), ICMP `echo_reply`, the `ArpCache`, and `NetworkStack`,
  which dispatches Ethernet frames to these handlers.
- `polarkern.syscall`: `SyscallTable`, which maps system-call numbers to
  handlers; unknown numbers raise `ENOSYS`.
- `polarkern.futex`: `FutexTable` with `wait` and `wake`.
- `polarkern.sched`: `Scheduler`, `Process`, `Thread`, `ThreadState`,
  `ProcessState` and `Utsname`, covering process and thread creation,
  `fork`, `kill_process`, `kill_thread`, `next_thread`, `find_process`,
  `waitpid`, `uname`, `sethostname` and `set_umask`.
- `polarkern.elf`: ELF64 constants and parsers for `ElfHeader`,
  `ProgramHeader`, `SectionHeader`, `Symbol` and `Rela`, plus `st_bind`,
  `st_type`, `r_sym` and `r_type`.

## Example

```python
from polarkern.strings import ltoa, strsplit
from polarkern.kargs import parse_kernel_args, KernelArgFlag

print(ltoa(-255, 10))          # "-255"
print(ltoa(-255, 16))          # "ff" (only base 10 carries a sign)
print(strsplit("a b c", " "))  # ["a", "b", "c"]

args = parse_kernel_args("cpus=4 init=/usr/bin/init kprintf")
print(args.cpu_count)                              # 4
print(args.init_binary_path)                       # "/usr/bin/init"
print(KernelArgFlag.KPRINTF_LOGS in args.flags)    # True
```

Errors are raised as Python exceptions. Calls that fail with an errno value
raise `OSError` carrying that errno.

## What it does not do

- There is no filesystem: socket paths live in a `SocketNamespace`, and a
  process's working directory is just a string.
- ELF images are parsed, not loaded or run; there is no memory management
  or program execution.
- There are no device drivers and no real network I/O. A `NicInterface`
  hands frames to a `transmit` callback you supply, or keeps them in its
  `sent` list.
- There is no command-line program; the package is a library.

## Running the tests

```
pip install -e .[test]
pytest
```