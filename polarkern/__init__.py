"""Kernel core facilities modelled in Python: strings, boot arguments,
random numbers, locks, events, timers, descriptors, pipes, sockets,
networking, system calls, futexes, scheduling and ELF parsing."""

__version__ = "0.1.0"