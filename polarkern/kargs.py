"""Kernel command-line parsing."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from polarkern.strings import atol, strncmp, strsplit


class KernelArgFlag(enum.IntFlag):
    """Options that can be switched on from the command line."""

    NONE = 0
    CPU_COUNT_GIVEN = 1 << 0
    NO_LAI = 1 << 1
    KPRINTF_LOGS = 1 << 2
    INIT_PATH_GIVEN = 1 << 3
    SUPPRESS_UBSAN = 1 << 4
    ALLOW_WRITES_TO_DISKS = 1 << 5
    SUPPRESS_USER_DEBUG_MESSAGES = 1 << 6
    DONT_TRUST_CPU_RANDOM_SEED = 1 << 7
    PANIC_ON_DEADLOCK = 1 << 8


@dataclass
class KernelArguments:
    """The parsed command line."""

    flags: KernelArgFlag = KernelArgFlag.NONE
    cpu_count: int = 0
    init_binary_path: Optional[str] = None


# (keyword, characters compared, flag). A length one past the keyword
# requires an exact match, as the terminator takes part in the comparison.
_SIMPLE_FLAGS = (
    ("no-lai", 6, KernelArgFlag.NO_LAI),
    ("kprintf", 7, KernelArgFlag.KPRINTF_LOGS),
    ("suppress-ubsan", 14, KernelArgFlag.SUPPRESS_UBSAN),
    ("allow-writes-to-disks", 21, KernelArgFlag.ALLOW_WRITES_TO_DISKS),
    (
        "suppress-user-debug-messages",
        29,
        KernelArgFlag.SUPPRESS_USER_DEBUG_MESSAGES,
    ),
    ("dont-trust-cpu-random-seed", 27, KernelArgFlag.DONT_TRUST_CPU_RANDOM_SEED),
    ("panic-on-deadlock", 18, KernelArgFlag.PANIC_ON_DEADLOCK),
)


def parse_kernel_args(text: str) -> KernelArguments:
    """Parse a space-separated kernel command line."""
    args = KernelArguments()
    for token in strsplit(text, " "):
        if strncmp(token, "cpus", 4) == 0:
            args.flags |= KernelArgFlag.CPU_COUNT_GIVEN
            args.cpu_count = atol(token[5:])
        if strncmp(token, "init", 4) == 0:
            args.flags |= KernelArgFlag.INIT_PATH_GIVEN
            args.init_binary_path = token[5:]
        for keyword, length, flag in _SIMPLE_FLAGS:
            if strncmp(token, keyword, length) == 0:
                args.flags |= flag
    return args