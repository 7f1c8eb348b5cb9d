"""64-bit Mersenne Twister backing the random device."""

from __future__ import annotations

import os
import time
from typing import Callable, Optional

_W = 64
_N = 312
_M = 156
_R = 31

_A = 0xB5026F5AA96619E9
_U = 29
_D = 0x5555555555555555
_S = 17
_B = 0x71D67FFFEDA60000
_T = 37
_C = 0xFFF7EEE000000000
_L = 43
_F = 6364136223846793005

_MASK64 = (1 << 64) - 1
_MASK_LOW = (1 << _R) - 1
_MASK_UPP = ~_MASK_LOW & _MASK64


def default_seed() -> int:
    """Seed from the monotonic clock mixed with a little noise."""
    noise = int.from_bytes(os.urandom(4), "little")
    return (time.monotonic_ns() ^ noise) & _MASK64


class MersenneTwister64:
    """MT19937-64 generator, seeded lazily on first use."""

    def __init__(self, seed_source: Optional[Callable[[], int]] = None) -> None:
        self._seed_source = seed_source or default_seed
        self._state = [0] * _N
        self._index = _N + 1

    def seed(self, value: int) -> None:
        """Reinitialise the state from ``value``."""
        state = self._state
        state[0] = value & _MASK64
        for i in range(1, _N):
            prev = state[i - 1]
            state[i] = (_F * (prev ^ (prev >> (_W - 2))) + i) & _MASK64
        self._index = _N

    def _twist(self) -> None:
        state = self._state
        for i in range(_N):
            x = (state[i] & _MASK_UPP) + (state[(i + 1) % _N] & _MASK_LOW)
            xa = x >> 1
            if x & 1:
                xa ^= _A
            state[i] = state[(i + _M) % _N] ^ xa
        self._index = 0

    def next(self) -> int:
        """Return the next 64-bit output."""
        if self._index >= _N:
            if self._index > _N:
                self.seed(self._seed_source())
            self._twist()

        y = self._state[self._index]
        y ^= (y >> _U) & _D
        y ^= (y << _S) & _B
        y ^= (y << _T) & _C
        y ^= y >> _L

        self._index += 1
        return y & _MASK64

    def __iter__(self) -> "MersenneTwister64":
        return self

    def __next__(self) -> int:
        return self.next()

    def read(self, count: int) -> bytes:
        """Return ``count`` bytes filled with whole little-endian words.

        Bytes past the last whole 8-byte word are left zero.
        """
        if count < 0:
            raise ValueError("count must not be negative")
        words = b"".join(
            self.next().to_bytes(8, "little") for _ in range(count // 8)
        )
        return words + bytes(count - len(words))