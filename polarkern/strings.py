"""String helpers with the semantics of the kernel's C string routines."""

from __future__ import annotations

from itertools import takewhile, zip_longest
from typing import Iterator, Optional

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_MASK64 = (1 << 64) - 1


def _to_digits(value: int, base: int) -> str:
    """Render a non-negative integer in ``base`` using lower-case digits."""
    out = []
    while True:
        value, rem = divmod(value, base)
        out.append(_DIGITS[rem])
        if not value:
            break
    return "".join(reversed(out))


def ltoa(value: int, base: int = 10) -> str:
    """Convert a signed integer to text.

    Only base 10 carries a minus sign; other bases print the magnitude.
    An unsupported base (outside 2..36) yields an empty string.
    """
    if not 2 <= base <= 36:
        return ""
    text = _to_digits(abs(value), base)
    if value < 0 and base == 10:
        return "-" + text
    return text


def ultoa(value: int, base: int = 10) -> str:
    """Convert an integer, taken as unsigned 64-bit, to text."""
    if not 2 <= base <= 36:
        return ""
    return _to_digits(value & _MASK64, base)


def atol(text: str) -> int:
    """Parse a leading decimal integer, skipping spaces, tabs and newlines."""
    rest = text.lstrip(" \n\t")
    sign = 1
    if rest[:1] in ("+", "-"):
        if rest[0] == "-":
            sign = -1
        rest = rest[1:]
    digits = "".join(takewhile(lambda c: "0" <= c <= "9", rest))
    return sign * int(digits) if digits else 0


def strspn(text: str, accept: str) -> int:
    """Length of the leading run of ``text`` made only of ``accept`` chars."""
    if not accept:
        return 0
    return sum(1 for _ in takewhile(lambda c: c in accept, text))


def strcspn(text: str, reject: str) -> int:
    """Length of the leading run of ``text`` containing no ``reject`` chars."""
    return sum(1 for _ in takewhile(lambda c: c not in reject, text))


def strpbrk(text: str, accept: str) -> Optional[str]:
    """Return the tail of ``text`` from the first char in ``accept``, or None."""
    index = strcspn(text, accept)
    return text[index:] if index < len(text) else None


def strncmp(left: str, right: str, count: int) -> int:
    """Compare at most ``count`` characters; negative, zero or positive."""
    if count <= 0:
        return 0
    for a, b in zip_longest(left[:count], right[:count], fillvalue="\0"):
        if a != b or a == "\0":
            return ord(a) - ord(b)
    return 0


def tokenize(text: str, separators: str) -> Iterator[str]:
    """Yield the non-empty tokens of ``text`` split on any separator char."""
    pos = 0
    length = len(text)
    while True:
        pos += strspn(text[pos:], separators)
        if pos >= length:
            return
        end = pos + strcspn(text[pos:], separators)
        yield text[pos:end]
        pos = end + 1


def strsplit(text: str, delim: str) -> list[str]:
    """Split on a single delimiter character, keeping empty fields."""
    if len(delim) != 1:
        raise ValueError("delimiter must be a single character")
    return text.split(delim)