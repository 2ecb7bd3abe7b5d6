"""Byte-string helpers with NUL-terminated string semantics."""

from __future__ import annotations

from itertools import chain, islice, repeat

BytesLike = bytes | bytearray | memoryview | str


def _as_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _cstr(value: BytesLike) -> bytes:
    """Return the bytes of *value* up to, not including, the first NUL."""
    data = _as_bytes(value)
    return data.split(b"\0", 1)[0]


def strncmp(p: BytesLike, q: BytesLike, n: int) -> int:
    """Compare at most *n* characters of two NUL-terminated strings.

    The end of a sequence counts as a NUL.  The result is the difference of
    the first unequal unsigned bytes, or 0.
    """
    left = chain(_as_bytes(p), repeat(0))
    right = chain(_as_bytes(q), repeat(0))
    for a, b in islice(zip(left, right), max(n, 0)):
        if a != b or a == 0:
            return a - b
    return 0


def strncpy(src: BytesLike, n: int) -> bytes:
    """Return exactly *n* bytes: *src* up to its NUL, padded with NULs.

    Like the classic routine, the result is not NUL-terminated when the
    source string is *n* bytes or longer.
    """
    if n <= 0:
        return b""
    text = _cstr(src)[:n]
    return text + bytes(n - len(text))


def safestrcpy(src: BytesLike, n: int) -> bytes:
    """Return the string *src* cut to fit a buffer of *n* bytes with its NUL."""
    if n <= 0:
        return b""
    return _cstr(src)[: n - 1]


def memcmp(a: BytesLike, b: BytesLike, n: int) -> int:
    """Compare the first *n* bytes of *a* and *b*."""
    left = _as_bytes(a)
    right = _as_bytes(b)
    if n < 0 or len(left) < n or len(right) < n:
        raise ValueError("memcmp: length exceeds the given buffers")
    for x, y in zip(left[:n], right[:n]):
        if x != y:
            return x - y
    return 0