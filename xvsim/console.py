"""Console: formatted output and line-edited keyboard input."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

INPUT_BUF = 512
BACKSPACE = 0x100


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


_CTRL_D = _ctrl("D")
_CTRL_H = _ctrl("H")
_CTRL_P = _ctrl("P")
_CTRL_U = _ctrl("U")
_DEL = 0x7F
_NL = ord("\n")
_CR = ord("\r")


def format_message(fmt: str, *args: object) -> str:
    """Expand %d, %x, %p, %s and %% in *fmt*.

    Integers are treated as 32-bit words: %d signed, %x and %p unsigned hex.
    Unknown sequences are copied as they are; a lone trailing % is dropped.
    """
    values = iter(args)
    out: list[str] = []

    def take() -> object:
        try:
            return next(values)
        except StopIteration:
            raise TypeError("format_message: not enough arguments") from None

    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            word = int(take()) & 0xFFFFFFFF
            out.append(str(word - (1 << 32) if word & 0x80000000 else word))
        elif spec in "xp":
            out.append(format(int(take()) & 0xFFFFFFFF, "x"))
        elif spec == "s":
            value = take()
            if value is None:
                out.append("(null)")
            elif isinstance(value, (bytes, bytearray)):
                out.append(bytes(value).split(b"\0", 1)[0].decode("latin-1"))
            else:
                out.append(str(value))
        elif spec == "%":
            out.append("%")
        else:
            out.append("%" + spec)
    return "".join(out)


class Console:
    """A console writing through *putc* and buffering typed input."""

    def __init__(
        self,
        putc: Callable[[int], None],
        procdump: Callable[[], None] | None = None,
    ) -> None:
        self._putc = putc
        self._procdump = procdump
        self._out_lock = threading.RLock()
        self._input = threading.Condition()
        self._buf = bytearray(INPUT_BUF)
        self._r = 0  # read index
        self._w = 0  # write index
        self._e = 0  # edit index

    def _consputc(self, c: int) -> None:
        if c == BACKSPACE:
            for ch in b"\b \b":
                self._putc(ch)
        else:
            self._putc(c)

    def cprintf(self, fmt: str, *args: object) -> None:
        """Format and print a message."""
        text = format_message(fmt, *args)
        with self._out_lock:
            for byte in text.encode("utf-8"):
                self._consputc(byte)

    def intr(self, chars: Iterable[int] | str | bytes) -> None:
        """Handle typed characters: editing keys, echo and line completion."""
        codes = (ord(ch) for ch in chars) if isinstance(chars, str) else chars
        with self._input:
            for c in codes:
                if c == _CTRL_P:
                    if self._procdump is not None:
                        self._procdump()
                elif c == _CTRL_U:
                    while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != _NL:
                        self._e -= 1
                        self._consputc(BACKSPACE)
                elif c in (_CTRL_H, _DEL):
                    if self._e != self._w:
                        self._e -= 1
                        self._consputc(BACKSPACE)
                elif c != 0 and self._e - self._r < INPUT_BUF:
                    c = _NL if c == _CR else c
                    self._buf[self._e % INPUT_BUF] = c & 0xFF
                    self._e += 1
                    self._consputc(c)
                    if c in (_NL, _CTRL_D) or self._e == self._r + INPUT_BUF:
                        self._w = self._e
                        self._input.notify_all()

    def read(self, n: int) -> bytes:
        """Read up to *n* bytes of completed input, stopping after a newline.

        Waits until a line is available.  ^D ends the read; typed at the
        start of a read it yields b"".
        """
        out = bytearray()
        with self._input:
            while len(out) < n:
                while self._r == self._w:
                    self._input.wait()
                c = self._buf[self._r % INPUT_BUF]
                self._r += 1
                if c == _CTRL_D:
                    if out:
                        # Leave ^D for the next read so it returns b"".
                        self._r -= 1
                    break
                out.append(c)
                if c == _NL:
                    break
        return bytes(out)

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Print raw bytes; return their count."""
        payload = bytes(data)
        with self._out_lock:
            for byte in payload:
                self._consputc(byte)
        return len(payload)