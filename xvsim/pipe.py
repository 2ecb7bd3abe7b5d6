"""In-kernel pipes: a bounded byte buffer shared by a reader and a writer."""

from __future__ import annotations

import threading
from collections.abc import Callable

PIPESIZE = 512


class PipeError(Exception):
    """Raised when a pipe operation cannot complete."""


class Pipe:
    """A bounded FIFO between one read end and one write end.

    Writers block while the buffer is full and readers block while it is
    empty and the write end is still open.
    """

    def __init__(self, killed: Callable[[], bool] | None = None) -> None:
        self._cond = threading.Condition()
        self._data = bytearray(PIPESIZE)
        self._nread = 0
        self._nwrite = 0
        self._killed = killed
        self.readopen = True
        self.writeopen = True

    def __len__(self) -> int:
        """Number of bytes waiting to be read."""
        with self._cond:
            return self._nwrite - self._nread

    @property
    def closed(self) -> bool:
        """Whether both ends have been closed."""
        return not self.readopen and not self.writeopen

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Write all of *data*, waiting for room; return its length.

        Raises PipeError when the buffer is full and the read end is closed.
        """
        payload = bytes(data)
        with self._cond:
            for byte in payload:
                while self._nwrite == self._nread + PIPESIZE:
                    if not self.readopen:
                        raise PipeError("pipewrite: read end closed")
                    self._cond.notify_all()
                    self._cond.wait()
                self._data[self._nwrite % PIPESIZE] = byte
                self._nwrite += 1
            self._cond.notify_all()
        return len(payload)

    def read(self, n: int) -> bytes:
        """Read up to *n* bytes, waiting while the pipe is empty and open.

        Returns b"" once the pipe is empty and the write end is closed.
        """
        with self._cond:
            while self._nread == self._nwrite and self.writeopen:
                if self._killed is not None and self._killed():
                    raise PipeError("piperead: reader killed")
                self._cond.wait()

            out = bytearray()
            while len(out) < n and self._nread != self._nwrite:
                out.append(self._data[self._nread % PIPESIZE])
                self._nread += 1
            self._cond.notify_all()
        return bytes(out)

    def close(self, writable: bool) -> bool:
        """Close the write end if *writable*, else the read end.

        Returns True when both ends are now closed.
        """
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()
            return self.closed