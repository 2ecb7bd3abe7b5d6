"""Buffer cache of disk sectors with most-recently-used ordering.

Use :meth:`BufferCache.bread` to get a locked buffer for a sector,
:meth:`BufferCache.bwrite` after changing its data and
:meth:`BufferCache.brelse` when done with it.  Only one holder at a time
may use a buffer; other readers of the same sector wait.
"""

from __future__ import annotations

import threading

from .memdisk import Buf, BufFlag, MemDisk

NBUF = 10


class BufferCacheError(Exception):
    """Raised on misuse of the buffer cache or when it runs out of buffers."""


class BufferCache:
    """A fixed pool of sector buffers in front of a disk."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF) -> None:
        self.disk = disk
        self._cond = threading.Condition()
        # Index 0 is the most recently used buffer.
        self._mru: list[Buf] = [Buf() for _ in range(nbuf)]

    def _get(self, dev: int, sector: int) -> Buf:
        with self._cond:
            while True:
                cached = next(
                    (b for b in self._mru if b.dev == dev and b.sector == sector),
                    None,
                )
                if cached is None:
                    break
                if not cached.flags & BufFlag.BUSY:
                    cached.flags |= BufFlag.BUSY
                    return cached
                self._cond.wait()

            for b in reversed(self._mru):
                if not b.flags & (BufFlag.BUSY | BufFlag.DIRTY):
                    b.dev = dev
                    b.sector = sector
                    b.flags = BufFlag.BUSY
                    return b

        raise BufferCacheError("bget: no buffers")

    def bread(self, dev: int, sector: int) -> Buf:
        """Return a busy buffer holding the contents of *sector*."""
        buf = self._get(dev, sector)
        if not buf.flags & BufFlag.VALID:
            self.disk.rw(buf)
        return buf

    def bwrite(self, buf: Buf) -> None:
        """Write a busy buffer's contents to disk."""
        if not buf.flags & BufFlag.BUSY:
            raise BufferCacheError("bwrite")
        buf.flags |= BufFlag.DIRTY
        self.disk.rw(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a busy buffer and make it the most recently used."""
        if not buf.flags & BufFlag.BUSY:
            raise BufferCacheError("brelse")
        with self._cond:
            self._mru.remove(buf)
            self._mru.insert(0, buf)
            buf.flags &= ~BufFlag.BUSY
            self._cond.notify_all()