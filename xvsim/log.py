"""Redo log that makes multi-block file system updates atomic.

Every update that may write the file system runs between
:meth:`Log.begin_trans` and :meth:`Log.commit_trans`, or inside
:meth:`Log.transaction`.  Only one transaction is active at a time.

Committing writes the logged blocks and a header naming their home
sectors. It then copies the blocks to those sectors and clears the log.
The on-disk log is a header block followed by one block per logged
sector.
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from .bcache import BufferCache
from .layout import BSIZE, Superblock
from .memdisk import Buf, BufFlag

LOGSIZE = 10

_WORD = struct.Struct("<i")


class LogError(Exception):
    """Raised on misuse of the log or a corrupted log header."""


class Log:
    """The single-transaction redo log of one device."""

    def __init__(self, cache: BufferCache, dev: int = 1, logsize: int = LOGSIZE) -> None:
        if _WORD.size * (1 + logsize) >= BSIZE:
            raise LogError("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.logsize = logsize
        self._cond = threading.Condition()
        self._busy = False
        self._sectors: list[int] = []

        with self._block(dev, 1) as buf:
            sb = Superblock.unpack(buf.data)
        self.start = sb.size - sb.nlog
        self.size = sb.nlog
        self._recover()

    @property
    def busy(self) -> bool:
        """Whether a transaction is active."""
        return self._busy

    @property
    def pending(self) -> tuple[int, ...]:
        """Home sectors of the blocks logged in the current transaction."""
        return tuple(self._sectors)

    @contextmanager
    def _block(self, dev: int, sector: int) -> Iterator[Buf]:
        buf = self.cache.bread(dev, sector)
        try:
            yield buf
        finally:
            self.cache.brelse(buf)

    def _install(self) -> None:
        """Copy committed blocks from the log to their home sectors."""
        for tail, sector in enumerate(self._sectors):
            with self._block(self.dev, self.start + tail + 1) as lbuf:
                with self._block(self.dev, sector) as dbuf:
                    dbuf.data[:] = lbuf.data
                    self.cache.bwrite(dbuf)

    def _read_head(self) -> None:
        with self._block(self.dev, self.start) as buf:
            (count,) = _WORD.unpack_from(buf.data, 0)
            if not 0 <= count <= self.logsize:
                raise LogError(f"corrupt log header: {count} blocks")
            self._sectors = list(struct.unpack_from(f"<{count}i", buf.data, _WORD.size))

    def _write_head(self) -> None:
        """Write the in-memory header to disk; this is the commit point."""
        with self._block(self.dev, self.start) as buf:
            _WORD.pack_into(buf.data, 0, len(self._sectors))
            struct.pack_into(
                f"<{len(self._sectors)}i", buf.data, _WORD.size, *self._sectors
            )
            self.cache.bwrite(buf)

    def _recover(self) -> None:
        self._read_head()
        self._install()
        self._sectors = []
        self._write_head()

    def begin_trans(self) -> None:
        """Start a transaction, waiting while another one is active."""
        with self._cond:
            while self._busy:
                self._cond.wait()
            self._busy = True

    def commit_trans(self) -> None:
        """Commit the logged blocks and end the transaction."""
        if self._sectors:
            self._write_head()
            self._install()
            self._sectors = []
            self._write_head()
        with self._cond:
            self._busy = False
            self._cond.notify_all()

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the body as one transaction, committing when it ends."""
        self.begin_trans()
        try:
            yield self
        finally:
            self.commit_trans()

    def log_write(self, buf: Buf) -> None:
        """Append the modified buffer *buf* to the log.

        The header is not written, so nothing is committed yet.  A sector
        logged twice in one transaction takes a single log slot.
        """
        if len(self._sectors) >= self.logsize or len(self._sectors) >= self.size - 1:
            raise LogError("too big a transaction")
        if not self._busy:
            raise LogError("write outside of trans")

        try:
            slot = self._sectors.index(buf.sector)
        except ValueError:
            slot = len(self._sectors)
            self._sectors.append(buf.sector)

        with self._block(buf.dev, self.start + slot + 1) as lbuf:
            lbuf.data[:] = buf.data
            self.cache.bwrite(lbuf)

        # Keep the cached copy from being recycled before it is installed.
        buf.flags |= BufFlag.DIRTY