"""Disk buffers and an in-memory block device."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

SECTOR_SIZE = 512


class BufFlag(enum.IntFlag):
    """State bits of a disk buffer."""

    BUSY = 0x1  # held by some process
    VALID = 0x2  # data has been read from disk
    DIRTY = 0x4  # data must be written to disk


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk sector."""

    dev: int = -1
    sector: int = 0
    flags: BufFlag = BufFlag(0)
    data: bytearray = field(default_factory=lambda: bytearray(SECTOR_SIZE))


class DiskError(Exception):
    """Raised on an invalid disk request."""


class MemDisk:
    """A disk whose sectors live in a byte array."""

    def __init__(self, image: bytes | bytearray, dev: int = 1) -> None:
        self._image = bytearray(image)
        self.dev = dev
        self.nsectors = len(self._image) // SECTOR_SIZE

    @property
    def image(self) -> bytes:
        """The current disk contents."""
        return bytes(self._image)

    def rw(self, buf: Buf) -> None:
        """Sync *buf* with the disk.

        A dirty buffer is written and marked clean; otherwise the sector is
        read.  Either way the buffer ends up valid.
        """
        if not buf.flags & BufFlag.BUSY:
            raise DiskError("iderw: buf not busy")
        if buf.flags & (BufFlag.VALID | BufFlag.DIRTY) == BufFlag.VALID:
            raise DiskError("iderw: nothing to do")
        if buf.dev != self.dev:
            raise DiskError(f"iderw: request not for disk {self.dev}")
        if not 0 <= buf.sector < self.nsectors:
            raise DiskError("iderw: sector out of range")

        start = buf.sector * SECTOR_SIZE
        window = slice(start, start + SECTOR_SIZE)
        if buf.flags & BufFlag.DIRTY:
            buf.flags &= ~BufFlag.DIRTY
            self._image[window] = buf.data
        else:
            buf.data[:] = self._image[window]
        buf.flags |= BufFlag.VALID