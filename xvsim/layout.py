"""On-disk file system format: super block, inodes and directory entries.

Block 0 is unused, block 1 holds the super block, inodes follow from
block 2, then the free bitmap, the data blocks and the log blocks.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<4I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

IPB = BSIZE // _DINODE.size  # inodes per block
BPB = BSIZE * 8  # bitmap bits per block


class InodeType(enum.IntEnum):
    """Kinds of file an inode can describe."""

    DIR = 1
    FILE = 2
    DEV = 3


def iblock(inum: int) -> int:
    """Block holding inode *inum*."""
    return inum // IPB + 2


def bblock(b: int, ninodes: int) -> int:
    """Bitmap block holding the bit for block *b*."""
    return b // BPB + ninodes // IPB + 3


@dataclass
class Superblock:
    """File system super block."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0

    SIZE = _SUPERBLOCK.size

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(self.size, self.nblocks, self.ninodes, self.nlog)

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> Superblock:
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class DiskInode:
    """Inode as stored on disk."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    SIZE = _DINODE.size

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode has exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> DiskInode:
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """Directory entry; an inum of 0 marks a free slot."""

    inum: int = 0
    name: str = ""

    SIZE = _DIRENT.size

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name.encode("utf-8")[:DIRSIZ])

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> Dirent:
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum, raw.split(b"\0", 1)[0].decode("utf-8", errors="replace"))


@dataclass
class Stat:
    """File metadata reported to callers."""

    type: int
    dev: int
    ino: int
    nlink: int
    size: int