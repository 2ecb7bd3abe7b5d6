"""File system: block allocation, inodes, directories and path names.

Inodes are cached in memory.  :meth:`FileSystem.iget` takes a reference
without reading the disk; :meth:`FileSystem.ilock` locks the inode and
loads it; :meth:`FileSystem.iunlock` and :meth:`FileSystem.iput` undo
those steps.  Updates must run inside a transaction of the log.
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from .bcache import BufferCache
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dirent,
    DiskInode,
    InodeType,
    Stat,
    Superblock,
    bblock,
    iblock,
)
from .log import Log
from .memdisk import Buf
from .strings import strncmp

ROOTDEV = 1
NINODE = 50

_ADDR = struct.Struct("<I")


class FileSystemError(Exception):
    """Raised on invalid file system requests or corrupted state."""


class _Device(Protocol):
    def read(self, n: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode with its cache bookkeeping."""

    dev: int
    inum: int
    ref: int = 0
    busy: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


def skipelem(path: str) -> tuple[str, str] | None:
    """Split the first element off *path*.

    Returns the element, cut to DIRSIZ characters, and the rest of the path
    without leading slashes; None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    name, _, rest = path.partition("/")
    return name[:DIRSIZ], rest.lstrip("/")


def namecmp(s: str, t: str) -> int:
    """Compare two directory entry names."""
    return strncmp(s, t, DIRSIZ)


class FileSystem:
    """The file system on one device."""

    def __init__(
        self,
        cache: BufferCache,
        log: Log,
        dev: int = ROOTDEV,
        ninode: int = NINODE,
        devsw: Mapping[int, _Device] | None = None,
    ) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devsw: Mapping[int, _Device] = devsw if devsw is not None else {}
        self._cond = threading.Condition()
        self._inodes = [Inode(dev=0, inum=0) for _ in range(ninode)]

    @contextmanager
    def _block(self, sector: int) -> Iterator[Buf]:
        buf = self.cache.bread(self.dev, sector)
        try:
            yield buf
        finally:
            self.cache.brelse(buf)

    def readsb(self) -> Superblock:
        """Read the super block."""
        with self._block(1) as buf:
            return Superblock.unpack(buf.data)

    # -- blocks -------------------------------------------------------

    def _bzero(self, bno: int) -> None:
        with self._block(bno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.log_write(buf)

    def _balloc(self) -> int:
        sb = self.readsb()
        for base in range(0, sb.size, BPB):
            with self._block(bblock(base, sb.ninodes)) as buf:
                free = next(
                    (
                        bi
                        for bi in range(min(BPB, sb.size - base))
                        if not buf.data[bi // 8] & (1 << (bi % 8))
                    ),
                    None,
                )
                if free is not None:
                    buf.data[free // 8] |= 1 << (free % 8)
                    self.log.log_write(buf)
            if free is not None:
                self._bzero(base + free)
                return base + free
        raise FileSystemError("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        sb = self.readsb()
        with self._block(bblock(b, sb.ninodes)) as buf:
            bi = b % BPB
            mask = 1 << (bi % 8)
            if not buf.data[bi // 8] & mask:
                raise FileSystemError("freeing free block")
            buf.data[bi // 8] &= ~mask & 0xFF
            self.log.log_write(buf)

    # -- inodes -------------------------------------------------------

    @staticmethod
    def _dinode_offset(inum: int) -> int:
        return (inum % IPB) * DiskInode.SIZE

    def ialloc(self, type: int) -> Inode:
        """Allocate a fresh inode of *type* on disk and return it unlocked."""
        sb = self.readsb()
        for inum in range(1, sb.ninodes):
            offset = self._dinode_offset(inum)
            with self._block(iblock(inum)) as buf:
                dinode = DiskInode.unpack(buf.data[offset:])
                if dinode.type == 0:
                    fresh = DiskInode(type=type).pack()
                    buf.data[offset : offset + DiskInode.SIZE] = fresh
                    self.log.log_write(buf)
                    allocated = True
                else:
                    allocated = False
            if allocated:
                return self.iget(inum)
        raise FileSystemError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy a modified in-memory inode to disk."""
        offset = self._dinode_offset(ip.inum)
        dinode = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self._block(iblock(ip.inum)) as buf:
            buf.data[offset : offset + DiskInode.SIZE] = dinode.pack()
            self.log.log_write(buf)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode *inum*, neither locked nor read."""
        with self._cond:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise FileSystemError("iget: no inodes")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.busy = False
            empty.valid = False
            return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to *ip*."""
        with self._cond:
            ip.ref += 1
        return ip

    def ilock(self, ip: Inode | None) -> None:
        """Lock *ip*, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FileSystemError("ilock")
        with self._cond:
            while ip.busy:
                self._cond.wait()
            ip.busy = True

        if not ip.valid:
            offset = self._dinode_offset(ip.inum)
            with self._block(iblock(ip.inum)) as buf:
                dinode = DiskInode.unpack(buf.data[offset:])
            ip.type = dinode.type
            ip.major = dinode.major
            ip.minor = dinode.minor
            ip.nlink = dinode.nlink
            ip.size = dinode.size
            ip.addrs = list(dinode.addrs)
            ip.valid = True
            if ip.type == 0:
                raise FileSystemError("ilock: no type")

    def iunlock(self, ip: Inode | None) -> None:
        """Unlock *ip*."""
        if ip is None or not ip.busy or ip.ref < 1:
            raise FileSystemError("iunlock")
        with self._cond:
            ip.busy = False
            self._cond.notify_all()

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk when it was the last link."""
        with self._cond:
            free = ip.ref == 1 and ip.valid and ip.nlink == 0
            if free:
                if ip.busy:
                    raise FileSystemError("iput busy")
                ip.busy = True
        if free:
            self._itrunc(ip)
            ip.type = 0
            self.iupdate(ip)
        with self._cond:
            if free:
                ip.busy = False
                ip.valid = False
                self._cond.notify_all()
            ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock *ip*, then drop the reference."""
        self.iunlock(ip)
        self.iput(ip)

    # -- inode content ------------------------------------------------

    def _bmap(self, ip: Inode, bn: int) -> int:
        """Disk block of block *bn* of *ip*, allocating it when missing."""
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]

        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self._block(ip.addrs[NDIRECT]) as buf:
                (addr,) = _ADDR.unpack_from(buf.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(buf.data, bn * _ADDR.size, addr)
                    self.log.log_write(buf)
            return addr

        raise FileSystemError("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i, addr in enumerate(ip.addrs[:NDIRECT]):
            if addr:
                self._bfree(addr)
                ip.addrs[i] = 0

        if ip.addrs[NDIRECT]:
            with self._block(ip.addrs[NDIRECT]) as buf:
                table = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in table:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0

        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of *ip*."""
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode) -> _Device:
        device = self.devsw.get(ip.major)
        if device is None:
            raise FileSystemError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to *n* bytes of *ip* from offset *off*."""
        if ip.type == InodeType.DEV:
            device = self._device(ip)
            self.iunlock(ip)
            try:
                return bytes(device.read(n))
            finally:
                self.ilock(ip)

        if off < 0 or n < 0 or off > ip.size:
            raise FileSystemError("readi: offset out of range")
        n = min(n, ip.size - off)

        out = bytearray()
        pos = off
        while len(out) < n:
            start = pos % BSIZE
            count = min(n - len(out), BSIZE - start)
            with self._block(self._bmap(ip, pos // BSIZE)) as buf:
                out += buf.data[start : start + count]
            pos += count
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write *data* to *ip* at offset *off*; return the count written."""
        if ip.type == InodeType.DEV:
            device = self._device(ip)
            self.iunlock(ip)
            try:
                return device.write(bytes(data))
            finally:
                self.ilock(ip)

        n = len(data)
        if off < 0 or off > ip.size:
            raise FileSystemError("writei: offset out of range")
        if off + n > MAXFILE * BSIZE:
            raise FileSystemError("writei: file too large")

        done = 0
        pos = off
        while done < n:
            start = pos % BSIZE
            count = min(n - done, BSIZE - start)
            with self._block(self._bmap(ip, pos // BSIZE)) as buf:
                buf.data[start : start + count] = data[done : done + count]
                self.log.log_write(buf)
            done += count
            pos += count

        if n > 0 and pos > ip.size:
            ip.size = pos
            self.iupdate(ip)
        return n

    # -- directories --------------------------------------------------

    def _entries(self, dp: Inode) -> Iterator[tuple[int, Dirent]]:
        for off in range(0, dp.size, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise FileSystemError("dirlink read")
            yield off, Dirent.unpack(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find *name* in directory *dp*; return its inode and entry offset."""
        if dp.type != InodeType.DIR:
            raise FileSystemError("dirlookup not DIR")
        for off, de in self._entries(dp):
            if de.inum != 0 and namecmp(name, de.name) == 0:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (*name*, *inum*) to directory *dp*."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileSystemError(f"dirlink: {name!r} already exists")

        off = next((o for o, de in self._entries(dp) if de.inum == 0), dp.size)
        entry = Dirent(inum=inum, name=name).pack()
        if self.writei(dp, entry, off) != Dirent.SIZE:
            raise FileSystemError("dirlink")

    # -- path names ---------------------------------------------------

    def _namex(
        self, path: str, parent: bool, cwd: Inode | None
    ) -> tuple[Inode, str] | None:
        if path.startswith("/"):
            ip = self.iget(ROOTINO)
        elif cwd is None:
            raise FileSystemError("relative path without a current directory")
        else:
            ip = self.idup(cwd)

        name = ""
        while (elem := skipelem(path)) is not None:
            name, path = elem
            self.ilock(ip)
            if ip.type != InodeType.DIR:
                self.iunlockput(ip)
                return None
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self.iunlockput(ip)
                return None
            self.iunlockput(ip)
            ip = found[0]

        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Inode named by *path*, or None when it does not exist."""
        found = self._namex(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str] | None:
        """Parent directory of *path* and the final element of the path."""
        return self._namex(path, True, cwd)