"""Open file table: reference-counted handles on inodes and pipes."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass

from .fs import FileSystem, FileSystemError, Inode
from .layout import BSIZE, Stat
from .pipe import Pipe, PipeError

NFILE = 100
CONSOLE = 1  # major device number of the console


class FileKind(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed pool of open files."""

    def __init__(self, fs: FileSystem, nfile: int = NFILE) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [File() for _ in range(nfile)]

    def alloc(self) -> File | None:
        """Take a free file with one reference; None when the table is full."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.kind = FileKind.NONE
                    f.readable = f.writable = False
                    f.pipe = None
                    f.ip = None
                    f.off = 0
                    f.ref = 1
                    return f
        return None

    def dup(self, f: File) -> File:
        """Take another reference to *f*."""
        with self._lock:
            if f.ref < 1:
                raise ValueError("filedup")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release the pipe or inode with the last one."""
        with self._lock:
            if f.ref < 1:
                raise ValueError("fileclose")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
            f.kind = FileKind.NONE
            f.pipe = None
            f.ip = None

        if kind is FileKind.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileKind.INODE and ip is not None:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind *f*."""
        if f.kind is not FileKind.INODE or f.ip is None:
            raise ValueError("filestat: not an inode")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to *n* bytes from *f*, advancing its offset."""
        if not f.readable:
            raise PermissionError("fileread: not readable")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE and f.ip is not None:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise ValueError("fileread")

    def write(self, f: File, data: bytes | bytearray | memoryview) -> int:
        """Write *data* to *f*, advancing its offset; return its length.

        Inode writes go a few blocks per transaction so that no transaction
        outgrows the log.
        """
        if not f.writable:
            raise PermissionError("filewrite: not writable")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE and f.ip is not None:
            payload = bytes(data)
            limit = ((self.fs.log.logsize - 1 - 1 - 2) // 2) * BSIZE
            done = 0
            while done < len(payload):
                chunk = payload[done : done + limit]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        written = self.fs.writei(f.ip, chunk, f.off)
                        f.off += written
                    finally:
                        self.fs.iunlock(f.ip)
                if written != len(chunk):
                    raise FileSystemError("short filewrite")
                done += written
            return len(payload)
        raise ValueError("filewrite")

    def pipealloc(self) -> tuple[File, File]:
        """Create a pipe; return its read end and its write end."""
        reader = self.alloc()
        writer = self.alloc() if reader is not None else None
        if reader is None or writer is None:
            for f in (reader, writer):
                if f is not None:
                    self.close(f)
            raise PipeError("pipealloc: file table full")

        pipe = Pipe()
        reader.kind = FileKind.PIPE
        reader.readable, reader.writable = True, False
        reader.pipe = pipe
        writer.kind = FileKind.PIPE
        writer.readable, writer.writable = False, True
        writer.pipe = pipe
        return reader, writer