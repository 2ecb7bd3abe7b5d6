"""Process table: allocation, fork, exit, wait, sleep and wakeup.

Context switches are not simulated.  :meth:`ProcTable.runnable` plays the
scheduler's role: it hands out each runnable process in table order and
marks it running.  The caller then lets it give up the CPU through
:meth:`ProcTable.yield_cpu`, :meth:`ProcTable.sleep` or
:meth:`ProcTable.exit`.
"""

from __future__ import annotations

import copy
import enum
import threading
from collections.abc import Hashable, Iterator
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from .syscall import USR_MODE, TrapFrame

NPROC = 64
NOFILE = 16
PAGE_SIZE = 4096
_NAME_LEN = 16


class ProcState(enum.IntEnum):
    """Life-cycle states of a process."""

    UNUSED = 0
    EMBRYO = 1
    SLEEPING = 2
    RUNNABLE = 3
    RUNNING = 4
    ZOMBIE = 5


_STATE_NAMES = {
    ProcState.UNUSED: "unused",
    ProcState.EMBRYO: "embryo",
    ProcState.SLEEPING: "sleep ",
    ProcState.RUNNABLE: "runble",
    ProcState.RUNNING: "run   ",
    ProcState.ZOMBIE: "zombie",
}


class ProcError(Exception):
    """Raised on an impossible process-table operation."""


@dataclass(eq=False)
class Proc:
    """Per-process state."""

    pid: int = 0
    state: ProcState = ProcState.UNUSED
    parent: Proc | None = None
    killed: bool = False
    chan: Hashable | None = None
    name: str = ""
    sz: int = 0
    syscall_count: int = 0
    kstack: int | None = None
    tf: TrapFrame = field(default_factory=TrapFrame)
    ofile: list[Any] = field(default_factory=lambda: [None] * NOFILE)
    cwd: Any = None


class _ProcInfo(NamedTuple):
    pid: int
    ppid: int
    name: str
    state: ProcState
    syscall_count: int


def _clear(p: Proc) -> None:
    p.pid = 0
    p.state = ProcState.UNUSED
    p.parent = None
    p.killed = False
    p.chan = None
    p.name = ""
    p.sz = 0
    p.syscall_count = 0
    p.kstack = None
    p.tf = TrapFrame()
    p.ofile = [None] * NOFILE
    p.cwd = None


class ProcTable:
    """A fixed table of process slots.

    Optional collaborators may be attached after construction:
    ``allocator`` (with ``alloc_page``/``free_page``) provides kernel
    stacks, ``files`` (with ``dup``/``close``) manages open files and
    ``fs`` (with ``namei``/``idup``/``iput``) manages working directories.
    """

    def __init__(self, nproc: int = NPROC) -> None:
        self._lock = threading.RLock()
        self._procs = [Proc() for _ in range(nproc)]
        self._nextpid = 1
        self.initproc: Proc | None = None
        self.current: Proc | None = None
        self.allocator: Any = None
        self.files: Any = None
        self.fs: Any = None

    def __iter__(self) -> Iterator[Proc]:
        return iter(self._procs)

    def allocproc(self) -> Proc | None:
        """Claim an unused slot as an embryo; None when none is free."""
        with self._lock:
            p = next((q for q in self._procs if q.state is ProcState.UNUSED), None)
            if p is None:
                return None
            _clear(p)
            p.state = ProcState.EMBRYO
            p.pid = self._nextpid
            self._nextpid += 1

        if self.allocator is not None:
            kstack = self.allocator.alloc_page()
            if kstack is None:
                p.state = ProcState.UNUSED
                return None
            p.kstack = kstack
        return p

    def userinit(self) -> Proc:
        """Set up the first user process, ready to run at address 0."""
        p = self.allocproc()
        if p is None:
            raise ProcError("userinit: no free process slot")
        self.initproc = p
        p.sz = PAGE_SIZE
        p.tf = TrapFrame(spsr=USR_MODE, sp_usr=PAGE_SIZE, lr_usr=0, pc=0)
        p.name = "initcode"
        if self.fs is not None:
            p.cwd = self.fs.namei("/")
        p.state = ProcState.RUNNABLE
        return p

    def fork(self, parent: Proc) -> Proc:
        """Create a runnable copy of *parent*; the child sees 0 in r0."""
        np = self.allocproc()
        if np is None:
            raise ProcError("fork: no free process slot")
        np.sz = parent.sz
        np.parent = parent
        np.tf = copy.copy(parent.tf)
        np.tf.r0 = 0
        if self.files is not None:
            np.ofile = [
                self.files.dup(f) if f is not None else None for f in parent.ofile
            ]
        if parent.cwd is not None:
            np.cwd = self.fs.idup(parent.cwd) if self.fs is not None else parent.cwd
        np.name = parent.name[: _NAME_LEN - 1]
        np.state = ProcState.RUNNABLE
        return np

    def _wakeup1(self, chan: Hashable | None) -> None:
        for p in self._procs:
            if p.state is ProcState.SLEEPING and p.chan == chan:
                p.state = ProcState.RUNNABLE
                p.chan = None

    def exit(self, p: Proc) -> None:
        """Close *p*'s files and leave it a zombie until its parent waits."""
        if p is self.initproc:
            raise ProcError("init exiting")

        for fd, f in enumerate(p.ofile):
            if f is not None:
                if self.files is not None:
                    self.files.close(f)
                p.ofile[fd] = None
        if p.cwd is not None and self.fs is not None:
            self.fs.iput(p.cwd)
        p.cwd = None

        with self._lock:
            if p.parent is not None:
                self._wakeup1(p.parent)
            for child in self._procs:
                if child.parent is p:
                    child.parent = self.initproc
                    if child.state is ProcState.ZOMBIE:
                        self._wakeup1(self.initproc)
            p.state = ProcState.ZOMBIE

    def wait(self, parent: Proc) -> int | None:
        """Reap a zombie child of *parent* and return its pid.

        With living children only, *parent* is put to sleep and None is
        returned; call again once it has been woken.  Raises
        ChildProcessError when there are no children or *parent* was killed.
        """
        with self._lock:
            havekids = False
            for p in self._procs:
                if p.parent is not parent:
                    continue
                havekids = True
                if p.state is ProcState.ZOMBIE:
                    pid = p.pid
                    if p.kstack is not None and self.allocator is not None:
                        self.allocator.free_page(p.kstack)
                    _clear(p)
                    return pid

            if not havekids or parent.killed:
                raise ChildProcessError("wait: no children to wait for")
            self.sleep(parent, parent)
            return None

    def kill(self, pid: int) -> None:
        """Mark process *pid* killed, waking it if it sleeps."""
        with self._lock:
            for p in self._procs:
                if p.pid == pid and p.state is not ProcState.UNUSED:
                    p.killed = True
                    if p.state is ProcState.SLEEPING:
                        p.state = ProcState.RUNNABLE
                        p.chan = None
                    return
        raise ProcessLookupError(f"kill: no process {pid}")

    def sleep(self, p: Proc | None, chan: Hashable) -> None:
        """Put *p* to sleep on *chan*."""
        if p is None:
            raise ProcError("sleep")
        with self._lock:
            p.chan = chan
            p.state = ProcState.SLEEPING

    def wakeup(self, chan: Hashable) -> None:
        """Make every process sleeping on *chan* runnable."""
        with self._lock:
            self._wakeup1(chan)

    def yield_cpu(self, p: Proc) -> None:
        """Give up the CPU for one scheduling round."""
        with self._lock:
            p.state = ProcState.RUNNABLE

    def runnable(self) -> Iterator[Proc]:
        """One scheduler pass: mark each runnable process running and yield it.

        Before the next one is taken, the yielded process must have left the
        running state; otherwise ProcError is raised.
        """
        for p in self._procs:
            if p.state is not ProcState.RUNNABLE:
                continue
            p.state = ProcState.RUNNING
            self.current = p
            try:
                yield p
            finally:
                self.current = None
            if p.state is ProcState.RUNNING:
                raise ProcError("sched running")

    def procdump(self) -> list[str]:
        """One line per live process: pid, state and name."""
        return [
            f"{p.pid} {_STATE_NAMES.get(p.state, '???')} {p.name}"
            for p in self._procs
            if p.state is not ProcState.UNUSED
        ]

    def collect_procs(self, limit: int) -> list[_ProcInfo]:
        """Summaries of at most *limit* live processes, in table order."""
        out: list[_ProcInfo] = []
        with self._lock:
            for p in self._procs:
                if len(out) >= limit:
                    break
                if p.state is ProcState.UNUSED:
                    continue
                out.append(
                    _ProcInfo(
                        pid=p.pid,
                        ppid=p.parent.pid if p.parent is not None else 0,
                        name=p.name[: _NAME_LEN - 1],
                        state=p.state,
                        syscall_count=p.syscall_count,
                    )
                )
        return out