"""System call numbers, trap frames, argument fetching and dispatch.

The call number arrives in r0 and up to four arguments in r1 to r4.  The
result goes back in r0, except for exec, whose r0 carries argc.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

# cpsr/spsr bits
NO_INT = 0xC0
DIS_INT = 0x80

# processor modes
MODE_MASK = 0x1F
USR_MODE = 0x10
FIQ_MODE = 0x11
IRQ_MODE = 0x12
SVC_MODE = 0x13
ABT_MODE = 0x17
UND_MODE = 0x1B
SYS_MODE = 0x1F

_WORD = 0xFFFFFFFF
_MAX_ARGS = 4


class SysCall(enum.IntEnum):
    """System call numbers."""

    FORK = 1
    EXIT = 2
    WAIT = 3
    PIPE = 4
    READ = 5
    KILL = 6
    EXEC = 7
    FSTAT = 8
    CHDIR = 9
    DUP = 10
    GETPID = 11
    SBRK = 12
    SLEEP = 13
    UPTIME = 14
    OPEN = 15
    WRITE = 16
    MKNOD = 17
    UNLINK = 18
    LINK = 19
    MKDIR = 20
    CLOSE = 21
    GETPROCS = 22


@dataclass
class TrapFrame:
    """Registers saved on entry to the kernel."""

    sp_usr: int = 0
    lr_usr: int = 0
    r14_svc: int = 0
    spsr: int = 0
    r0: int = 0
    r1: int = 0
    r2: int = 0
    r3: int = 0
    r4: int = 0
    r5: int = 0
    r6: int = 0
    r7: int = 0
    r8: int = 0
    r9: int = 0
    r10: int = 0
    r11: int = 0
    r12: int = 0
    pc: int = 0


class _Process(Protocol):
    pid: int
    name: str
    syscall_count: int
    tf: TrapFrame


def argint(frame: TrapFrame, n: int) -> int:
    """The *n*-th (from 0) system call argument as a signed 32-bit integer."""
    if not 0 <= n < _MAX_ARGS:
        raise ValueError("too many system call parameters")
    word = getattr(frame, f"r{n + 1}") & _WORD
    return word - (1 << 32) if word & 0x80000000 else word


Handler = Callable[[_Process], int]


class SyscallTable:
    """Maps system call numbers to handlers and runs them."""

    def __init__(self, log: Callable[[str], None] | None = None) -> None:
        self._log = log
        self._handlers: dict[int, Handler] = {}

    def register(self, num: int, handler: Handler) -> None:
        """Install *handler* for system call *num*."""
        try:
            call = SysCall(num)
        except ValueError:
            raise ValueError(f"unknown system call number {num}") from None
        self._handlers[call] = handler

    def dispatch(self, proc: _Process) -> int:
        """Run the call named by r0 of *proc*'s trap frame; return its result.

        An unknown call is reported through the log and yields -1.
        """
        num = argint_word = proc.tf.r0 & _WORD
        handler = self._handlers.get(num)
        if handler is None:
            if self._log is not None:
                self._log(f"{proc.pid} {proc.name}: unknown sys call {argint_word}")
            proc.tf.r0 = -1 & _WORD
            return -1

        proc.syscall_count += 1
        ret = handler(proc)
        if num != SysCall.EXEC:
            proc.tf.r0 = ret & _WORD
        return ret