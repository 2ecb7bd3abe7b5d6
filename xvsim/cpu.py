"""Processor status bits, interrupt nesting and spin locks.

Only one processor is simulated.  Its status register decides whether
interrupts are enabled.  Spin locks disable interrupts while they are held,
and the disabling nests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .syscall import (
    ABT_MODE,
    DIS_INT,
    FIQ_MODE,
    IRQ_MODE,
    MODE_MASK,
    NO_INT,
    SVC_MODE,
    SYS_MODE,
    UND_MODE,
    USR_MODE,
)

_WORD = 0xFFFFFFFF


class CpuMode(enum.IntEnum):
    """Processor modes, as encoded in the low bits of the status register."""

    USR = USR_MODE
    FIQ = FIQ_MODE
    IRQ = IRQ_MODE
    SVC = SVC_MODE
    ABT = ABT_MODE
    UND = UND_MODE
    SYS = SYS_MODE


class CpuError(Exception):
    """Raised when interrupt nesting or locking is misused."""


@dataclass
class Cpu:
    """A processor with a status register and a pushcli nesting depth."""

    id: int = 0
    cpsr: int = SVC_MODE | NO_INT
    ncli: int = 0
    intena: bool = False

    @property
    def mode(self) -> CpuMode:
        """The current processor mode."""
        return CpuMode(self.cpsr & MODE_MASK)

    def cli(self) -> None:
        """Disable interrupts."""
        self.cpsr |= DIS_INT

    def sti(self) -> None:
        """Enable interrupts."""
        self.cpsr &= ~DIS_INT & _WORD

    def int_enabled(self) -> bool:
        """Whether interrupts are enabled."""
        return not self.cpsr & DIS_INT

    def spsr_usr(self) -> int:
        """The status word a user program starts with."""
        return (self.cpsr & ~MODE_MASK & _WORD) | USR_MODE

    def pushcli(self) -> None:
        """Disable interrupts, remembering their state at the outermost level."""
        enabled = self.int_enabled()
        self.cli()
        if self.ncli == 0:
            self.intena = enabled
        self.ncli += 1

    def popcli(self) -> None:
        """Undo one pushcli; re-enable interrupts after the outermost one."""
        if self.int_enabled():
            raise CpuError("popcli - interruptible")
        self.ncli -= 1
        if self.ncli < 0:
            self.ncli = 0
            raise CpuError("popcli -- ncli < 0")
        if self.ncli == 0 and self.intena:
            self.sti()


class SpinLock:
    """A lock that keeps interrupts off on its processor while held."""

    def __init__(self, name: str, cpu: Cpu | None = None) -> None:
        self.name = name
        self.cpu = cpu if cpu is not None else Cpu()
        self.locked = False

    def acquire(self) -> None:
        """Take the lock, disabling interrupts."""
        self.cpu.pushcli()
        self.locked = True

    def release(self) -> None:
        """Drop the lock, restoring interrupts when nothing else holds them off."""
        self.locked = False
        self.cpu.popcli()

    def holding(self) -> bool:
        """Whether the lock is held."""
        return self.locked

    def __enter__(self) -> SpinLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()