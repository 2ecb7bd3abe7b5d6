"""Periodic timer that counts ticks through the interrupt controller."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from .pic import InterruptController

CLK_HZ = 1_000_000  # the timer clock runs at 1 MHz
PIC_TIMER01 = 4

TIMER_ONESHOT = 0x01
TIMER_32BIT = 0x02
TIMER_INTEN = 0x20
TIMER_PERIODIC = 0x40
TIMER_EN = 0x80


class Timer:
    """A periodic, interrupt-driven tick counter."""

    def __init__(
        self,
        pic: InterruptController,
        hz: int,
        clk_hz: int = CLK_HZ,
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        if hz <= 0 or clk_hz <= 0:
            raise ValueError("timer rates must be positive")
        self.load = clk_hz // hz
        if self.load == 0:
            raise ValueError("tick rate exceeds the timer clock")
        self.control = TIMER_EN | TIMER_PERIODIC | TIMER_32BIT | TIMER_INTEN
        self._on_tick = on_tick
        self._cond = threading.Condition()
        self._ticks = 0
        pic.enable(PIC_TIMER01, self.isr)

    @property
    def ticks(self) -> int:
        """Ticks counted so far."""
        with self._cond:
            return self._ticks

    def isr(self, frame: Any, irq: int) -> None:
        """Count a tick and wake whoever waits on the tick count."""
        with self._cond:
            self._ticks = (self._ticks + 1) & 0xFFFFFFFF
            ticks = self._ticks
            self._cond.notify_all()
        if self._on_tick is not None:
            self._on_tick(ticks)

    def wait(self, count: int, timeout: float | None = None) -> bool:
        """Wait until *count* more ticks have passed; False on timeout."""
        with self._cond:
            target = self._ticks + count
            return self._cond.wait_for(lambda: self._ticks >= target, timeout)