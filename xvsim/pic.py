"""Vectored interrupt controller with 32 sources, used in simple mode.

A raised source stays pending until the controller dispatches it.
Dispatching runs the service routine of every source that is both
pending and enabled, in order of source number, and then clears it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

NUM_INTSRC = 32

Isr = Callable[[Any, int], None]


class InterruptController:
    """Routes device interrupts to their service routines."""

    def __init__(self, log: Callable[[str], None] | None = None) -> None:
        self._log = log
        self._lock = threading.Lock()
        self._isrs: list[Isr] = [self._default_isr] * NUM_INTSRC
        self._enabled = 0
        self._raw = 0

    def _default_isr(self, frame: Any, n: int) -> None:
        if self._log is not None:
            self._log(f"unhandled interrupt: {n}")

    @staticmethod
    def _check(n: int) -> None:
        if not 0 <= n < NUM_INTSRC:
            raise ValueError("invalid interrupt source")

    @property
    def enabled(self) -> int:
        """Bit mask of enabled sources."""
        return self._enabled

    @property
    def raw_status(self) -> int:
        """Bit mask of pending sources, before masking."""
        return self._raw

    @property
    def irq_status(self) -> int:
        """Bit mask of sources that are pending and enabled."""
        return self._raw & self._enabled

    def enable(self, n: int, isr: Isr) -> None:
        """Enable source *n*, served by *isr*."""
        self._check(n)
        with self._lock:
            self._isrs[n] = isr
            self._enabled |= 1 << n

    def disable(self, n: int) -> None:
        """Disable source *n* and drop its service routine."""
        self._check(n)
        with self._lock:
            self._enabled &= ~(1 << n)
            self._isrs[n] = self._default_isr

    def raise_irq(self, n: int) -> None:
        """Mark source *n* pending."""
        self._check(n)
        with self._lock:
            self._raw |= 1 << n

    def dispatch(self, frame: Any) -> list[int]:
        """Serve every pending enabled source; return their numbers."""
        with self._lock:
            status = self._raw & self._enabled
            self._raw &= ~status
            handlers = [(n, self._isrs[n]) for n in range(NUM_INTSRC) if status & (1 << n)]
        for n, isr in handlers:
            isr(frame, n)
        return [n for n, _ in handlers]