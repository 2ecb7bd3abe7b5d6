"""Serial port with a receive FIFO that interrupts on incoming data."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Iterable
from typing import Any

from .pic import InterruptController

UART_CLK = 24_000_000  # clock rate of the serial port
UART_BITRATE = 19200
PIC_UART0 = 12

UARTCR_EN = 1 << 0
UARTCR_TXE = 1 << 8
UARTCR_RXE = 1 << 9
UARTLCR_FEN = 1 << 4
UART_RXI = 1 << 4
UART_TXI = 1 << 5


def baud_divisors(clock: int, bitrate: int) -> tuple[int, int]:
    """Integer and fractional baud rate divisors for *clock* and *bitrate*."""
    if clock <= 0 or bitrate <= 0:
        raise ValueError("clock and bit rate must be positive")
    ibrd, left = divmod(clock, 16 * bitrate)
    fbrd = (left * 4 + bitrate // 2) // bitrate
    return ibrd, fbrd


class Uart:
    """A serial port: transmitted bytes are collected, received ones queued."""

    def __init__(
        self,
        pic: InterruptController,
        on_input: Callable[[Iterable[int]], None] | None = None,
    ) -> None:
        self._pic = pic
        self._on_input = on_input
        self._lock = threading.Lock()
        self._rx: deque[int] = deque()
        self._tx = bytearray()
        self.ibrd, self.fbrd = baud_divisors(UART_CLK, UART_BITRATE)
        self.cr = UARTCR_EN | UARTCR_RXE | UARTCR_TXE
        self.lcr = UARTLCR_FEN
        self.imsc = 0
        self._ris = 0

    @property
    def output(self) -> bytes:
        """Every byte transmitted so far."""
        with self._lock:
            return bytes(self._tx)

    @property
    def masked_status(self) -> int:
        """Interrupt status after masking."""
        return self._ris & self.imsc

    def enable_rx(self) -> None:
        """Interrupt on received data."""
        self.imsc = UART_RXI
        self._pic.enable(PIC_UART0, self.isr)
        if self._rx:
            self._ris |= UART_RXI
            self._pic.raise_irq(PIC_UART0)

    def putc(self, c: int) -> None:
        """Transmit one byte."""
        with self._lock:
            self._tx.append(c & 0xFF)

    def getc(self) -> int:
        """Take one received byte, or -1 when the FIFO is empty."""
        with self._lock:
            return self._rx.popleft() if self._rx else -1

    def receive(self, data: bytes | bytearray | str) -> None:
        """Deliver *data* to the receive FIFO, raising the interrupt if enabled."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if not payload:
            return
        with self._lock:
            self._rx.extend(payload)
            self._ris |= UART_RXI
        if self.masked_status:
            self._pic.raise_irq(PIC_UART0)

    def isr(self, frame: Any, irq: int) -> None:
        """Hand received bytes to the input handler and clear the interrupt."""
        if self.masked_status & UART_RXI and self._on_input is not None:
            self._on_input(iter(self.getc, -1))
        self._ris &= ~(UART_RXI | UART_TXI)