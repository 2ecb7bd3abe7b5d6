"""Page allocator: a free list of fixed-size physical pages."""

from __future__ import annotations

import threading

PAGE_SIZE = 4096


class PageAllocator:
    """Hand out pages between the end of the kernel and *phystop*."""

    def __init__(self, kernel_end: int, phystop: int) -> None:
        self.kernel_end = kernel_end
        self.phystop = phystop
        self._lock = threading.Lock()
        self._free: list[int] = []

    def __len__(self) -> int:
        """Number of free pages."""
        with self._lock:
            return len(self._free)

    def freerange(self, start: int, end: int) -> None:
        """Free every whole page between *start* and *end*."""
        first = (start + PAGE_SIZE - 1) & ~(PAGE_SIZE - 1)
        for addr in range(first, end - PAGE_SIZE + 1, PAGE_SIZE):
            self.kfree(addr)

    def kfree(self, addr: int) -> None:
        """Return the page at *addr* to the free list."""
        if addr % PAGE_SIZE or addr < self.kernel_end or addr >= self.phystop:
            raise ValueError(f"kfree({addr:#x})")
        with self._lock:
            self._free.append(addr)

    def kalloc(self) -> int | None:
        """Take a page, most recently freed first; None when none is left."""
        with self._lock:
            return self._free.pop() if self._free else None