"""Buddy allocator over a simulated address range.

Each order splits the pool into blocks of ``2**order`` bytes.  A bitmap per
group of 32 blocks records which blocks are free, and the groups that hold
any free block are chained in a doubly linked list per order.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

MIN_ORDER = 6
MAX_ORDER = 12
N_ORDERS = MAX_ORDER - MIN_ORDER + 1
PAGE_SHIFT = 12

_NIL = 0xFFFF
_MARK_SIZE = 8  # bytes reserved per mark at the start of the pool


class AllocatorError(Exception):
    """Raised for invalid allocator requests or corrupted state."""


def _align_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) & ~(alignment - 1)


@dataclass
class _Mark:
    bitmap: int = 0
    prev: int = _NIL
    next: int = _NIL


@dataclass
class _Order:
    marks: list[_Mark]
    head: int = _NIL


@dataclass
class BuddyAllocator:
    """Allocate power-of-two blocks between *start* and *end*."""

    start: int
    end: int
    start_heap: int = field(init=False)
    _orders: dict[int, _Order] = field(init=False, repr=False)
    _lock: threading.Lock = field(init=False, repr=False)

    def __init__(self, start: int, end: int) -> None:
        if end <= start:
            raise AllocatorError("empty memory range")
        self.start = start
        self.end = end
        self._lock = threading.Lock()
        self._orders = {}

        count = ((end - start) >> (MAX_ORDER + 5)) + 1
        total = 0
        for order in range(MAX_ORDER, MIN_ORDER - 1, -1):
            self._orders[order] = _Order([_Mark() for _ in range(count)])
            total += count
            count <<= 1

        self.start_heap = _align_up(start + total * _MARK_SIZE, 1 << MAX_ORDER)
        for addr in range(self.start_heap, end, 1 << MAX_ORDER):
            self.kfree(addr, MAX_ORDER)

    # -- address and mark helpers -------------------------------------

    def _blk_to_addr(self, order: int, blk_id: int) -> int:
        return self.start_heap + (blk_id << order)

    def _addr_to_blk(self, order: int, addr: int) -> int:
        if addr < self.start_heap:
            raise AllocatorError(f"address {addr:#x} outside the heap")
        return (addr - self.start_heap) >> order

    def _mark(self, order: int, index: int) -> _Mark:
        marks = self._orders[order].marks
        if not 0 <= index < len(marks):
            raise AllocatorError(f"address outside the heap (order {order})")
        return marks[index]

    @staticmethod
    def _available(bitmap: int, blk_id: int) -> bool:
        return bool(bitmap & (1 << (blk_id & 0x1F)))

    # -- bitmap and list maintenance ----------------------------------

    def _unmark(self, order: int, blk_id: int) -> None:
        ord_ = self._orders[order]
        mark = self._mark(order, blk_id >> 5)
        if not self._available(mark.bitmap, blk_id):
            raise AllocatorError("double alloc")
        mark.bitmap &= ~(1 << (blk_id & 0x1F))

        if mark.bitmap == 0:
            index = blk_id >> 5
            prev, nxt = mark.prev, mark.next
            if prev != _NIL:
                ord_.marks[prev].next = nxt
            elif ord_.head == index:
                ord_.head = nxt
            if nxt != _NIL:
                ord_.marks[nxt].prev = prev
            mark.prev = mark.next = _NIL

    def _mark_free(self, order: int, blk_id: int) -> None:
        ord_ = self._orders[order]
        mark = self._mark(order, blk_id >> 5)
        insert = mark.bitmap == 0
        if self._available(mark.bitmap, blk_id):
            raise AllocatorError("double free")
        mark.bitmap |= 1 << (blk_id & 0x1F)

        if insert:
            index = blk_id >> 5
            mark.prev = _NIL
            mark.next = ord_.head
            if ord_.head != _NIL:
                ord_.marks[ord_.head].prev = index
            ord_.head = index

    def _get_block(self, order: int) -> int:
        ord_ = self._orders[order]
        mark = ord_.marks[ord_.head]
        if mark.bitmap == 0:
            raise AllocatorError("empty mark in the list")
        bit = (mark.bitmap & -mark.bitmap).bit_length() - 1
        blk_id = ord_.head * 32 + bit
        self._unmark(order, blk_id)
        return self._blk_to_addr(order, blk_id)

    # -- allocation ---------------------------------------------------

    def _kmalloc(self, order: int) -> int | None:
        if self._orders[order].head != _NIL:
            return self._get_block(order)
        if order < MAX_ORDER:
            addr = self._kmalloc(order + 1)
            if addr is not None:
                self._kfree(addr + (1 << order), order)
            return addr
        return None

    def _kfree(self, addr: int, order: int) -> None:
        blk_id = self._addr_to_blk(order, addr)
        mark = self._mark(order, blk_id >> 5)
        if self._available(mark.bitmap, blk_id):
            raise AllocatorError("kfree: double free")

        buddy_id = blk_id ^ 1
        if order == MAX_ORDER or not self._available(mark.bitmap, buddy_id):
            self._mark_free(order, blk_id)
        else:
            self._unmark(order, buddy_id)
            self._kfree(self._blk_to_addr(order, blk_id & ~1), order + 1)

    def kmalloc(self, order: int) -> int | None:
        """Allocate a block of ``2**order`` bytes; None when memory runs out."""
        if not MIN_ORDER <= order <= MAX_ORDER:
            raise AllocatorError("kmalloc: order out of range")
        with self._lock:
            return self._kmalloc(order)

    def kfree(self, addr: int, order: int) -> None:
        """Return the block at *addr* of ``2**order`` bytes."""
        if not MIN_ORDER <= order <= MAX_ORDER or addr & ((1 << order) - 1):
            raise AllocatorError("kfree: order out of range or memory unaligned")
        with self._lock:
            self._kfree(addr, order)

    def alloc_page(self) -> int | None:
        """Allocate one page."""
        return self.kmalloc(PAGE_SHIFT)

    def free_page(self, addr: int) -> None:
        """Free one page."""
        self.kfree(addr, PAGE_SHIFT)


def get_order(v: int) -> int:
    """Return the order of the smallest block that holds *v* bytes."""
    v &= 0xFFFFFFFF
    if v == 0:
        raise AllocatorError("order too big!")
    order = (v - 1).bit_length()
    if order >= 32 or order > MAX_ORDER:
        raise AllocatorError("order too big!")
    return max(order, MIN_ORDER)