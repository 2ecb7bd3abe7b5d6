import pytest

from xvsim.pagealloc import PAGE_SIZE, PageAllocator


def test_freerange_then_allocate_all_pages():
    alloc = PageAllocator(0x10000, 0x100000)
    alloc.freerange(0x10000, 0x10000 + 4 * PAGE_SIZE)
    assert len(alloc) == 4
    pages = [alloc.kalloc() for _ in range(4)]
    assert sorted(pages) == [0x10000 + i * PAGE_SIZE for i in range(4)]
    assert alloc.kalloc() is None


def test_allocation_is_last_freed_first():
    alloc = PageAllocator(0x10000, 0x100000)
    alloc.freerange(0x10000, 0x10000 + 3 * PAGE_SIZE)
    assert alloc.kalloc() == 0x10000 + 2 * PAGE_SIZE


def test_freerange_aligns_start_and_skips_partial_page():
    alloc = PageAllocator(0x10000, 0x100000)
    alloc.freerange(0x10001, 0x10000 + 3 * PAGE_SIZE + 100)
    pages = sorted(alloc.kalloc() for _ in range(len(alloc)))
    assert pages == [0x10000 + PAGE_SIZE, 0x10000 + 2 * PAGE_SIZE]


def test_free_and_realloc_round_trip():
    alloc = PageAllocator(0x10000, 0x100000)
    alloc.kfree(0x20000)
    assert alloc.kalloc() == 0x20000
    assert alloc.kalloc() is None


@pytest.mark.parametrize("addr", [0x20001, 0x0F000, 0x100000])
def test_invalid_free_raises(addr):
    alloc = PageAllocator(0x10000, 0x100000)
    with pytest.raises(ValueError):
        alloc.kfree(addr)
    assert len(alloc) == 0