import pytest

from xvsim.memdisk import SECTOR_SIZE, Buf, BufFlag, DiskError, MemDisk


def _image(nsectors):
    return b"".join(bytes([i]) * SECTOR_SIZE for i in range(nsectors))


@pytest.fixture
def disk():
    return MemDisk(_image(4))


def test_sector_count(disk):
    assert disk.nsectors == 4


def test_partial_sector_ignored():
    assert MemDisk(bytes(SECTOR_SIZE * 2 + 100)).nsectors == 2


def test_read_sector(disk):
    buf = Buf(dev=1, sector=2, flags=BufFlag.BUSY)
    disk.rw(buf)
    assert bytes(buf.data) == bytes([2]) * SECTOR_SIZE
    assert buf.flags & BufFlag.VALID


def test_write_sector(disk):
    buf = Buf(dev=1, sector=1, flags=BufFlag.BUSY | BufFlag.VALID | BufFlag.DIRTY)
    buf.data[:] = b"\xaa" * SECTOR_SIZE
    disk.rw(buf)
    assert disk.image[SECTOR_SIZE : 2 * SECTOR_SIZE] == b"\xaa" * SECTOR_SIZE
    assert not buf.flags & BufFlag.DIRTY
    assert buf.flags & BufFlag.VALID


def test_write_then_read_back(disk):
    out = Buf(dev=1, sector=3, flags=BufFlag.BUSY | BufFlag.DIRTY)
    out.data[:] = bytes(range(256)) * 2
    disk.rw(out)
    back = Buf(dev=1, sector=3, flags=BufFlag.BUSY)
    disk.rw(back)
    assert back.data == out.data


def test_other_sectors_untouched(disk):
    buf = Buf(dev=1, sector=0, flags=BufFlag.BUSY | BufFlag.DIRTY)
    disk.rw(buf)
    assert disk.image[SECTOR_SIZE:] == _image(4)[SECTOR_SIZE:]


def test_not_busy(disk):
    with pytest.raises(DiskError):
        disk.rw(Buf(dev=1, sector=0))


def test_nothing_to_do(disk):
    with pytest.raises(DiskError):
        disk.rw(Buf(dev=1, sector=0, flags=BufFlag.BUSY | BufFlag.VALID))


def test_wrong_device(disk):
    with pytest.raises(DiskError):
        disk.rw(Buf(dev=2, sector=0, flags=BufFlag.BUSY))


def test_sector_out_of_range(disk):
    with pytest.raises(DiskError):
        disk.rw(Buf(dev=1, sector=4, flags=BufFlag.BUSY))


def test_custom_device_number():
    disk = MemDisk(b"\x07" * SECTOR_SIZE, dev=7)
    buf = Buf(dev=7, sector=0, flags=BufFlag.BUSY)
    disk.rw(buf)
    assert bytes(buf.data) == b"\x07" * SECTOR_SIZE
    assert (buf.flags & BufFlag.VALID) == BufFlag.VALID
    with pytest.raises(DiskError):
        disk.rw(Buf(dev=1, sector=0, flags=BufFlag.BUSY))