import pytest

from nemudiff.memory import PhysicalMemory, host_read, host_write

MBASE = 0x80000000
MSIZE = 0x1000


@pytest.mark.parametrize("length", [1, 2, 4])
def test_host_round_trip(length):
    buf = bytearray(16)
    value = (1 << (8 * length)) - 3
    host_write(buf, 4, length, value)
    assert host_read(buf, 4, length) == value


def test_host_little_endian():
    buf = bytearray(4)
    host_write(buf, 0, 2, 0x0102)
    assert list(buf[:2]) == [0x02, 0x01]


def test_host_write_truncates():
    buf = bytearray(2)
    host_write(buf, 0, 1, 0x1FF)
    assert host_read(buf, 0, 1) == 0xFF
    assert buf[1] == 0


def test_host_eight_bytes_needs_isa64():
    buf = bytearray(8)
    with pytest.raises(ValueError):
        host_read(buf, 0, 8)
    host_write(buf, 0, 8, 0x1122334455667788, isa64=True)
    assert host_read(buf, 0, 8, isa64=True) == 0x1122334455667788


def test_host_invalid_length():
    with pytest.raises(ValueError):
        host_write(bytearray(4), 0, 3, 1)


def test_in_pmem_bounds():
    mem = PhysicalMemory(MBASE, MSIZE)
    assert mem.in_pmem(MBASE)
    assert mem.in_pmem(MBASE + MSIZE - 1)
    assert not mem.in_pmem(MBASE + MSIZE)
    assert not mem.in_pmem(MBASE - 1)


def test_address_translation_round_trip():
    mem = PhysicalMemory(MBASE, MSIZE)
    for addr in (MBASE, MBASE + 0x10, MBASE + MSIZE - 1):
        assert mem.host_to_guest(mem.guest_to_host(addr)) == addr
    assert mem.guest_to_host(MBASE) == 0


def test_read_write_round_trip():
    mem = PhysicalMemory(MBASE, MSIZE)
    mem.write(MBASE + 8, 4, 0xDEADBEEF)
    assert mem.read(MBASE + 8, 4) == 0xDEADBEEF
    assert mem.read(MBASE + 8, 2) == 0xBEEF


def test_out_of_bound_access():
    mem = PhysicalMemory(MBASE, MSIZE)
    with pytest.raises(IndexError):
        mem.read(MBASE + MSIZE, 1)
    with pytest.raises(IndexError):
        mem.write(MBASE + MSIZE - 2, 4, 0)


def test_reset_vector():
    mem = PhysicalMemory(MBASE, MSIZE)
    assert mem.reset_vector(0) == MBASE
    assert mem.reset_vector(0x100) - mem.reset_vector(0) == 0x100