"""Guest physical memory backed by a host byte buffer."""

from __future__ import annotations

PAGE_SHIFT = 12
PAGE_SIZE = 1 << PAGE_SHIFT
PAGE_MASK = PAGE_SIZE - 1


def _check_length(length: int, isa64: bool) -> None:
    allowed = (1, 2, 4, 8) if isa64 else (1, 2, 4)
    if length not in allowed:
        raise ValueError(f"unsupported access length: {length}")


def host_read(buf: bytes | bytearray, offset: int, length: int, isa64: bool = False) -> int:
    """Read a little-endian value of ``length`` bytes from ``buf``."""
    _check_length(length, isa64)
    return int.from_bytes(buf[offset:offset + length], "little")


def host_write(buf: bytearray, offset: int, length: int, data: int, isa64: bool = False) -> None:
    """Write the low ``length`` bytes of ``data`` into ``buf``, little-endian."""
    _check_length(length, isa64)
    value = data & ((1 << (8 * length)) - 1)
    buf[offset:offset + length] = value.to_bytes(length, "little")


class PhysicalMemory:
    """A contiguous range of guest physical memory starting at ``mbase``."""

    def __init__(self, mbase: int, msize: int, isa64: bool = False) -> None:
        if msize <= 0:
            raise ValueError("memory size must be positive")
        self.mbase = mbase
        self.msize = msize
        self.isa64 = isa64
        self.paddr_bits = 64 if mbase + msize > 1 << 32 else 32
        self.data = bytearray(msize)

    @property
    def left(self) -> int:
        return self.mbase

    @property
    def right(self) -> int:
        return self.mbase + self.msize - 1

    def in_pmem(self, addr: int) -> bool:
        """Tell whether ``addr`` lies inside this memory."""
        return ((addr - self.mbase) & ((1 << self.paddr_bits) - 1)) < self.msize

    def guest_to_host(self, paddr: int) -> int:
        """Convert a guest physical address to an offset into ``data``."""
        return paddr - self.mbase

    def host_to_guest(self, offset: int) -> int:
        """Convert an offset into ``data`` to a guest physical address."""
        return offset + self.mbase

    def _check(self, addr: int, length: int) -> None:
        if not (self.in_pmem(addr) and self.in_pmem(addr + length - 1)):
            raise IndexError(
                f"address = 0x{addr:x} is out of bound of pmem "
                f"[0x{self.left:x}, 0x{self.right:x}]"
            )

    def read(self, addr: int, length: int) -> int:
        """Read ``length`` bytes at guest address ``addr``."""
        self._check(addr, length)
        return host_read(self.data, self.guest_to_host(addr), length, self.isa64)

    def write(self, addr: int, length: int, data: int) -> None:
        """Write ``length`` bytes of ``data`` at guest address ``addr``."""
        self._check(addr, length)
        host_write(self.data, self.guest_to_host(addr), length, data, self.isa64)

    def reset_vector(self, offset: int) -> int:
        """Return the reset address given the reset offset from the base."""
        return self.mbase + offset