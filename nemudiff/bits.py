"""Bit manipulation helpers for guest words and addresses."""

from __future__ import annotations

WORD_MASK_32 = (1 << 32) - 1
WORD_MASK_64 = (1 << 64) - 1


def bitmask(bits: int) -> int:
    """Return a mask with the low ``bits`` bits set."""
    if bits < 0:
        raise ValueError(f"negative bit count: {bits}")
    return (1 << bits) - 1


def bits(x: int, hi: int, lo: int) -> int:
    """Extract bits ``hi`` down to ``lo`` of ``x`` (like ``x[hi:lo]`` in Verilog)."""
    if hi < lo:
        raise ValueError(f"hi ({hi}) must not be below lo ({lo})")
    return (x >> lo) & bitmask(hi - lo + 1)


def sext(x: int, length: int) -> int:
    """Sign-extend the low ``length`` bits of ``x`` to an unsigned 64-bit value."""
    if not 1 <= length <= 64:
        raise ValueError(f"invalid field length: {length}")
    value = x & bitmask(length)
    if value >> (length - 1):
        value -= 1 << length
    return value & WORD_MASK_64


def roundup(a: int, size: int) -> int:
    """Round ``a`` up to a multiple of the power of two ``size``."""
    return (a + size - 1) & ~(size - 1)


def rounddown(a: int, size: int) -> int:
    """Round ``a`` down to a multiple of the power of two ``size``."""
    return a & ~(size - 1)


def format_word(value: int, isa64: bool) -> str:
    """Format a guest word as zero-padded hexadecimal."""
    if isa64:
        return f"0x{value & WORD_MASK_64:016x}"
    return f"0x{value & WORD_MASK_32:08x}"