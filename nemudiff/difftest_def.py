"""Definitions shared by the differential-testing front and back ends."""

from __future__ import annotations

from enum import IntEnum

from nemudiff.bits import WORD_MASK_32, format_word
from nemudiff.log import LogSink


class Direction(IntEnum):
    TO_DUT = 0
    TO_REF = 1


def reg_size(isa: str, rv64: bool = False, rve: bool = False) -> int:
    """Size in bytes of the register block exchanged with the reference."""
    if isa == "x86":
        return 4 * 9
    if isa == "mips32":
        return 4 * 38
    if isa == "riscv":
        gpr_size = 8 if rv64 else 4
        gpr_num = 16 if rve else 32
        return gpr_size * (gpr_num + 1)
    if isa == "loongarch32r":
        return 4 * 33
    raise ValueError(f"Unsupport ISA: {isa}")


def check_reg(name: str, pc: int, ref: int, dut: int, sink: LogSink | None) -> bool:
    """Compare a register of the reference and the device under test."""
    if ref == dut:
        return True
    if sink is not None:
        isa64 = any(v > WORD_MASK_32 for v in (pc, ref, dut))
        sink.log(
            f"{name} is different after executing instruction at pc = "
            f"{format_word(pc, isa64)}, right = {format_word(ref, isa64)}, "
            f"wrong = {format_word(dut, isa64)}, diff = {format_word(ref ^ dut, isa64)}"
        )
    return False