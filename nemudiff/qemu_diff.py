"""Differential testing against QEMU driven through its GDB stub."""

from __future__ import annotations

import atexit
import subprocess
import sys

from nemudiff.difftest_def import Direction, reg_size
from nemudiff.gdbhost import GdbHost, isa_profile
from nemudiff.log import PanicError, check

# Real-mode boot code that loads a flat GDT and switches to protected mode.
_X86_MBR = bytes([
    # start16:
    0xFA,                          # cli
    0x31, 0xC0,                    # xorw   %ax,%ax
    0x8E, 0xD8,                    # movw   %ax,%ds
    0x8E, 0xC0,                    # movw   %ax,%es
    0x8E, 0xD0,                    # movw   %ax,%ss
    0x0F, 0x01, 0x16, 0x44, 0x7C,  # lgdt   gdtdesc
    0x0F, 0x20, 0xC0,              # movl   %cr0,%eax
    0x66, 0x83, 0xC8, 0x01,        # orl    $CR0_PE,%eax
    0x0F, 0x22, 0xC0,              # movl   %eax,%cr0
    0xEA, 0x1D, 0x7C, 0x08, 0x00,  # ljmp   $GDT_ENTRY(1),$start32
    # start32:
    0x66, 0xB8, 0x10, 0x00,        # movw   $0x10,%ax
    0x8E, 0xD8,                    # movw   %ax, %ds
    0x8E, 0xC0,                    # movw   %ax, %es
    0x8E, 0xD0,                    # movw   %ax, %ss
    0xEB, 0xFE,                    # jmp    7c27
    0x8D, 0x76, 0x00,              # lea    0x0(%esi),%esi
    # GDT
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0xFF, 0xFF, 0x00, 0x00, 0x00, 0x9A, 0xCF, 0x00,
    0xFF, 0xFF, 0x00, 0x00, 0x00, 0x92, 0xCF, 0x00,
    # GDT descriptor
    0x17, 0x00, 0x2C, 0x7C, 0x00, 0x00,
])

_MBR_ADDR = 0x7C00
_PROTECTED_MODE_STEPS = 20
_RAISE_INTR_UNSUPPORTED = "raise_intr is not supported"


def init_isa(host: GdbHost, isa: str) -> None:
    """Bring a freshly started QEMU guest into the state the emulator expects."""
    if isa != "x86":
        return
    check(host.memcpy_to_qemu(_MBR_ADDR, _X86_MBR), "failed to load MBR into QEMU")
    fields = isa_profile("x86").fields
    regs = host.getregs()
    regs[fields["eip"]:fields["eip"] + 4] = _MBR_ADDR.to_bytes(4, "little")
    regs[fields["cs"]:fields["cs"] + 4] = bytes(4)
    check(host.setregs(regs), "failed to set registers in QEMU")
    for _ in range(_PROTECTED_MODE_STEPS):
        host.step()


class QemuDifftest:
    """A reference implementation backed by a QEMU process."""

    def __init__(
        self,
        port: int,
        isa: str = "riscv",
        rv64: bool = False,
        rve: bool = False,
        host: GdbHost | None = None,
    ) -> None:
        self.port = port
        self.isa = isa
        self.profile = isa_profile(isa, rv64)
        self.reg_size = reg_size(isa, rv64, rve)
        self.host = host
        self.process: subprocess.Popen | None = None

    def _command(self) -> list[str]:
        return [
            self.profile.qemu_bin,
            *self.profile.qemu_args,
            "-S",
            "-gdb",
            f"tcp::{self.port}",
            "-nographic",
            "-serial",
            "none",
            "-monitor",
            "none",
        ]

    def _require_host(self) -> GdbHost:
        if self.host is None:
            raise PanicError("not connected to QEMU")
        return self.host

    def init(self) -> None:
        """Start QEMU, connect to its GDB stub and prepare the guest."""
        try:
            self.process = subprocess.Popen(self._command(), stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise PanicError(f"exec: {exc}") from exc
        self.host = GdbHost.connect(self.port)
        self.host.reg_bytes = self.profile.reg_bytes
        print(f"Connect to QEMU with tcp::{self.port} successfully")
        atexit.register(self.close)
        init_isa(self.host, self.isa)

    def memcpy(self, addr: int, data: bytes | bytearray, direction: Direction) -> None:
        """Copy ``data`` into the reference's memory at ``addr``."""
        check(direction == Direction.TO_REF, "QEMU memory can only be written")
        check(self._require_host().memcpy_to_qemu(addr, data), "memcpy to QEMU failed")

    def regcpy(self, dut: bytes | bytearray, direction: Direction) -> bytes:
        """Exchange the register block; return what the reference now holds."""
        host = self._require_host()
        regs = host.getregs()
        if direction == Direction.TO_REF:
            if len(dut) < self.reg_size:
                raise ValueError(
                    f"register block too short: {len(dut)} < {self.reg_size}"
                )
            regs[:self.reg_size] = bytes(dut[:self.reg_size])
            host.setregs(regs)
        return bytes(regs[:self.reg_size])

    def exec(self, n: int) -> None:
        """Execute ``n`` instructions on the reference."""
        host = self._require_host()
        for _ in range(n):
            host.step()

    def raise_intr(self, no: int) -> None:
        """Report that interrupt ``no`` cannot be injected through the GDB stub."""
        print(_RAISE_INTR_UNSUPPORTED)
        sys.stdout.flush()
        raise PanicError(f"{_RAISE_INTR_UNSUPPORTED} (interrupt {no})")

    def close(self) -> None:
        """Disconnect and stop QEMU."""
        atexit.unregister(self.close)
        if self.host is not None:
            self.host.close()
            self.host = None
        if self.process is not None:
            self.process.terminate()
            self.process.wait()
            self.process = None

    def __enter__(self) -> "QemuDifftest":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()