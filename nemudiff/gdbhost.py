"""Register and memory access to QEMU through its GDB stub."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field

from nemudiff.protocol import GdbConnection, gdb_decode_hex_str

_MTU = 1500
_UNION_BYTES = 77 * 4


@dataclass(frozen=True)
class IsaProfile:
    """How QEMU is started for a guest ISA and how its GDB registers are laid out."""

    isa: str
    qemu_bin: str
    qemu_args: tuple[str, ...]
    word_size: int
    reg_bytes: int
    fields: dict[str, int] = field(default_factory=dict)


def _gpr_fields(count: int, size: int) -> dict[str, int]:
    return {f"gpr{i}": i * size for i in range(count)}


def isa_profile(isa: str, rv64: bool = False) -> IsaProfile:
    """Return the QEMU binary, arguments and register layout for ``isa``."""
    if isa == "mips32":
        fields = _gpr_fields(32, 4)
        for i, name in enumerate(("status", "lo", "hi", "badvaddr", "cause", "pc")):
            fields[name] = 128 + 4 * i
        nemu_home = os.environ.get("NEMU_HOME", "")
        args = ("-machine", "mipssim", "-kernel", nemu_home + "/resource/mips-elf/mips.dummy")
        return IsaProfile(isa, "qemu-system-mipsel", args, 4, _UNION_BYTES, fields)
    if isa == "riscv" and not rv64:
        fields = _gpr_fields(32, 4)
        fields["pc"] = 128
        return IsaProfile(isa, "qemu-system-riscv32", ("-bios", "none"), 4, _UNION_BYTES, fields)
    if isa == "riscv":
        fields = _gpr_fields(32, 8)
        fields.update({f"fpr{i}": 256 + 8 * i for i in range(32)})
        fields["pc"] = 512
        return IsaProfile(isa, "qemu-system-riscv64", (), 8, max(520, _UNION_BYTES), fields)
    if isa == "x86":
        names = ("eax", "ecx", "edx", "ebx", "esp", "ebp", "esi", "edi",
                 "eip", "eflags", "cs", "ss", "ds", "es", "fs", "gs")
        fields = {name: 4 * i for i, name in enumerate(names)}
        return IsaProfile(isa, "qemu-system-i386", (), 4, _UNION_BYTES, fields)
    if isa == "loongarch32r":
        fields = _gpr_fields(32, 4)
        fields["pc"] = 128
        return IsaProfile(isa, "qemu-system-loongarch32", ("-M", "ls3a5k32"), 4, _UNION_BYTES, fields)
    raise ValueError(f"Unsupport ISA: {isa}")


def regs_from_reply(reply: bytes | str) -> bytearray:
    """Decode a ``g`` reply, eight hex characters per 32-bit word, into raw bytes."""
    raw = reply.encode() if isinstance(reply, str) else bytes(reply)
    regs = bytearray()
    for pos in range(0, len(raw), 8):
        word = gdb_decode_hex_str(raw[pos:pos + 8])
        regs += word.to_bytes(4, "little")
    return regs


def regs_to_payload(regs: bytes | bytearray) -> bytes:
    """Build the ``G`` command that writes the raw register bytes ``regs``."""
    return b"G" + bytes(regs).hex().encode("ascii")


class GdbHost:
    """Difftest operations on top of a GDB connection to QEMU."""

    def __init__(self, conn: GdbConnection, reg_bytes: int = _UNION_BYTES) -> None:
        self.conn = conn
        self.reg_bytes = reg_bytes

    @classmethod
    def connect(cls, port: int, addr: str = "127.0.0.1") -> "GdbHost":
        """Connect to the stub, retrying until it accepts."""
        while (conn := GdbConnection.connect(addr, port)) is None:
            time.sleep(1e-6)
        return cls(conn)

    def _fit(self, regs: bytes | bytearray) -> bytearray:
        out = bytearray(regs[:self.reg_bytes])
        out += bytes(self.reg_bytes - len(out))
        return out

    def _memcpy_small(self, dest: int, data: bytes) -> bool:
        header = f"M0x{dest & 0xFFFFFFFF:x},{len(data):x}:".encode("ascii")
        self.conn.send(header + data.hex().encode("ascii"))
        return self.conn.recv() == b"OK"

    def memcpy_to_qemu(self, dest: int, data: bytes | bytearray) -> bool:
        """Write ``data`` to guest memory at ``dest`` in chunks of at most 1500 bytes."""
        payload = bytes(data)
        ok = True
        while len(payload) > _MTU:
            ok &= self._memcpy_small(dest, payload[:_MTU])
            dest = (dest + _MTU) & 0xFFFFFFFF
            payload = payload[_MTU:]
        ok &= self._memcpy_small(dest, payload)
        return ok

    def getregs(self) -> bytearray:
        """Read all registers as raw bytes, ``reg_bytes`` long."""
        self.conn.send(b"g")
        return self._fit(regs_from_reply(self.conn.recv()))

    def setregs(self, regs: bytes | bytearray) -> bool:
        """Write all registers from raw bytes."""
        self.conn.send(regs_to_payload(self._fit(regs)))
        return self.conn.recv() == b"OK"

    def step(self) -> bool:
        """Execute a single instruction."""
        self.conn.send(b"vCont;s:1")
        self.conn.recv()
        return True

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()

    def __enter__(self) -> "GdbHost":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()