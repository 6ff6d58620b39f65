import io

import pytest

from nemudiff.difftest_def import reg_size
from nemudiff.gdbhost import GdbHost, isa_profile, regs_from_reply, regs_to_payload
from nemudiff.protocol import ConnectionClosed, GdbConnection, encode_packet, read_packet


def make_host(replies, reg_bytes=308):
    reader = io.BytesIO(b"".join(encode_packet(r) for r in replies))
    writer = io.BytesIO()
    conn = GdbConnection(reader, writer)
    conn.ack = False
    return GdbHost(conn, reg_bytes=reg_bytes), writer


def sent_packets(writer):
    stream = io.BytesIO(writer.getvalue()[1:])
    packets = []
    while True:
        try:
            payload, ok = read_packet(stream)
        except ConnectionClosed:
            return packets
        assert ok
        packets.append(payload)


def sample_regs(n=308):
    return bytes(i % 251 for i in range(n))


def test_profile_binaries():
    assert isa_profile("riscv", False).qemu_bin == "qemu-system-riscv32"
    assert isa_profile("riscv", True).qemu_bin == "qemu-system-riscv64"
    assert isa_profile("x86").qemu_bin == "qemu-system-i386"
    assert isa_profile("riscv", False).qemu_args == ("-bios", "none")


def test_profile_unknown_isa():
    with pytest.raises(ValueError):
        isa_profile("arm")


@pytest.mark.parametrize("isa,rv64", [("x86", False), ("mips32", False), ("riscv", False),
                                      ("riscv", True), ("loongarch32r", False)])
def test_profile_holds_difftest_regs(isa, rv64):
    profile = isa_profile(isa, rv64)
    assert profile.reg_bytes >= reg_size(isa, rv64=rv64)
    assert profile.reg_bytes >= 77 * 4
    offsets = list(profile.fields.values())
    assert len(set(offsets)) == len(offsets)
    assert all(o + profile.word_size <= profile.reg_bytes for o in offsets)


def test_regs_round_trip():
    regs = sample_regs()
    payload = regs_to_payload(regs)
    assert payload[:1] == b"G"
    assert regs_from_reply(payload[1:]) == regs


def test_regs_from_reply_stops_word_at_non_hex():
    assert regs_from_reply(b"01020304xxxxxxxx") == b"\x01\x02\x03\x04" + bytes(4)


def test_memcpy_splits_by_mtu():
    host, writer = make_host([b"OK", b"OK"])
    data = bytes(i % 256 for i in range(1501))
    assert host.memcpy_to_qemu(0x100, data) is True
    packets = sent_packets(writer)
    assert len(packets) == 2
    first_head, first_body = packets[0].split(b":")
    second_head, second_body = packets[1].split(b":")
    assert first_head == f"M0x{0x100:x},{1500:x}".encode()
    assert second_head == f"M0x{0x100 + 1500:x},{1:x}".encode()
    assert bytes.fromhex(first_body.decode()) + bytes.fromhex(second_body.decode()) == data


def test_memcpy_reports_failure():
    host, _ = make_host([b"E01"])
    assert host.memcpy_to_qemu(0x7C00, b"\x90") is False


def test_getregs():
    regs = sample_regs()
    host, writer = make_host([regs.hex().encode()])
    assert host.getregs() == regs
    assert sent_packets(writer) == [b"g"]


def test_getregs_pads_short_reply():
    host, _ = make_host([b"78563412"])
    regs = host.getregs()
    assert len(regs) == 308
    assert regs[:4] == (0x12345678).to_bytes(4, "little")
    assert regs[4:] == bytes(304)


def test_setregs():
    regs = sample_regs()
    host, writer = make_host([b"OK"])
    assert host.setregs(regs) is True
    assert sent_packets(writer) == [regs_to_payload(regs)]


def test_setregs_failure():
    host, _ = make_host([b"E22"])
    assert host.setregs(sample_regs()) is False


def test_step():
    host, writer = make_host([b"S05"])
    assert host.step() is True
    assert sent_packets(writer) == [b"vCont;s:1"]