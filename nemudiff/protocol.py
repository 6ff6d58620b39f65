"""A small client for the GDB remote serial protocol."""

from __future__ import annotations

import socket
import string
from typing import BinaryIO, Union

_HEX_DIGITS = frozenset(string.hexdigits.encode())
_DOLLAR = ord("$")
_HASH = ord("#")
_ESCAPE = ord("}")
_RLE = ord("*")

CharLike = Union[int, str, bytes]


class ProtocolError(Exception):
    """Raised when the remote connection cannot be used."""


class ConnectionClosed(ProtocolError):
    """Raised when the remote side closes the connection."""


def _code(c: CharLike) -> int:
    if isinstance(c, int):
        return c
    if isinstance(c, str):
        return ord(c)
    return c[0]


def _nibble(code: int) -> int:
    return int(chr(code), 16)


def hex_encode(digit: int) -> str:
    """Return the lower-case hex character for a value in 0..15."""
    return chr(ord("a") + digit - 10) if digit > 9 else chr(ord("0") + digit)


def gdb_decode_hex(msb: CharLike, lsb: CharLike) -> int:
    """Decode two hex characters into a byte, or 0xFFFF if either is not hex."""
    hi, lo = _code(msb), _code(lsb)
    if hi not in _HEX_DIGITS or lo not in _HEX_DIGITS:
        return 0xFFFF
    return 16 * _nibble(hi) + _nibble(lo)


def gdb_decode_hex_str(data: bytes | str) -> int:
    """Decode little-endian hex byte pairs until the first non-hex pair."""
    raw = data.encode() if isinstance(data, str) else bytes(data)
    value = 0
    weight = 1
    for pos in range(0, len(raw) - 1, 2):
        msb, lsb = raw[pos], raw[pos + 1]
        if msb not in _HEX_DIGITS or lsb not in _HEX_DIGITS:
            break
        value += weight * gdb_decode_hex(msb, lsb)
        weight *= 256
    return value


def _as_bytes(command: bytes | str) -> bytes:
    return command.encode("ascii") if isinstance(command, str) else bytes(command)


def encode_packet(command: bytes | str) -> bytes:
    """Frame ``command`` as ``$payload#XX`` with its mod-256 checksum."""
    payload = _as_bytes(command)
    checksum = sum(payload) & 0xFF
    return b"$" + payload + f"#{checksum:02X}".encode("ascii")


def read_packet(stream: BinaryIO) -> tuple[bytes, bool]:
    """Read one packet; return its payload and whether the checksum was right.

    Escaped characters and run-length encoding are expanded.
    """
    pending: int | None = None

    def getc() -> int | None:
        nonlocal pending
        if pending is not None:
            c, pending = pending, None
            return c
        b = stream.read(1)
        return b[0] if b else None

    while (c := getc()) is not None and c != _DOLLAR:
        pass

    reply = bytearray()
    total = 0
    escape = False
    while (c := getc()) is not None:
        total = (total + c) & 0xFF
        if c == _DOLLAR:
            reply.clear()
            total = 0
            escape = False
            continue
        if c == _HASH:
            total = (total - c) & 0xFF
            msb, lsb = getc(), getc()
            ok = msb is not None and lsb is not None and total == gdb_decode_hex(msb, lsb)
            return bytes(reply), ok
        if c == _ESCAPE:
            escape = True
            continue
        if c == _RLE and reply:
            c2 = getc()
            if c2 is None or c2 < 29 or c2 > 126 or c2 in (_DOLLAR, _HASH):
                pending = c2
            else:
                reply.extend(bytes([reply[-1]]) * (c2 - 29))
                total = (total + c2) & 0xFF
                continue
        if escape:
            c ^= 0x20
            escape = False
        reply.append(c)

    raise ConnectionClosed("recv: Connection closed")


class GdbConnection:
    """A packet connection to a GDB stub over a pair of binary streams."""

    def __init__(self, reader: BinaryIO, writer: BinaryIO, sock: socket.socket | None = None) -> None:
        self.reader = reader
        self.writer = writer
        self.ack = True
        self._sock = sock
        # reset line state by acking any earlier input
        self._put(b"+")

    @classmethod
    def connect(cls, addr: str, port: int) -> "GdbConnection | None":
        """Open a TCP connection; return ``None`` if the peer cannot be reached."""
        try:
            socket.inet_aton(addr)
        except OSError as exc:
            raise ProtocolError(f"Invalid address: {addr}") from exc
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.connect((addr, port))
        except OSError:
            sock.close()
            return None
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return cls(sock.makefile("rb"), sock.makefile("wb"), sock=sock)

    def _put(self, data: bytes) -> None:
        try:
            self.writer.write(data)
            self.writer.flush()
        except OSError as exc:
            raise ProtocolError(f"send: {exc}") from exc

    def send(self, command: bytes | str) -> None:
        """Send a packet, resending until the stub acknowledges it."""
        packet = encode_packet(command)
        while True:
            self._put(packet)
            if not self.ack:
                return
            answer = self.reader.read(1)
            if not answer:
                raise ConnectionClosed("send: Connection closed")
            if answer == b"+":
                return

    def recv(self) -> bytes:
        """Receive a packet, asking for a resend while its checksum is wrong."""
        while True:
            reply, ok = read_packet(self.reader)
            if not self.ack:
                return reply
            self._put(b"+" if ok else b"-")
            if ok:
                return reply

    def start_noack(self) -> str:
        """Ask the stub to stop acknowledging; return ``"OK"`` on success."""
        self.send(b"QStartNoAckMode")
        reply = self.recv()
        if reply == b"OK":
            self.ack = False
            return "OK"
        return ""

    def close(self) -> None:
        """Close both streams and the socket."""
        self.reader.close()
        self.writer.close()
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "GdbConnection":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()