"""Instruction pattern matching used by the decoder."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

_MAX_BINARY_LEN = 64
_MAX_HEX_LEN = 16


@dataclass(frozen=True)
class Pattern:
    """A decoded instruction pattern: ``((inst >> shift) & mask) == key``."""

    key: int
    mask: int
    shift: int

    def matches(self, inst: int) -> bool:
        """Tell whether ``inst`` fits this pattern."""
        return ((inst & 0xFFFFFFFFFFFFFFFF) >> self.shift) & self.mask == self.key


def _decode(pattern: str, max_len: int, width: int, digit: Callable[[str], int]) -> Pattern:
    if len(pattern) > max_len:
        raise ValueError("pattern too long")
    key = mask = shift = 0
    full = (1 << width) - 1
    for c in pattern:
        if c == " ":
            continue
        if c == "?":
            key <<= width
            mask <<= width
            shift += width
        else:
            key = (key << width) | digit(c)
            mask = (mask << width) | full
            shift = 0
    return Pattern(key >> shift, mask >> shift, shift)


def _binary_digit(c: str) -> int:
    if c not in "01":
        raise ValueError(f"invalid character '{c}' in pattern string")
    return int(c)


def _hex_digit(c: str) -> int:
    if c not in "0123456789abcdef":
        raise ValueError(f"invalid character '{c}' in pattern string")
    return int(c, 16)


def pattern_decode(pattern: str) -> Pattern:
    """Decode a pattern of ``0``, ``1`` and ``?`` characters; spaces are ignored."""
    return _decode(pattern, _MAX_BINARY_LEN, 1, _binary_digit)


def pattern_decode_hex(pattern: str) -> Pattern:
    """Decode a pattern of lower-case hex digits and ``?``; spaces are ignored."""
    return _decode(pattern, _MAX_HEX_LEN, 4, _hex_digit)


PatternLike = Union[str, Pattern]


@dataclass
class PatternTable:
    """An ordered list of patterns; the first one that matches wins."""

    entries: list[tuple[Pattern, Callable[..., Any]]] = field(default_factory=list)

    def add(self, pattern: PatternLike, action: Callable[..., Any]) -> Pattern:
        """Append a pattern (binary text or a decoded ``Pattern``) and its action."""
        decoded = pattern if isinstance(pattern, Pattern) else pattern_decode(pattern)
        self.entries.append((decoded, action))
        return decoded

    def dispatch(self, inst: int, *args: Any) -> Any:
        """Run the action of the first matching pattern and return its result."""
        for pattern, action in self.entries:
            if pattern.matches(inst):
                return action(*args)
        raise LookupError(f"no pattern matches instruction 0x{inst:x}")