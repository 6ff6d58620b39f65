import pytest

from nemudiff.bits import bitmask, bits, format_word, rounddown, roundup, sext


@pytest.mark.parametrize("n", [0, 1, 5, 32, 64])
def test_bitmask_is_one_below_power_of_two(n):
    assert bitmask(n) + 1 == 1 << n


def test_bitmask_rejects_negative():
    with pytest.raises(ValueError):
        bitmask(-1)


@pytest.mark.parametrize("x", [0, 0xDEADBEEF, 0x12345678, 0xFFFFFFFF])
def test_bits_fields_reassemble(x):
    assert (bits(x, 31, 16) << 16) | bits(x, 15, 0) == x


def test_bits_single_bit_matches_shift():
    x = 0b1010
    assert [bits(x, i, i) for i in range(4)] == [(x >> i) & 1 for i in range(4)]


def test_bits_rejects_reversed_range():
    with pytest.raises(ValueError):
        bits(0xFF, 0, 3)


def test_sext_negative_byte():
    assert sext(0x80, 8) == 0xFFFFFFFFFFFFFF80


@pytest.mark.parametrize("x,n", [(0x7F, 8), (0x123, 12), (0x7FF, 12), (5, 64)])
def test_sext_positive_values_unchanged(x, n):
    assert sext(x, n) == x


@pytest.mark.parametrize("x,n", [(0xFFF, 12), (0x800, 12), (0x8000, 16)])
def test_sext_preserves_low_bits_and_fills_high(x, n):
    result = sext(x, n)
    assert result & bitmask(n) == x
    assert result >> n == bitmask(64 - n)


def test_sext_invalid_length():
    with pytest.raises(ValueError):
        sext(1, 0)


@pytest.mark.parametrize("a", [0, 1, 4095, 4096, 4097, 12345])
def test_rounding_brackets_value(a):
    size = 4096
    down, up = rounddown(a, size), roundup(a, size)
    assert down <= a <= up
    assert down % size == 0 and up % size == 0
    assert up - down in (0, size)


def test_roundup_example():
    assert roundup(4097, 4096) == 8192


def test_format_word_32():
    assert format_word(0x1234, False) == "0x00001234"


def test_format_word_64_round_trip():
    text = format_word(0x1234, True)
    assert len(text) == 18
    assert int(text, 16) == 0x1234