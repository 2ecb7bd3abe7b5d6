import pytest

from xvsim.strings import memcmp, safestrcpy, strncmp, strncpy


def test_strncmp_equal_strings():
    assert strncmp(b"console", b"console", 14) == 0


def test_strncmp_stops_after_n():
    assert strncmp(b"abcX", b"abcY", 3) == 0


def test_strncmp_sign_follows_bytes():
    assert strncmp(b"abc", b"abd", 3) < 0
    assert strncmp(b"abd", b"abc", 3) > 0


def test_strncmp_stops_at_nul():
    assert strncmp(b"ab\0x", b"ab\0y", 10) == 0


def test_strncmp_shorter_string_is_less():
    assert strncmp(b"ab", b"abc", 5) < 0
    assert strncmp(b"abc", b"ab", 5) > 0


def test_strncmp_accepts_str():
    assert strncmp("init", b"init", 14) == 0


def test_strncmp_zero_length():
    assert strncmp(b"a", b"b", 0) == 0


def test_strncpy_pads_with_nul():
    out = strncpy(b"ab", 5)
    assert len(out) == 5
    assert out.startswith(b"ab")
    assert set(out[2:]) == {0}


def test_strncpy_truncates_without_terminator():
    out = strncpy(b"abcdef", 3)
    assert out == b"abc"


def test_strncpy_non_positive():
    assert strncpy(b"abc", 0) == b""


def test_safestrcpy_leaves_room_for_nul():
    out = safestrcpy(b"initcode", 4)
    assert len(out) == 3
    assert b"initcode".startswith(out)


def test_safestrcpy_short_source_unchanged():
    assert safestrcpy(b"sh", 16) == b"sh"


def test_safestrcpy_stops_at_nul():
    assert safestrcpy(b"ab\0cd", 16) == b"ab"


def test_safestrcpy_non_positive():
    assert safestrcpy(b"abc", 0) == b""


def test_memcmp_equal():
    assert memcmp(b"\x01\x02\x03", b"\x01\x02\x03", 3) == 0


def test_memcmp_difference():
    assert memcmp(b"\x01\x05", b"\x01\x02", 2) == 3


def test_memcmp_ignores_nul():
    assert memcmp(b"\0a", b"\0b", 2) < 0


def test_memcmp_too_long():
    with pytest.raises(ValueError):
        memcmp(b"ab", b"abc", 3)