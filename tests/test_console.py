import pytest

from xvsim.console import INPUT_BUF, Console, format_message


def _console(dumps=None):
    out = []
    calls = dumps if dumps is not None else []
    con = Console(out.append, lambda: calls.append(1))
    return con, out


def _text(out):
    return bytes(out).decode("latin-1")


def test_format_signed_and_hex():
    assert format_message("%d %x %s", -5, 255, "ok") == "-5 ff ok"


def test_format_hex_is_unsigned_word():
    assert format_message("%x", -1) == "ffffffff"


def test_format_pointer_and_percent():
    assert format_message("%p 100%%", 16) == "10 100%"


def test_format_null_string():
    assert format_message("%s", None) == "(null)"


def test_format_unknown_and_trailing_percent():
    assert format_message("a%qb%") == "a%qb"


def test_format_missing_argument_raises():
    with pytest.raises(TypeError):
        format_message("%d")


def test_cprintf_writes_through_putc():
    con, out = _console()
    con.cprintf("pid %d %s\n", 3, "init")
    assert _text(out) == format_message("pid %d %s\n", 3, "init")


def test_write_returns_count_and_emits_bytes():
    con, out = _console()
    assert con.write(b"abc") == 3
    assert bytes(out) == b"abc"


def test_line_input_and_echo():
    con, out = _console()
    con.intr("hi\r")
    assert _text(out) == "hi\n"
    assert con.read(10) == b"hi\n"


def test_backspace_edits_line():
    con, out = _console()
    con.intr("ab\x7fc\n")
    assert con.read(10) == b"ac\n"
    assert "\b \b" in _text(out)


def test_kill_line():
    con, _ = _console()
    con.intr("junk\x15ok\n")
    assert con.read(10) == b"ok\n"


def test_backspace_cannot_cross_committed_line():
    con, _ = _console()
    con.intr("a\n\x08\x08b\n")
    assert con.read(10) == b"a\n"
    assert con.read(10) == b"b\n"


def test_read_respects_limit():
    con, _ = _console()
    con.intr(b"abcdef\n")
    assert con.read(3) == b"abc"
    assert con.read(10) == b"def\n"


def test_ctrl_d_ends_read_then_gives_eof():
    con, _ = _console()
    con.intr("ab\x04")
    assert con.read(10) == b"ab"
    assert con.read(10) == b""


def test_ctrl_p_calls_procdump():
    calls = []
    con, _ = _console(calls)
    con.intr([16, 16])
    assert calls == [1, 1]


def test_full_buffer_commits_and_drops_extra():
    con, _ = _console()
    con.intr("x" * (INPUT_BUF + 50))
    assert con.read(INPUT_BUF) == b"x" * INPUT_BUF