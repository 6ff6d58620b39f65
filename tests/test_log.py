import io

import pytest

from nemudiff.log import (
    ANSI_FG_BLUE,
    ANSI_FG_RED,
    ANSI_NONE,
    LogSink,
    PanicError,
    ansi_fmt,
    check,
    panic,
)


def test_ansi_fmt_wraps_text():
    text = ansi_fmt("hello", ANSI_FG_RED)
    assert text == ANSI_FG_RED + "hello" + ANSI_NONE
    assert text.endswith("\33[0m")


def test_panic_raises_with_message():
    with pytest.raises(PanicError, match="please implement me"):
        panic("please implement me")


def test_check_failure_raises():
    with pytest.raises(PanicError, match="bad state"):
        check(False, "bad state")


def test_log_writes_stream_and_file(tmp_path):
    out = io.StringIO()
    path = tmp_path / "nemu.log"
    with LogSink(stream=out, log_path=path) as sink:
        sink.log("booting")
    expected = ansi_fmt("booting", ANSI_FG_BLUE) + "\n"
    assert out.getvalue() == expected
    assert path.read_text(encoding="utf-8") == expected


def test_disabled_sink_skips_file(tmp_path):
    out = io.StringIO()
    path = tmp_path / "nemu.log"
    sink = LogSink(stream=out, log_path=path, enabled=False)
    sink.log("quiet")
    sink.close()
    assert "quiet" in out.getvalue()
    assert path.read_text(encoding="utf-8") == ""


def test_log_after_close_only_reaches_stream(tmp_path):
    out = io.StringIO()
    path = tmp_path / "nemu.log"
    sink = LogSink(stream=out, log_path=path)
    sink.close()
    sink.log("late")
    assert "late" in out.getvalue()
    assert path.read_text(encoding="utf-8") == ""