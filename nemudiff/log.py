"""Run state, coloured logging and fatal-error helpers."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import IntEnum
from os import PathLike
from typing import TextIO

ANSI_FG_BLACK = "\33[1;30m"
ANSI_FG_RED = "\33[1;31m"
ANSI_FG_GREEN = "\33[1;32m"
ANSI_FG_YELLOW = "\33[1;33m"
ANSI_FG_BLUE = "\33[1;34m"
ANSI_FG_MAGENTA = "\33[1;35m"
ANSI_FG_CYAN = "\33[1;36m"
ANSI_FG_WHITE = "\33[1;37m"
ANSI_BG_BLACK = "\33[1;40m"
ANSI_BG_RED = "\33[1;41m"
ANSI_BG_GREEN = "\33[1;42m"
ANSI_BG_YELLOW = "\33[1;43m"
ANSI_BG_BLUE = "\33[1;44m"
ANSI_BG_MAGENTA = "\33[1;45m"
ANSI_BG_CYAN = "\33[1;46m"
ANSI_BG_WHITE = "\33[1;47m"
ANSI_NONE = "\33[0m"


class PanicError(Exception):
    """Raised when the emulator hits an unrecoverable condition."""


class RunState(IntEnum):
    RUNNING = 0
    STOP = 1
    END = 2
    ABORT = 3
    QUIT = 4


@dataclass
class NemuState:
    """Current run state and, once halted, where and with what code."""

    state: RunState = RunState.RUNNING
    halt_pc: int = 0
    halt_ret: int = 0


def ansi_fmt(text: str, fmt: str) -> str:
    """Wrap ``text`` in an ANSI colour sequence."""
    return f"{fmt}{text}{ANSI_NONE}"


def panic(message: str) -> None:
    """Abort with ``message``."""
    raise PanicError(message)


def check(cond: object, message: str) -> None:
    """Abort with ``message`` unless ``cond`` holds."""
    if not cond:
        raise PanicError(message)


class LogSink:
    """Writes log lines to a console stream and, when enabled, to a log file."""

    def __init__(
        self,
        stream: TextIO | None = None,
        log_path: str | PathLike[str] | None = None,
        enabled: bool = True,
    ) -> None:
        self._stream = stream
        self.enabled = enabled
        self._file: TextIO | None = (
            open(log_path, "w", encoding="utf-8") if log_path is not None else None
        )

    def log(self, message: str) -> None:
        """Emit ``message`` in blue on the console and into the log file."""
        line = ansi_fmt(message, ANSI_FG_BLUE) + "\n"
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(line)
        if self.enabled and self._file is not None:
            self._file.write(line)
            self._file.flush()

    def close(self) -> None:
        """Close the log file, if any."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> "LogSink":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()