"""Variable and function expansion for configuration language files."""

from __future__ import annotations

import os
import re
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, TextIO

FUNCTION_MAX_ARGS = 16
_SHELL_BUF = 256
_MAX_DEPTH = 1000
_ARG_INDEX = re.compile(r"[ \t\n\v\f\r]*\+?[0-9]+")


class PreprocessError(Exception):
    """Raised when expansion fails; the message carries file and line."""


class VariableFlavor(Enum):
    SIMPLE = "simple"
    RECURSIVE = "recursive"
    APPEND = "append"


@dataclass
class SourceFile:
    name: str


class FileRegistry:
    """Keeps one record per distinct file name."""

    def __init__(self) -> None:
        self._files: dict[str, SourceFile] = {}

    def lookup(self, name: str) -> SourceFile:
        """Return the record for ``name``, creating it on first use."""
        if name not in self._files:
            self._files[name] = SourceFile(name)
        return self._files[name]


@dataclass
class _Variable:
    name: str
    value: str
    flavor: VariableFlavor
    exp_count: int = 0


@dataclass(frozen=True)
class _Function:
    min_args: int
    max_args: int
    func: Callable[[list[str]], str]


def _is_end_of_str(c: str) -> bool:
    return c == ""


def _is_end_of_token(c: str) -> bool:
    return not ((c.isascii() and c.isalnum()) or c in "_-") or c == ""


class Preprocessor:
    """Expands ``$(...)`` references to variables, built-ins and the environment."""

    def __init__(
        self,
        current_file: str = "",
        lineno: int = 0,
        environ: Mapping[str, str] | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.current_file = current_file
        self.lineno = lineno
        self._environ = environ if environ is not None else os.environ
        self._stdout = stdout
        self._stderr = stderr
        self._env: dict[str, str] = {}
        self._variables: dict[str, _Variable] = {}
        self._functions: dict[str, _Function] = {
            "error-if": _Function(2, 2, self._do_error_if),
            "filename": _Function(0, 0, lambda args: self.current_file),
            "info": _Function(1, 1, self._do_info),
            "lineno": _Function(0, 0, lambda args: str(self.lineno)),
            "shell": _Function(1, 1, self._do_shell),
            "warning-if": _Function(2, 2, self._do_warning_if),
        }

    def _error(self, message: str) -> PreprocessError:
        return PreprocessError(f"{self.current_file}:{self.lineno}: {message}")

    # environment variables

    def _env_expand(self, name: str) -> str | None:
        if not name:
            return None
        if name in self._env:
            return self._env[name]
        value = self._environ.get(name)
        if value is None:
            return None
        self._env[name] = value
        return value

    def env_write_dep(self, stream: TextIO, autoconfig_name: str) -> None:
        """Write make rules that rebuild ``autoconfig_name`` when a used variable changes."""
        for name, value in self._env.items():
            stream.write(f'ifneq "$({name})" "{value}"\n')
            stream.write(f"{autoconfig_name}: FORCE\n")
            stream.write("endif\n")
        self._env.clear()

    # built-in functions

    def _do_error_if(self, args: list[str]) -> str:
        if args[0] == "y":
            raise self._error(args[1])
        return ""

    def _do_info(self, args: list[str]) -> str:
        stream = self._stdout if self._stdout is not None else sys.stdout
        stream.write(f"{args[0]}\n")
        return ""

    def _do_warning_if(self, args: list[str]) -> str:
        if args[0] == "y":
            stream = self._stderr if self._stderr is not None else sys.stderr
            stream.write(f"{self.current_file}:{self.lineno}: {args[1]}\n")
        return ""

    def _do_shell(self, args: list[str]) -> str:
        cmd = args[0]
        try:
            result = subprocess.run(cmd, shell=True, stdout=subprocess.PIPE, check=False)
        except OSError as exc:
            raise PreprocessError(f"{cmd}: {exc}") from exc
        out = result.stdout[:_SHELL_BUF]
        if len(out) == _SHELL_BUF:
            out = out[:-1]
        out = out.rstrip(b"\n").replace(b"\n", b" ")
        return out.decode("utf-8", errors="replace")

    def _function_expand(self, name: str, args: list[str]) -> str | None:
        function = self._functions.get(name)
        if function is None:
            return None
        if len(args) < function.min_args:
            raise self._error(f"too few function arguments passed to '{name}'")
        if len(args) > function.max_args:
            raise self._error(f"too many function arguments passed to '{name}'")
        return function.func(args)

    # variables

    def _variable_expand(self, name: str, args: list[str]) -> str | None:
        v = self._variables.get(name)
        if v is None:
            return None
        if not args and v.exp_count:
            raise self._error(
                f"Recursive variable '{name}' references itself (eventually)"
            )
        if v.exp_count > _MAX_DEPTH:
            raise self._error("Too deep recursive expansion")
        v.exp_count += 1
        try:
            if v.flavor is VariableFlavor.RECURSIVE:
                return self._expand_with_args(v.value, args)
            return v.value
        finally:
            v.exp_count -= 1

    def variable_add(self, name: str, value: str, flavor: VariableFlavor) -> None:
        """Define or extend a variable; ``APPEND`` keeps an existing flavor."""
        existing = self._variables.get(name)
        append = False
        if flavor is VariableFlavor.APPEND:
            if existing is not None:
                flavor = existing.flavor
                append = True
            else:
                flavor = VariableFlavor.RECURSIVE
        new_value = self.expand_string(value) if flavor is VariableFlavor.SIMPLE else value
        if existing is None:
            self._variables[name] = _Variable(name, new_value, flavor)
            return
        existing.flavor = flavor
        existing.value = f"{existing.value} {new_value}" if append else new_value

    def variable_all_del(self) -> None:
        """Forget every variable."""
        self._variables.clear()

    # expansion

    def _eval_clause(self, text: str, args: list[str]) -> str:
        if _ARG_INDEX.fullmatch(text):
            n = int(text)
            if 0 < n <= len(args):
                return args[n - 1]

        pieces: list[str] = []
        nest = 0
        start = 0
        for pos, c in enumerate(text):
            if nest == 0 and c == ",":
                pieces.append(text[start:pos])
                start = pos + 1
            elif c == "(":
                nest += 1
            elif c == ")":
                nest -= 1
        pieces.append(text[start:])
        if len(pieces) > FUNCTION_MAX_ARGS:
            raise self._error("too many function arguments")

        name = self._expand_with_args(pieces[0], args)
        new_args = [self._expand_with_args(p, args) for p in pieces[1:]]

        res = self._variable_expand(name, new_args)
        if res is not None:
            return res
        res = self._function_expand(name, new_args)
        if res is not None:
            return res
        if not new_args:
            res = self._env_expand(name)
            if res is not None:
                return res
        return ""

    def _expand_dollar_at(self, text: str, pos: int, args: list[str]) -> tuple[str, int]:
        if pos >= len(text) or text[pos] != "(":
            return "$", pos
        start = pos + 1
        nest = 0
        for q in range(start, len(text)):
            c = text[q]
            if c == "(":
                nest += 1
            elif c == ")":
                if nest == 0:
                    return self._eval_clause(text[start:q], args), q + 1
                nest -= 1
        raise self._error(f"unterminated reference to '{text[start:]}': missing ')'")

    def _expand(
        self, text: str, pos: int, is_end: Callable[[str], bool], args: list[str]
    ) -> tuple[str, int]:
        out: list[str] = []
        start = pos
        while True:
            c = text[pos] if pos < len(text) else ""
            if c == "$":
                out.append(text[start:pos])
                expansion, pos = self._expand_dollar_at(text, pos + 1, args)
                out.append(expansion)
                start = pos
                continue
            if is_end(c):
                break
            pos += 1
        out.append(text[start:pos])
        return "".join(out), pos

    def _expand_with_args(self, text: str, args: list[str]) -> str:
        return self._expand(text, 0, _is_end_of_str, args)[0]

    def expand_string(self, text: str) -> str:
        """Expand every reference in ``text``; undefined names expand to nothing."""
        return self._expand_with_args(text, [])

    def expand_dollar(self, text: str) -> tuple[str, str]:
        """Expand the reference that follows a ``$``; return it and the rest of ``text``."""
        expansion, pos = self._expand_dollar_at(text, 0, [])
        return expansion, text[pos:]

    def expand_one_token(self, text: str) -> tuple[str, str]:
        """Expand a token up to the first separator; return it and the rest of ``text``."""
        expansion, pos = self._expand(text, 0, _is_end_of_token, [])
        return expansion, text[pos:]