"""Shell dialects for the interactive worker protocol.

A dialect knows how to start a shell that reads commands from stdin and how to
express the three protocol lines the worker writes: define the session
sentinel, echo it to both output streams, and exit.
"""

from __future__ import annotations

from typing import List, Optional

from stewart.core.config import Cfg
from stewart.core.deps import Deps

SENTINEL_VARIABLE = "__st3wart_sentinel"


class ShellDialect:
    """Base dialect; subclasses fill in the command syntax."""

    name = "shell"
    encoding: Optional[str] = "utf-8"

    def __init__(self, executable: Optional[str] = None, args: Optional[List[str]] = None):
        self.executable = executable or self.default_executable()
        self.args = list(args) if args is not None else self.default_args()

    def default_executable(self) -> str:
        raise NotImplementedError

    def default_args(self) -> List[str]:
        return []

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    def define_sentinel(self, token: str) -> str:
        raise NotImplementedError

    def echo_sentinel(self) -> str:
        raise NotImplementedError

    def exit_command(self) -> str:
        return "exit"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.executable!r})"


class PowerShellDialect(ShellDialect):
    """Windows PowerShell reading a command per line from stdin."""

    name = "powershell"
    encoding = None  # console code page

    def default_executable(self) -> str:
        return Deps.POWERSHELL or "powershell.exe"

    def default_args(self) -> List[str]:
        # NoProfile for fast startup; NoExit keeps the session alive between commands
        return ["-NoExit", "-NoProfile", "-NonInteractive", "-Command", "-"]

    def define_sentinel(self, token: str) -> str:
        return f"${SENTINEL_VARIABLE} = '{token}'"

    def echo_sentinel(self) -> str:
        return (
            f"Write-Output ${SENTINEL_VARIABLE}; "
            f"[Console]::Error.WriteLine(${SENTINEL_VARIABLE})"
        )


class PosixDialect(ShellDialect):
    """POSIX ``sh`` reading commands from stdin."""

    name = "sh"

    def default_executable(self) -> str:
        return Deps.POSIX_SH or "/bin/sh"

    def define_sentinel(self, token: str) -> str:
        return f"{SENTINEL_VARIABLE}='{token}'"

    def echo_sentinel(self) -> str:
        return (
            f"printf '%s\\n' \"${SENTINEL_VARIABLE}\"; "
            f"printf '%s\\n' \"${SENTINEL_VARIABLE}\" >&2"
        )


def default_dialect() -> ShellDialect:
    """PowerShell on Windows, ``sh`` everywhere else."""
    if Cfg.IS_WIN:
        return PowerShellDialect()
    return PosixDialect()
