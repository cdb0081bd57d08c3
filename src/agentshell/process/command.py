"""Joining a provider command into one string for a given shell."""

from __future__ import annotations

import re
import shlex
import subprocess
from collections.abc import Sequence
from enum import StrEnum

_POWERSHELL_SAFE = re.compile(r"[\w@%+=:,./\\-]+")


class ShellFamily(StrEnum):
    POSIX = "posix"
    POWERSHELL = "powershell"
    CMD = "cmd"


def shell_family(shell_path: str) -> ShellFamily:
    name = re.split(r"[/\\]", shell_path)[-1].lower().removesuffix(".exe")
    if name in {"pwsh", "powershell"}:
        return ShellFamily.POWERSHELL
    if name == "cmd":
        return ShellFamily.CMD
    return ShellFamily.POSIX


def join_command(binary: str, args: Sequence[str], family: ShellFamily) -> str:
    """Quote ``binary`` and ``args`` so the target shell sees them unchanged."""

    if family is ShellFamily.CMD:
        return subprocess.list2cmdline([binary, *args])
    if family is ShellFamily.POWERSHELL:
        quoted_binary = _powershell_quote(binary)
        rendered = " ".join(_powershell_quote(arg) for arg in args)
        # A quoted string on its own is an expression, not a command.
        prefix = "& " if quoted_binary != binary else ""
        return f"{prefix}{quoted_binary} {rendered}".rstrip()
    return shlex.join([binary, *args])


def _powershell_quote(value: str) -> str:
    if value and _POWERSHELL_SAFE.fullmatch(value):
        return value
    return "'" + value.replace("'", "''") + "'"
