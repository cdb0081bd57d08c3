"""Static shell tables per OS family."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum


class ShellUse(StrEnum):
    INTERACTIVE = "interactive"
    EXECUTE = "execute-command"


@dataclass(frozen=True)
class ShellDefinition:
    """A known shell with candidate paths in priority order."""

    id: str
    name: str
    paths: tuple[str, ...]
    args: tuple[str, ...]
    # Args that precede a command string, e.g. ("-c",) for sh or ("/c",) for cmd.
    exec_args: tuple[str, ...]
    is_wsl: bool = False


@dataclass(frozen=True)
class ShellInfo:
    """Detection result for one shell."""

    id: str
    name: str
    path: str
    args: tuple[str, ...]
    available: bool
    is_wsl: bool = False


@dataclass(frozen=True)
class ShellConfig:
    """User shell preference.

    ``shell_type`` is a definition id, ``"system"`` or ``"custom"``.
    """

    shell_type: str = "system"
    custom_shell_path: str | None = None
    custom_shell_args: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ResolvedShell:
    path: str
    args: tuple[str, ...]


PWSH7_PATH = "C:\\Program Files\\PowerShell\\7\\pwsh.exe"
# -Login loads the user profile so version managers (vfox, nvm-windows) apply;
# -ExecutionPolicy Bypass lets npm's .ps1 shims run.
PWSH7_EXEC_ARGS = ("-NoLogo", "-ExecutionPolicy", "Bypass", "-Login", "-Command")
POWERSHELL_EXEC_ARGS = ("-NoLogo", "-ExecutionPolicy", "Bypass", "-Command")
LOGIN_EXEC_ARGS = ("-i", "-l", "-c")

WINDOWS_LAST_RESORT = ResolvedShell("powershell.exe", ("-NoLogo",))
WINDOWS_LAST_RESORT_EXEC = ResolvedShell("powershell.exe", POWERSHELL_EXEC_ARGS)
POSIX_LAST_RESORT = ResolvedShell("/bin/sh", ())
POSIX_LAST_RESORT_EXEC = ResolvedShell("/bin/sh", ("-c",))

POSIX_COMMON_SHELLS = ("/bin/zsh", "/bin/bash", "/bin/sh")


def windows_shells(environ: Mapping[str, str]) -> tuple[ShellDefinition, ...]:
    profile = environ.get("USERPROFILE", "")
    return (
        ShellDefinition(
            id="powershell7",
            name="PowerShell 7",
            paths=(PWSH7_PATH,),
            args=("-NoLogo",),
            exec_args=PWSH7_EXEC_ARGS,
        ),
        ShellDefinition(
            id="powershell",
            name="PowerShell",
            paths=("powershell.exe",),
            args=("-NoLogo",),
            exec_args=POWERSHELL_EXEC_ARGS,
        ),
        ShellDefinition(id="cmd", name="Command Prompt", paths=("cmd.exe",), args=(), exec_args=("/c",)),
        ShellDefinition(
            id="gitbash",
            name="Git Bash",
            paths=("C:\\Program Files\\Git\\bin\\bash.exe", "C:\\Program Files (x86)\\Git\\bin\\bash.exe"),
            args=("-i", "-l"),
            exec_args=LOGIN_EXEC_ARGS,
        ),
        ShellDefinition(
            id="nushell",
            name="Nushell",
            paths=(
                "C:\\Program Files\\nu\\bin\\nu.exe",
                f"{profile}\\.cargo\\bin\\nu.exe",
                f"{profile}\\scoop\\shims\\nu.exe",
            ),
            args=("-l", "-i"),
            exec_args=("-l", "-c"),
        ),
        ShellDefinition(
            id="wsl",
            name="WSL",
            paths=("wsl.exe",),
            args=(),
            exec_args=("--", "bash", "-ilc"),
            is_wsl=True,
        ),
    )


def unix_shells(environ: Mapping[str, str]) -> tuple[ShellDefinition, ...]:
    home = environ.get("HOME", "")
    return (
        ShellDefinition(
            id="zsh",
            name="Zsh",
            paths=("/bin/zsh", "/usr/bin/zsh", "/usr/local/bin/zsh", "/opt/homebrew/bin/zsh"),
            args=("-i", "-l"),
            exec_args=LOGIN_EXEC_ARGS,
        ),
        ShellDefinition(
            id="bash",
            name="Bash",
            paths=("/bin/bash", "/usr/bin/bash", "/usr/local/bin/bash"),
            args=("-i", "-l"),
            exec_args=LOGIN_EXEC_ARGS,
        ),
        ShellDefinition(
            id="fish",
            name="Fish",
            paths=("/usr/bin/fish", "/usr/local/bin/fish", "/opt/homebrew/bin/fish"),
            args=("-i", "-l"),
            exec_args=("-l", "-c"),
        ),
        ShellDefinition(
            id="nushell",
            name="Nushell",
            paths=("/usr/local/bin/nu", "/opt/homebrew/bin/nu", f"{home}/.cargo/bin/nu"),
            args=("-l", "-i"),
            exec_args=("-l", "-c"),
        ),
        ShellDefinition(id="sh", name="Sh", paths=("/bin/sh",), args=(), exec_args=("-c",)),
    )
