"""Shell discovery and preference resolution."""

from __future__ import annotations

import os
import re
import subprocess
import sys
from collections.abc import Callable, Mapping

from loguru import logger

from .definitions import (
    LOGIN_EXEC_ARGS,
    POSIX_COMMON_SHELLS,
    POSIX_LAST_RESORT,
    POSIX_LAST_RESORT_EXEC,
    POWERSHELL_EXEC_ARGS,
    PWSH7_PATH,
    WINDOWS_LAST_RESORT,
    WINDOWS_LAST_RESORT_EXEC,
    ResolvedShell,
    ShellConfig,
    ShellDefinition,
    ShellInfo,
    ShellUse,
    unix_shells,
    windows_shells,
)

WSL_PROBE_TIMEOUT_SECONDS = 3


class ShellDetector:
    """Resolve shell preferences into concrete ``(path, args)`` pairs.

    Resolution never fails: an unavailable shell degrades to a documented
    fallback and finally to a last-resort shell for the OS. Results are
    cached until :meth:`clear_cache`, so callers must clear it after new
    shells are installed.
    """

    def __init__(
        self,
        platform: str | None = None,
        environ: Mapping[str, str] | None = None,
        exists: Callable[[str], bool] = os.path.exists,
    ) -> None:
        self.platform = platform or sys.platform
        self._environ = environ if environ is not None else os.environ
        self._exists = exists
        self._cached_shells: list[ShellInfo] | None = None
        self._resolved: dict[tuple[ShellConfig, ShellUse], ResolvedShell] = {}
        self._wsl_available: bool | None = None

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    def definitions(self) -> tuple[ShellDefinition, ...]:
        return windows_shells(self._environ) if self.is_windows else unix_shells(self._environ)

    def detect_shells(self) -> list[ShellInfo]:
        if self._cached_shells is None:
            self._cached_shells = self._detect_windows_shells() if self.is_windows else self._detect_unix_shells()
        return list(self._cached_shells)

    def resolve_shell(self, config: ShellConfig, use: ShellUse) -> ResolvedShell:
        key = (config, use)
        cached = self._resolved.get(key)
        if cached is not None:
            return cached
        resolved = self._resolve(config, use)
        logger.debug(
            "shell.resolved type={} use={} path={} args={}", config.shell_type, use.value, resolved.path, resolved.args
        )
        self._resolved[key] = resolved
        return resolved

    def resolve_shell_config(self, config: ShellConfig) -> ResolvedShell:
        """Resolve the shell used for interactive sessions."""

        return self.resolve_shell(config, ShellUse.INTERACTIVE)

    def resolve_shell_for_command(self, config: ShellConfig) -> ResolvedShell:
        """Resolve the shell and the args that precede a command string."""

        return self.resolve_shell(config, ShellUse.EXECUTE)

    def get_default_shell(self) -> str:
        if self.is_windows:
            return PWSH7_PATH if self._exists(PWSH7_PATH) else "powershell.exe"

        shell = self._environ.get("SHELL")
        # GUI launches often carry a stale absolute $SHELL; relative names are left to PATH.
        if shell and (not shell.startswith("/") or self._exists(shell)):
            return shell
        return self._first_common_shell()

    def clear_cache(self) -> None:
        self._cached_shells = None
        self._resolved.clear()
        self._wsl_available = None

    def infer_exec_args(self, shell_path: str, custom_args: tuple[str, ...] | None = None) -> tuple[str, ...]:
        """Guess the "run this command string" flags from a shell's file name."""

        shell_name = re.split(r"[/\\]", shell_path)[-1].lower()
        stem = shell_name.removesuffix(".exe")
        for definition in self._all_definitions():
            if any(_path_stem(path) == stem for path in definition.paths):
                return definition.exec_args

        if "pwsh" in stem or "powershell" in stem:
            return POWERSHELL_EXEC_ARGS
        if "cmd" in stem:
            return ("/c",)
        if "bash" in stem or "zsh" in stem:
            return LOGIN_EXEC_ARGS
        if "fish" in stem or "nu" in stem:
            return ("-l", "-c")
        if custom_args:
            return (*custom_args, "-c")
        return ("/c",) if self.is_windows else ("-c",)

    def _resolve(self, config: ShellConfig, use: ShellUse) -> ResolvedShell:
        if config.shell_type == "custom":
            path = config.custom_shell_path or self._last_resort(use).path
            if use is ShellUse.EXECUTE:
                return ResolvedShell(path, self.infer_exec_args(path, config.custom_shell_args))
            return ResolvedShell(path, tuple(config.custom_shell_args or ()))

        if config.shell_type == "system":
            path = self._system_shell()
            if use is ShellUse.EXECUTE:
                args = self.infer_exec_args(path)
            else:
                args = ("-NoLogo",) if self.is_windows else ("-i", "-l")
            return ResolvedShell(path, _adjust_args_for_shell(path, args))

        definitions = self.definitions()
        definition = next((item for item in definitions if item.id == config.shell_type), None)
        if definition is not None:
            path = self._find_available_path(definition.paths)
            if path is not None:
                return ResolvedShell(path, _args_for(definition, use))

            if self.is_windows and definition.id == "powershell7":
                fallback = next((item for item in definitions if item.id == "powershell"), None)
                if fallback is not None:
                    fallback_path = self._find_available_path(fallback.paths)
                    if fallback_path is not None:
                        logger.info("shell.fallback from=powershell7 to=powershell")
                        return ResolvedShell(fallback_path, _args_for(fallback, use))

        logger.warning("shell.unavailable type={} using last resort", config.shell_type)
        return self._last_resort(use)

    def _system_shell(self) -> str:
        if self.is_windows:
            return self.get_default_shell()
        shell = self._environ.get("SHELL")
        if shell and shell.startswith("/") and self._exists(shell):
            return shell
        return self._first_common_shell()

    def _first_common_shell(self) -> str:
        for candidate in POSIX_COMMON_SHELLS:
            if self._exists(candidate):
                return candidate
        return POSIX_LAST_RESORT.path

    def _last_resort(self, use: ShellUse) -> ResolvedShell:
        if self.is_windows:
            return WINDOWS_LAST_RESORT_EXEC if use is ShellUse.EXECUTE else WINDOWS_LAST_RESORT
        return POSIX_LAST_RESORT_EXEC if use is ShellUse.EXECUTE else POSIX_LAST_RESORT

    def _find_available_path(self, paths: tuple[str, ...]) -> str | None:
        for path in paths:
            if "\\" in path or path.startswith("/"):
                if self._exists(path):
                    return path
            else:
                # Bare names are resolved through PATH at spawn time.
                return path
        return None

    def _all_definitions(self) -> tuple[ShellDefinition, ...]:
        others = unix_shells(self._environ) if self.is_windows else windows_shells(self._environ)
        return (*self.definitions(), *others)

    def _is_wsl_available(self) -> bool:
        if self._wsl_available is not None:
            return self._wsl_available
        if not self.is_windows:
            self._wsl_available = False
            return False
        try:
            subprocess.run(  # noqa: S603
                ["wsl", "--status"],  # noqa: S607
                capture_output=True,
                timeout=WSL_PROBE_TIMEOUT_SECONDS,
                check=True,
            )
        except (OSError, subprocess.SubprocessError):
            self._wsl_available = False
        else:
            self._wsl_available = True
        return self._wsl_available

    def _detect_windows_shells(self) -> list[ShellInfo]:
        shells: list[ShellInfo] = []
        for definition in windows_shells(self._environ):
            if definition.is_wsl:
                if self._is_wsl_available():
                    shells.append(
                        ShellInfo(
                            id=definition.id,
                            name=definition.name,
                            path="wsl.exe",
                            args=definition.args,
                            available=True,
                            is_wsl=True,
                        )
                    )
                continue
            shells.append(self._shell_info(definition))
        return shells

    def _detect_unix_shells(self) -> list[ShellInfo]:
        shells: list[ShellInfo] = []
        system_shell = self._environ.get("SHELL")
        if system_shell:
            system_name = system_shell.rsplit("/", 1)[-1] or "shell"
            shells.append(
                ShellInfo(
                    id="system",
                    name=f"System Default ({system_name})",
                    path=system_shell,
                    args=("-i", "-l"),
                    available=self._exists(system_shell),
                )
            )
        shells.extend(self._shell_info(definition) for definition in unix_shells(self._environ))
        return shells

    def _shell_info(self, definition: ShellDefinition) -> ShellInfo:
        path = self._find_available_path(definition.paths)
        return ShellInfo(
            id=definition.id,
            name=definition.name,
            path=path or definition.paths[0],
            args=definition.args,
            available=path is not None,
        )


def _args_for(definition: ShellDefinition, use: ShellUse) -> tuple[str, ...]:
    return definition.exec_args if use is ShellUse.EXECUTE else definition.args


def _path_stem(path: str) -> str:
    return re.split(r"[/\\]", path)[-1].lower().removesuffix(".exe")


def _adjust_args_for_shell(shell: str, args: tuple[str, ...]) -> tuple[str, ...]:
    # dash, the usual /bin/sh, rejects the login flag.
    if shell.endswith("/sh"):
        return tuple(arg for arg in args if arg != "-l")
    return args
