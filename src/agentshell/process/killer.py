"""Process-tree termination strategies."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from typing import Protocol

from loguru import logger

TASKKILL_TIMEOUT_SECONDS = 10


class TreeKiller(Protocol):
    def kill_tree(self, pid: int, sig: int = signal.SIGTERM) -> None:
        """Terminate ``pid`` and all of its descendants. Never raises."""


class ProcessGroupKiller:
    """Signal the process group the child leads (it was started in a new session)."""

    def kill_tree(self, pid: int, sig: int = signal.SIGTERM) -> None:
        try:
            os.killpg(pid, sig)
        except ProcessLookupError:
            logger.debug("process.kill_tree group_gone pid={}", pid)
        except PermissionError:
            logger.warning("process.kill_tree permission_denied pid={}", pid)


class TaskkillKiller:
    """Windows has no process groups to signal; ``taskkill /t`` walks the tree."""

    def kill_tree(self, pid: int, sig: int = signal.SIGTERM) -> None:
        _ = sig
        try:
            subprocess.run(  # noqa: S603
                ["taskkill", "/pid", str(pid), "/t", "/f"],  # noqa: S607
                capture_output=True,
                timeout=TASKKILL_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.SubprocessError):
            logger.opt(exception=True).warning("process.kill_tree taskkill_failed pid={}", pid)


def default_killer(platform: str | None = None) -> TreeKiller:
    if (platform or sys.platform) == "win32":
        return TaskkillKiller()
    return ProcessGroupKiller()
