"""Runtime logging helpers."""

from __future__ import annotations

import os
import sys
from typing import Any, Literal, TextIO

from loguru import logger
from rich.console import Console
from rich.logging import RichHandler

LogProfile = Literal["default", "rich"]

_PLAIN_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{line} | {message}"
_configured: tuple[LogProfile, str] | None = None


def profile_for(stream: TextIO) -> LogProfile:
    """Rich output for terminals, plain lines for pipes and log files."""

    isatty = getattr(stream, "isatty", None)
    return "rich" if isatty is not None and isatty() else "default"


def _sink_options(profile: LogProfile) -> dict[str, Any]:
    if profile == "rich":
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
        return {"sink": handler, "format": "{message}"}
    # Resolved at call time so redirected stderr (tests, CliRunner) is honoured.
    return {"sink": sys.stderr, "format": _PLAIN_FORMAT}


def configure_logging(*, profile: LogProfile = "default", level: str | None = None) -> None:
    """Install a single loguru sink; repeated calls with the same settings are no-ops."""

    global _configured
    resolved_level = (level or os.getenv("AGENTSHELL_LOG_LEVEL", "INFO")).upper()
    if _configured == (profile, resolved_level):
        return

    logger.remove()
    logger.add(level=resolved_level, backtrace=False, diagnose=False, **_sink_options(profile))
    _configured = (profile, resolved_level)
