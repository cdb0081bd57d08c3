"""Child process environment preparation."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from pathlib import Path

DEFAULT_LANG = "en_US.UTF-8"


def user_tool_dirs(home: Path) -> list[str]:
    """Directories where version managers and package managers put binaries.

    GUI launches do not inherit the login PATH, so these are added up front.
    """

    return [
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/opt/homebrew/sbin",
        str(home / ".nvm" / "versions" / "node" / "current" / "bin"),
        str(home / ".npm-global" / "bin"),
        str(home / "Library" / "pnpm"),
        str(home / ".local" / "share" / "pnpm"),
        str(home / ".bun" / "bin"),
        str(home / ".cargo" / "bin"),
        str(home / ".local" / "share" / "mise" / "shims"),
        str(home / ".local" / "bin"),
    ]


def build_enhanced_path(current_path: str, home: Path) -> str:
    entries = [*user_tool_dirs(home), *current_path.split(os.pathsep)]
    # Deduplicate while preserving order
    seen: set[str] = set()
    unique: list[str] = []
    for entry in entries:
        if entry and entry not in seen:
            unique.append(entry)
            seen.add(entry)
    return os.pathsep.join(unique)


def build_child_env(
    base: Mapping[str, str] | None = None,
    extra: Mapping[str, str] | None = None,
    *,
    platform: str | None = None,
) -> dict[str, str]:
    """Inherit the parent environment, apply overrides and fill PATH/locale gaps."""

    env = dict(os.environ if base is None else base)
    if extra:
        env.update(extra)
    if (platform or sys.platform) != "win32":
        home = Path(env.get("HOME") or Path.home())
        env["PATH"] = build_enhanced_path(env.get("PATH", ""), home)
    env.setdefault("LANG", DEFAULT_LANG)
    env.setdefault("LC_ALL", env["LANG"])
    return env
