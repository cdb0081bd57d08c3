"""Terminal escape sequence removal."""

from __future__ import annotations

import re

# CSI (colors, cursor moves), OSC (titles, hyperlinks) and two-byte escapes.
# "[" and "]" are not two-byte escapes, so a CSI/OSC cut off at a chunk
# boundary stays in the buffer until its terminator arrives.
_ANSI_PATTERN = re.compile(
    r"""
    \x1b\[[0-?]*[ -/]*[@-~]
    | \x1b\][^\x07\x1b]*(?:\x07|\x1b\\)
    | \x1b[@-Z\\^_]
    """,
    re.VERBOSE,
)


def strip_ansi(text: str) -> str:
    return _ANSI_PATTERN.sub("", text)
