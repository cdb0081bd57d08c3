"""Shell discovery and resolution."""

from .definitions import ResolvedShell, ShellConfig, ShellDefinition, ShellInfo, ShellUse
from .detector import ShellDetector

__all__ = [
    "ResolvedShell",
    "ShellConfig",
    "ShellDefinition",
    "ShellDetector",
    "ShellInfo",
    "ShellUse",
]
