"""Provider process launching and teardown."""

from .command import ShellFamily, join_command, shell_family
from .environment import build_child_env, build_enhanced_path
from .killer import ProcessGroupKiller, TaskkillKiller, TreeKiller, default_killer
from .launcher import ProcessLauncher, SpawnedOperation

__all__ = [
    "ProcessGroupKiller",
    "ProcessLauncher",
    "ShellFamily",
    "SpawnedOperation",
    "TaskkillKiller",
    "TreeKiller",
    "build_child_env",
    "build_enhanced_path",
    "default_killer",
    "join_command",
    "shell_family",
]
