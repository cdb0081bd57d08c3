"""Shell-aware process orchestration for AI coding CLIs."""

from agentshell.config import Settings, load_settings
from agentshell.errors import (
    AgentShellError,
    ConfigurationError,
    InvalidRequestError,
    OperationExistsError,
    SpawnError,
    UnknownProviderError,
)
from agentshell.orchestrator import CLIOrchestrator
from agentshell.providers import PROVIDERS, get_provider
from agentshell.shells import ResolvedShell, ShellConfig, ShellDetector
from agentshell.types import (
    CLIRequest,
    OutputFormat,
    ParsedResult,
    ProviderId,
    ReasoningEffort,
    StreamCallbacks,
)

__all__ = [
    "PROVIDERS",
    "AgentShellError",
    "CLIOrchestrator",
    "CLIRequest",
    "ConfigurationError",
    "InvalidRequestError",
    "OperationExistsError",
    "OutputFormat",
    "ParsedResult",
    "ProviderId",
    "ReasoningEffort",
    "ResolvedShell",
    "Settings",
    "ShellConfig",
    "ShellDetector",
    "SpawnError",
    "StreamCallbacks",
    "UnknownProviderError",
    "load_settings",
]
__version__ = "0.1.0"
