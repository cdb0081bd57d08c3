"""Application-level exception types for agentshell."""

from __future__ import annotations


class AgentShellError(Exception):
    """Base exception for agentshell."""


class ConfigurationError(AgentShellError):
    """Raised when settings cannot be turned into a usable configuration."""


class UnknownProviderError(AgentShellError, KeyError):
    """Raised when a provider id is not in the registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else super().__str__()


class InvalidRequestError(AgentShellError, ValueError):
    """Raised when a request cannot be sent to any provider."""


class SpawnError(AgentShellError):
    """Raised when the shell or provider process could not be started."""


class OperationExistsError(AgentShellError):
    """Raised when an operation id is registered twice."""
