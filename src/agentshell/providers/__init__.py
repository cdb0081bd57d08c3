"""Provider registry.

Adding a provider means adding a builder/decoder pair here; there is no
dynamic loading.
"""

from __future__ import annotations

from agentshell.errors import UnknownProviderError
from agentshell.types import ProviderId

from .base import CommandLine, Provider
from .claude import CLAUDE_PROVIDER, build_claude_args
from .codex import CODEX_PROVIDER, build_codex_args
from .cursor import CURSOR_PROVIDER, build_cursor_args
from .gemini import GEMINI_PROVIDER, build_gemini_args

PROVIDERS: dict[ProviderId, Provider] = {
    provider.id: provider for provider in (CLAUDE_PROVIDER, CODEX_PROVIDER, CURSOR_PROVIDER, GEMINI_PROVIDER)
}


def get_provider(provider_id: ProviderId | str) -> Provider:
    try:
        return PROVIDERS[ProviderId(provider_id)]
    except ValueError:
        available = ", ".join(item.value for item in PROVIDERS)
        raise UnknownProviderError(f"Unknown provider '{provider_id}'. Available: {available}") from None


__all__ = [
    "PROVIDERS",
    "CommandLine",
    "Provider",
    "build_claude_args",
    "build_codex_args",
    "build_cursor_args",
    "build_gemini_args",
    "get_provider",
]
