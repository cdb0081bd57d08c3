"""Provider capability records and shared builder helpers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from agentshell.decoding import BatchDecodeFn, StreamDecodeFn, StreamDecoder
from agentshell.types import CLIRequest, ProviderId


@dataclass(frozen=True)
class CommandLine:
    """Provider binary plus its ordered argument vector.

    ``warnings`` lists requested behavior the provider will not honor.
    """

    binary: str
    args: tuple[str, ...]
    warnings: tuple[str, ...] = ()


ArgsBuilder: TypeAlias = Callable[[CLIRequest], CommandLine]


@dataclass(frozen=True)
class Provider:
    """Everything the orchestrator needs to drive one provider family."""

    id: ProviderId
    binary: str
    models: tuple[str, ...]
    default_model: str
    build_args: ArgsBuilder
    decode_batch: BatchDecodeFn
    decode_stream: StreamDecodeFn | None = None

    @property
    def supports_streaming(self) -> bool:
        return self.decode_stream is not None

    def new_stream_decoder(self) -> StreamDecoder | None:
        if self.decode_stream is None:
            return None
        return StreamDecoder(self.decode_stream)


@dataclass
class ArgsDraft:
    """Mutable scratch space used while a builder assembles its vector."""

    args: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def finish(self, binary: str) -> CommandLine:
        return CommandLine(binary=binary, args=tuple(self.args), warnings=tuple(self.warnings))


def resolve_model(
    draft: ArgsDraft, provider: ProviderId, requested: str, models: tuple[str, ...], default: str
) -> str:
    if not requested:
        return default
    if requested in models:
        return requested
    draft.warnings.append(f"model '{requested}' is not offered by {provider.value}; using '{default}'")
    return default


def warn_unsupported_tools(draft: ArgsDraft, request: CLIRequest, detail: str) -> None:
    if request.disallowed_tools:
        restricted = ", ".join(request.disallowed_tools)
        draft.warnings.append(f"{request.provider.value} ignores tool restrictions ({restricted}); {detail}")


def warn_unsupported_session(draft: ArgsDraft, request: CLIRequest) -> None:
    if request.session_id:
        draft.warnings.append(f"{request.provider.value} cannot attach to session {request.session_id}")
