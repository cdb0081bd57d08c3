"""Shared request and result types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator

ChunkCallback: TypeAlias = Callable[[str], None]
ErrorCallback: TypeAlias = Callable[[str], None]
CompleteCallback: TypeAlias = Callable[[], None]
WarningCallback: TypeAlias = Callable[[str], None]


class ProviderId(StrEnum):
    CLAUDE_CODE = "claude-code"
    CODEX_CLI = "codex-cli"
    CURSOR_CLI = "cursor-cli"
    GEMINI_CLI = "gemini-cli"


class OutputFormat(StrEnum):
    """Output shape requested from a provider."""

    JSON = "json"
    STREAM_JSON = "stream-json"


class ReasoningEffort(StrEnum):
    NONE = "none"
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    XHIGH = "xhigh"


class CLIRequest(BaseModel):
    """One normalized request for a provider CLI.

    The prompt never reaches the command line; it is written to stdin.
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderId
    model: str = ""
    prompt: str
    workdir: str
    reasoning_effort: ReasoningEffort | None = None
    output_format: OutputFormat = OutputFormat.JSON
    timeout_seconds: float | None = Field(default=None, gt=0)
    disallowed_tools: tuple[str, ...] = ()
    session_id: str | None = None
    preserve_session: bool = False

    @field_validator("session_id")
    @classmethod
    def _blank_session_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def streaming(self) -> bool:
        return self.output_format is OutputFormat.STREAM_JSON


@dataclass(frozen=True)
class ParsedResult:
    """Uniform outcome of batch decoding and of single-shot operations."""

    success: bool
    text: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, text: str) -> ParsedResult:
        return cls(success=True, text=text)

    @classmethod
    def failure(cls, error: str) -> ParsedResult:
        return cls(success=False, error=error)


@dataclass(frozen=True)
class StreamCallbacks:
    """Per-operation output callbacks for streaming tasks."""

    on_chunk: ChunkCallback
    on_complete: CompleteCallback
    on_error: ErrorCallback
    on_warning: WarningCallback | None = None
