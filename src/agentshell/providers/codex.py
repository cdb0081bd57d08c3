"""OpenAI Codex CLI (``codex exec``). Batch output only."""

from __future__ import annotations

from agentshell.decoding import parse_codex_output
from agentshell.types import CLIRequest, ProviderId, ReasoningEffort

from .base import ArgsDraft, CommandLine, Provider, resolve_model, warn_unsupported_session, warn_unsupported_tools

BINARY = "codex"
MODELS = ("gpt-5.2", "gpt-5.2-codex")
DEFAULT_MODEL = "gpt-5.2"
DEFAULT_REASONING_EFFORT = ReasoningEffort.MEDIUM


def build_codex_args(request: CLIRequest) -> CommandLine:
    draft = ArgsDraft()
    model = resolve_model(draft, request.provider, request.model, MODELS, DEFAULT_MODEL)
    effort = request.reasoning_effort or DEFAULT_REASONING_EFFORT
    draft.args.extend(
        [
            "exec",
            "--skip-git-repo-check",
            "--sandbox",
            "read-only",
            "-m",
            model,
            # codex only exposes generic config overrides for effort.
            "-c",
            f"model_reasoning_effort={effort.value}",
            "--json",
        ]
    )
    warn_unsupported_tools(draft, request, "the read-only sandbox is the only restriction applied")
    warn_unsupported_session(draft, request)
    return draft.finish(BINARY)


CODEX_PROVIDER = Provider(
    id=ProviderId.CODEX_CLI,
    binary=BINARY,
    models=MODELS,
    default_model=DEFAULT_MODEL,
    build_args=build_codex_args,
    decode_batch=parse_codex_output,
)
