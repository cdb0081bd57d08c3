"""Claude Code CLI (``claude``)."""

from __future__ import annotations

from loguru import logger

from agentshell.decoding import decode_json_objects, parse_result_output
from agentshell.types import CLIRequest, ProviderId

from .base import ArgsDraft, CommandLine, Provider, resolve_model

BINARY = "claude"
MODELS = ("haiku", "sonnet", "opus")
DEFAULT_MODEL = "sonnet"


def build_claude_args(request: CLIRequest) -> CommandLine:
    draft = ArgsDraft()
    model = resolve_model(draft, request.provider, request.model, MODELS, DEFAULT_MODEL)
    draft.args.extend(["-p", "--model", model, "--output-format", request.output_format.value])
    if request.streaming:
        # Print mode buffers stream-json without these two.
        draft.args.extend(["--verbose", "--include-partial-messages"])
    if request.disallowed_tools:
        draft.args.extend(["--disallowedTools", *request.disallowed_tools])
    if request.session_id:
        draft.args.extend(["--session-id", request.session_id])
    if not request.preserve_session:
        draft.args.append("--no-session-persistence")
    if request.reasoning_effort is not None:
        logger.debug("provider.claude reasoning_effort={} ignored", request.reasoning_effort.value)
    return draft.finish(BINARY)


CLAUDE_PROVIDER = Provider(
    id=ProviderId.CLAUDE_CODE,
    binary=BINARY,
    models=MODELS,
    default_model=DEFAULT_MODEL,
    build_args=build_claude_args,
    decode_batch=parse_result_output,
    decode_stream=decode_json_objects,
)
