"""Cursor agent CLI (``cursor-agent``).

Its stream-json output follows the Claude event shapes, so it shares the
brace-depth decoder.
"""

from __future__ import annotations

from agentshell.decoding import decode_json_objects, parse_result_output
from agentshell.types import CLIRequest, ProviderId

from .base import ArgsDraft, CommandLine, Provider, resolve_model, warn_unsupported_tools

BINARY = "cursor-agent"
MODELS = ("auto", "composer-1", "gpt-5.2", "sonnet-4.5", "opus-4.6")
DEFAULT_MODEL = "auto"


def build_cursor_args(request: CLIRequest) -> CommandLine:
    draft = ArgsDraft()
    model = resolve_model(draft, request.provider, request.model, MODELS, DEFAULT_MODEL)
    draft.args.extend(["-p", "--model", model, "--output-format", request.output_format.value])
    if request.streaming:
        draft.args.append("--stream-partial-output")
    if request.session_id:
        draft.args.extend(["--resume", request.session_id])
    warn_unsupported_tools(draft, request, "the agent may edit files or run commands such as git")
    return draft.finish(BINARY)


CURSOR_PROVIDER = Provider(
    id=ProviderId.CURSOR_CLI,
    binary=BINARY,
    models=MODELS,
    default_model=DEFAULT_MODEL,
    build_args=build_cursor_args,
    decode_batch=parse_result_output,
    decode_stream=decode_json_objects,
)
