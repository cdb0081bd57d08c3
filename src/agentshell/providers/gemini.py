"""Google Gemini CLI (``gemini``)."""

from __future__ import annotations

from agentshell.decoding import decode_json_lines, parse_result_output
from agentshell.types import CLIRequest, ProviderId

from .base import ArgsDraft, CommandLine, Provider, resolve_model, warn_unsupported_session, warn_unsupported_tools

BINARY = "gemini"
MODELS = ("gemini-3-pro-preview", "gemini-3-flash-preview")
DEFAULT_MODEL = "gemini-3-flash-preview"


def build_gemini_args(request: CLIRequest) -> CommandLine:
    draft = ArgsDraft()
    model = resolve_model(draft, request.provider, request.model, MODELS, DEFAULT_MODEL)
    draft.args.extend(["-m", model, "--output-format", request.output_format.value])
    warn_unsupported_tools(draft, request, "the agent may still call its built-in tools")
    warn_unsupported_session(draft, request)
    return draft.finish(BINARY)


GEMINI_PROVIDER = Provider(
    id=ProviderId.GEMINI_CLI,
    binary=BINARY,
    models=MODELS,
    default_model=DEFAULT_MODEL,
    build_args=build_gemini_args,
    decode_batch=parse_result_output,
    decode_stream=decode_json_lines,
)
