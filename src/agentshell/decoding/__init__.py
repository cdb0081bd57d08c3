"""Provider output decoders."""

from .ansi import strip_ansi
from .batch import PARSE_FAILURE, BatchDecodeFn, parse_codex_output, parse_result_output
from .stream import DecoderState, StreamDecodeFn, StreamDecoder, decode_json_lines, decode_json_objects

__all__ = [
    "PARSE_FAILURE",
    "BatchDecodeFn",
    "DecoderState",
    "StreamDecodeFn",
    "StreamDecoder",
    "decode_json_lines",
    "decode_json_objects",
    "parse_codex_output",
    "parse_result_output",
    "strip_ansi",
]
