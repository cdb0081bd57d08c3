"""Incremental decoders for provider stream output.

Each decoder is a plain function over an explicit :class:`DecoderState`, so
the same input split at any chunk boundary yields the same fragments.
Malformed or unrecognized records are skipped; a provider stream is never
trusted to be well-formed.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from .ansi import strip_ansi


@dataclass
class DecoderState:
    """Unparsed trailing text for one operation."""

    buffer: str = ""
    has_seen_delta: bool = False


StreamDecodeFn: TypeAlias = Callable[[DecoderState, str], list[str]]


def decode_json_objects(state: DecoderState, chunk: str) -> list[str]:
    """Extract text from concatenated JSON objects by tracking brace depth."""

    buffer = strip_ansi(state.buffer + chunk)
    fragments: list[str] = []
    search_start = 0
    while search_start < len(buffer):
        start = buffer.find("{", search_start)
        if start == -1:
            break
        end = _find_object_end(buffer, start)
        if end == -1:
            break
        candidate = buffer[start : end + 1]
        search_start = end + 1
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            fragments.extend(_object_fragments(state, payload))
    state.buffer = buffer[search_start:]
    return fragments


def decode_json_lines(state: DecoderState, chunk: str) -> list[str]:
    """Extract assistant text from newline-delimited JSON records."""

    lines = (state.buffer + chunk).split("\n")
    state.buffer = lines.pop()
    fragments: list[str] = []
    for line in lines:
        trimmed = strip_ansi(line).strip()
        if not trimmed.startswith("{"):
            continue
        try:
            payload = json.loads(trimmed)
        except json.JSONDecodeError:
            continue
        if not isinstance(payload, dict):
            continue
        # {"type":"message","role":"assistant","content":"...","delta":true}
        content = payload.get("content")
        if payload.get("type") == "message" and payload.get("role") == "assistant" and _is_text(content):
            fragments.append(content)
    return fragments


class StreamDecoder:
    """Pairs a decode function with the state owned by one operation."""

    def __init__(self, decode: StreamDecodeFn) -> None:
        self.decode = decode
        self.state = DecoderState()

    def feed(self, chunk: str) -> list[str]:
        return self.decode(self.state, chunk)

    def finish(self) -> list[str]:
        """Flush a final record that was not newline-terminated."""

        return self.decode(self.state, "\n")


def _find_object_end(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def _object_fragments(state: DecoderState, payload: dict[str, Any]) -> list[str]:
    kind = payload.get("type")
    if kind == "stream_event":
        # {"type":"stream_event","event":{"type":"content_block_delta","delta":{"text":"..."}}}
        event = payload.get("event")
        if isinstance(event, dict) and event.get("type") == "content_block_delta":
            return _delta_fragments(state, event)
        return []
    if kind == "assistant":
        # Whole messages repeat what the deltas already delivered.
        if state.has_seen_delta:
            return []
        return _message_text_blocks(payload.get("message"))
    if kind == "content_block_delta":
        return _delta_fragments(state, payload)
    if kind == "text" and _is_text(payload.get("text")):
        return [payload["text"]]
    return []


def _delta_fragments(state: DecoderState, event: dict[str, Any]) -> list[str]:
    delta = event.get("delta")
    text = delta.get("text") if isinstance(delta, dict) else None
    if not _is_text(text):
        return []
    state.has_seen_delta = True
    return [text]


def _message_text_blocks(message: Any) -> list[str]:
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [
        block["text"]
        for block in content
        if isinstance(block, dict) and block.get("type") == "text" and _is_text(block.get("text"))
    ]


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value)
