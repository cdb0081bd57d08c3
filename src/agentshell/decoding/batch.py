"""Whole-output decoders run after the provider process exits."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, TypeAlias

from loguru import logger

from agentshell.types import ParsedResult

from .ansi import strip_ansi

PARSE_FAILURE = "Failed to parse response"
EMPTY_RESPONSE = "Empty response"
CODEX_METADATA_PREFIXES = ("Session", "Loaded")
EMBEDDED_TEXT_KEYS = ("result", "text", "content", "message")

BatchDecodeFn: TypeAlias = Callable[[str], ParsedResult]


def parse_result_output(output: str) -> ParsedResult:
    """Decode JSON result output (single object or event array) or plain text.

    The meaningful record carries ``"type": "result"``; its ``subtype`` tells
    success from failure:

        [{"type":"init"}, {"type":"result","subtype":"success","result":"..."}]
    """

    try:
        return _parse_result_output(output)
    except Exception:
        logger.opt(exception=True).debug("decode.batch_failed length={}", len(output))
        return ParsedResult.failure(PARSE_FAILURE)


def parse_codex_output(output: str) -> ParsedResult:
    """Decode codex output: JSONL events first, then filtered plain text.

    Events look like::

        {"type":"thread.started","thread_id":"..."}
        {"type":"item.completed","item":{"type":"agent_message","text":"..."}}
        {"type":"turn.completed","usage":{...}}
    """

    try:
        return _parse_codex_output(output)
    except Exception:
        logger.opt(exception=True).debug("decode.codex_failed length={}", len(output))
        return ParsedResult.failure(PARSE_FAILURE)


def _parse_result_output(output: str) -> ParsedResult:
    cleaned = strip_ansi(output).strip()
    if not cleaned:
        return ParsedResult.failure(EMPTY_RESPONSE)

    payload = _load_json(cleaned)
    if payload is None:
        return ParsedResult.ok(cleaned)

    if isinstance(payload, list):
        records = [record for record in payload if isinstance(record, dict)]
        result = next((record for record in reversed(records) if record.get("type") == "result"), None)
        if result is not None:
            return _from_result_record(result)
        texts = [text for record in records if record.get("type") == "assistant" for text in _assistant_texts(record)]
        if texts:
            return ParsedResult.ok("".join(texts))
        return ParsedResult.failure(PARSE_FAILURE)

    if isinstance(payload, dict):
        if payload.get("type") == "result":
            return _from_result_record(payload)
        if "response" in payload or "error" in payload:
            return _from_response_object(payload)
        text = _first_text(payload)
        if text is not None:
            return ParsedResult.ok(text)

    return ParsedResult.failure(PARSE_FAILURE)


def _from_result_record(record: dict[str, Any]) -> ParsedResult:
    text = record.get("result")
    if record.get("subtype") == "success" and not record.get("is_error"):
        return ParsedResult.ok(text if isinstance(text, str) else "")
    return ParsedResult.failure(_error_text(record))


def _from_response_object(payload: dict[str, Any]) -> ParsedResult:
    # {"response": "...", "stats": {...}, "error": {...}}
    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            return ParsedResult.failure(str(error.get("message") or json.dumps(error)))
        return ParsedResult.failure(str(error))
    response = payload.get("response")
    return ParsedResult.ok(response if isinstance(response, str) else "")


def _error_text(record: dict[str, Any]) -> str:
    error = record.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    errors = record.get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(str(item) for item in errors)
    result = record.get("result")
    if isinstance(result, str) and result:
        return result
    return str(record.get("subtype") or "Unknown error")


def _assistant_texts(record: dict[str, Any]) -> list[str]:
    message = record.get("message")
    if not isinstance(message, dict) or not isinstance(message.get("content"), list):
        return []
    return [
        block["text"]
        for block in message["content"]
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]


def _load_json(text: str) -> Any:
    if not text.startswith(("{", "[")):
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def _first_text(payload: dict[str, Any]) -> str | None:
    for key in EMBEDDED_TEXT_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _parse_codex_output(output: str) -> ParsedResult:
    cleaned = strip_ansi(output).strip()
    if not cleaned:
        return ParsedResult.failure(EMPTY_RESPONSE)

    messages: list[str] = []
    errors: list[str] = []
    for line in cleaned.splitlines():
        event = _json_line(line)
        if event is None:
            continue
        event_type = event.get("type", "")
        if event_type == "item.completed":
            item = event.get("item")
            if isinstance(item, dict) and item.get("type") == "agent_message" and item.get("text"):
                messages.append(str(item["text"]))
        elif event_type == "error":
            errors.append(str(event.get("message") or "Unknown error"))
        elif event_type == "turn.failed":
            failure = event.get("error")
            if isinstance(failure, dict):
                failure = failure.get("message")
            errors.append(str(failure or "Turn failed"))

    if messages:
        return ParsedResult.ok("\n\n".join(messages))
    if errors:
        return ParsedResult.failure(errors[0])
    return ParsedResult.ok(_filter_codex_plain_text(cleaned))


def _filter_codex_plain_text(cleaned: str) -> str:
    kept: list[str] = []
    for line in cleaned.splitlines():
        trimmed = line.strip()
        if trimmed.startswith("{"):
            event = _json_line(trimmed)
            text = _first_text(event) if event is not None else None
            if text is not None:
                kept.append(text)
            continue
        if trimmed.startswith(CODEX_METADATA_PREFIXES):
            continue
        kept.append(line.rstrip())
    return "\n".join(kept).strip() or cleaned


def _json_line(line: str) -> dict[str, Any] | None:
    trimmed = line.strip()
    if not trimmed.startswith("{"):
        return None
    try:
        payload = json.loads(trimmed)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None
