from __future__ import annotations

import pytest

from agentshell.errors import UnknownProviderError
from agentshell.providers import PROVIDERS, get_provider
from agentshell.types import CLIRequest, OutputFormat, ProviderId, ReasoningEffort


def _request(provider: ProviderId, **kwargs) -> CLIRequest:
    return CLIRequest(provider=provider, prompt="hello", workdir="/tmp", **kwargs)


def test_registry_covers_every_provider_id() -> None:
    assert set(PROVIDERS) == set(ProviderId)
    assert get_provider("gemini-cli").binary == "gemini"


def test_unknown_provider_lists_available_ids() -> None:
    with pytest.raises(UnknownProviderError) as exc_info:
        get_provider("aider")

    message = str(exc_info.value)
    assert "Unknown provider 'aider'" in message
    assert "claude-code" in message
    assert "gemini-cli" in message


def test_claude_streaming_args() -> None:
    command = get_provider(ProviderId.CLAUDE_CODE).build_args(
        _request(
            ProviderId.CLAUDE_CODE,
            model="opus",
            output_format=OutputFormat.STREAM_JSON,
            disallowed_tools=("Bash(git:*)", "Edit"),
            session_id="abc-123",
            preserve_session=True,
        )
    )

    assert command.binary == "claude"
    assert command.args == (
        "-p",
        "--model",
        "opus",
        "--output-format",
        "stream-json",
        "--verbose",
        "--include-partial-messages",
        "--disallowedTools",
        "Bash(git:*)",
        "Edit",
        "--session-id",
        "abc-123",
    )
    assert command.warnings == ()


def test_claude_single_shot_disables_session_persistence() -> None:
    command = get_provider(ProviderId.CLAUDE_CODE).build_args(_request(ProviderId.CLAUDE_CODE))

    assert command.args == ("-p", "--model", "sonnet", "--output-format", "json", "--no-session-persistence")


def test_unknown_model_is_coerced_to_default_with_warning() -> None:
    command = get_provider(ProviderId.CLAUDE_CODE).build_args(_request(ProviderId.CLAUDE_CODE, model="gpt-5.2"))

    assert command.args[2] == "sonnet"
    assert len(command.warnings) == 1
    assert "gpt-5.2" in command.warnings[0]


def test_codex_args_carry_reasoning_effort() -> None:
    command = get_provider(ProviderId.CODEX_CLI).build_args(
        _request(ProviderId.CODEX_CLI, model="gpt-5.2-codex", reasoning_effort=ReasoningEffort.HIGH)
    )

    assert command.binary == "codex"
    assert command.args == (
        "exec",
        "--skip-git-repo-check",
        "--sandbox",
        "read-only",
        "-m",
        "gpt-5.2-codex",
        "-c",
        "model_reasoning_effort=high",
        "--json",
    )


def test_codex_defaults_effort_and_warns_on_unsupported_options() -> None:
    command = get_provider(ProviderId.CODEX_CLI).build_args(
        _request(ProviderId.CODEX_CLI, disallowed_tools=("Edit",), session_id="s1")
    )

    assert "model_reasoning_effort=medium" in command.args
    assert len(command.warnings) == 2
    assert not get_provider(ProviderId.CODEX_CLI).supports_streaming


def test_cursor_streaming_args_and_tool_warning() -> None:
    command = get_provider(ProviderId.CURSOR_CLI).build_args(
        _request(
            ProviderId.CURSOR_CLI,
            output_format=OutputFormat.STREAM_JSON,
            disallowed_tools=("Bash(git:*)",),
            session_id="chat-9",
        )
    )

    assert command.binary == "cursor-agent"
    assert command.args == (
        "-p",
        "--model",
        "auto",
        "--output-format",
        "stream-json",
        "--stream-partial-output",
        "--resume",
        "chat-9",
    )
    assert len(command.warnings) == 1
    assert "Bash(git:*)" in command.warnings[0]


def test_gemini_args() -> None:
    command = get_provider(ProviderId.GEMINI_CLI).build_args(
        _request(ProviderId.GEMINI_CLI, model="gemini-3-pro-preview", output_format=OutputFormat.STREAM_JSON)
    )

    assert command.args == ("-m", "gemini-3-pro-preview", "--output-format", "stream-json")
    assert command.warnings == ()


def test_prompt_never_appears_in_args() -> None:
    for provider in PROVIDERS.values():
        command = provider.build_args(_request(provider.id))
        assert "hello" not in command.args


def test_stream_decoders_are_independent_per_operation() -> None:
    provider = get_provider(ProviderId.CLAUDE_CODE)
    first = provider.new_stream_decoder()
    second = provider.new_stream_decoder()
    assert first is not None and second is not None

    first.feed('{"type":"text","te')
    assert second.feed('{"type":"text","text":"b"}') == ["b"]
    assert first.feed('xt":"a"}') == ["a"]


def test_blank_session_id_is_dropped() -> None:
    request = _request(ProviderId.CLAUDE_CODE, session_id="   ")

    assert request.session_id is None
