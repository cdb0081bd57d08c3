from __future__ import annotations

import asyncio
import os
import sys
import textwrap
import time
from pathlib import Path

import pytest

from agentshell.config import Settings
from agentshell.decoding import decode_json_lines, decode_json_objects, parse_codex_output
from agentshell.errors import InvalidRequestError, OperationExistsError, UnknownProviderError
from agentshell.orchestrator import CLIOrchestrator
from agentshell.tasks import NO_CHANGES_TO_REVIEW, REVIEW_DISALLOWED_TOOLS
from agentshell.types import CLIRequest, OutputFormat, ParsedResult, ProviderId, StreamCallbacks

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="runs providers through /bin/sh")

ECHO_RESULT = (
    "import json, sys; prompt = sys.stdin.read(); "
    'print(json.dumps({"type": "result", "subtype": "success", "result": "  " + prompt.upper() + "  "}))'
)

CLAUDE_STREAM = textwrap.dedent(
    """
    import json, sys
    sys.stdin.read()
    for text in ("Hel", "lo"):
        event = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": text}}
        print(json.dumps({"type": "stream_event", "event": event}), flush=True)
    print(json.dumps({"type": "assistant", "message": {"content": [{"type": "text", "text": "Hello"}]}}))
    print(json.dumps({"type": "result", "subtype": "success", "result": "Hello"}))
    """
)

SLOW_STREAM = textwrap.dedent(
    """
    import json, sys, time
    print(json.dumps({"type": "text", "text": "working"}), flush=True)
    time.sleep(30)
    """
)


class Recorder:
    def __init__(self) -> None:
        self.chunks: list[str] = []
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.completed = 0
        self.first_chunk = asyncio.Event()

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_chunk=self._chunk,
            on_complete=self._complete,
            on_error=self.errors.append,
            on_warning=self.warnings.append,
        )

    def _chunk(self, text: str) -> None:
        self.chunks.append(text)
        self.first_chunk.set()

    def _complete(self) -> None:
        self.completed += 1

    @property
    def terminal_count(self) -> int:
        return self.completed + len(self.errors)


def _request(tmp_path, **kwargs) -> CLIRequest:
    values = {"provider": ProviderId.CLAUDE_CODE, "prompt": "hello", "workdir": str(tmp_path)}
    values.update(kwargs)
    return CLIRequest(**values)


def _pid_script(pid_file: Path, body: str) -> str:
    return f"import os, time; open({str(pid_file)!r}, 'w').write(str(os.getpid())); {body}"


async def _read_pid(pid_file: Path, timeout: float = 10.0) -> int:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        text = pid_file.read_text() if pid_file.exists() else ""
        if text.strip():
            return int(text)
        await asyncio.sleep(0.05)
    raise AssertionError(f"child never wrote {pid_file}")


def _process_gone(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    try:
        # Zombies have exited but still answer signal 0.
        stat = Path(f"/proc/{pid}/stat").read_text()
    except OSError:
        return False
    return stat.rsplit(")", 1)[1].split()[0] == "Z"


async def _wait_until_gone(pid: int, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if _process_gone(pid):
            return True
        await asyncio.sleep(0.05)
    return _process_gone(pid)


@pytest.mark.asyncio
async def test_generate_returns_stripped_text_from_stdin_prompt(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT))

    result = await orchestrator.generate(_request(tmp_path, prompt="add login"))

    assert result == ParsedResult.ok("ADD LOGIN")


@pytest.mark.asyncio
async def test_generate_reports_stderr_on_failure(tmp_path, make_orchestrator, script_provider) -> None:
    script = 'import sys; sys.stderr.write("  boom\\n"); sys.exit(3)'
    orchestrator = make_orchestrator(script_provider(script))

    result = await orchestrator.generate(_request(tmp_path))

    assert result == ParsedResult.failure("boom")


@pytest.mark.asyncio
async def test_generate_reports_exit_code_without_stderr(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider("import sys; sys.exit(4)"))

    result = await orchestrator.generate(_request(tmp_path))

    assert result == ParsedResult.failure("Exit code: 4")


@pytest.mark.asyncio
async def test_generate_empty_text_is_unknown_error(tmp_path, make_orchestrator, script_provider) -> None:
    script = 'print(\'{"type": "result", "subtype": "success", "result": "   "}\')'
    orchestrator = make_orchestrator(script_provider(script))

    result = await orchestrator.generate(_request(tmp_path))

    assert result == ParsedResult.failure("Unknown error")


@pytest.mark.asyncio
async def test_generate_passes_decoder_error_through(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider("pass"))

    result = await orchestrator.generate(_request(tmp_path))

    assert result == ParsedResult.failure("Empty response")


@pytest.mark.asyncio
async def test_generate_times_out_and_kills_tree(
    tmp_path, make_orchestrator, script_provider, recording_killer
) -> None:
    pid_file = tmp_path / "child.pid"
    orchestrator = make_orchestrator(
        script_provider(_pid_script(pid_file, "time.sleep(30)")), killer=recording_killer
    )
    started = time.monotonic()

    result = await orchestrator.generate(_request(tmp_path, timeout_seconds=0.5))

    assert result == ParsedResult.failure("timeout")
    assert time.monotonic() - started < 10
    assert len(recording_killer.calls) == 1
    assert await _wait_until_gone(await _read_pid(pid_file))


@pytest.mark.asyncio
async def test_generate_timeout_just_before_exit_reports_timeout_once(
    tmp_path, make_orchestrator, script_provider, recording_killer
) -> None:
    script = (
        "import json, time; time.sleep(0.6); "
        'print(json.dumps({"type": "result", "subtype": "success", "result": "late"}))'
    )
    orchestrator = make_orchestrator(script_provider(script), killer=recording_killer)

    result = await orchestrator.generate(_request(tmp_path, timeout_seconds=0.5))
    await asyncio.sleep(1)

    assert result == ParsedResult.failure("timeout")
    assert len(recording_killer.calls) == 1


@pytest.mark.asyncio
async def test_generate_success_does_not_kill(
    tmp_path, make_orchestrator, script_provider, recording_killer
) -> None:
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT), killer=recording_killer)

    result = await orchestrator.generate(_request(tmp_path, prompt="ok"))

    assert result == ParsedResult.ok("OK")
    assert recording_killer.calls == []


@pytest.mark.asyncio
async def test_cancelling_generate_kills_child(tmp_path, make_orchestrator, script_provider) -> None:
    pid_file = tmp_path / "child.pid"
    orchestrator = make_orchestrator(script_provider(_pid_script(pid_file, "time.sleep(30)")))

    task = asyncio.create_task(orchestrator.generate(_request(tmp_path)))
    pid = await _read_pid(pid_file)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert await _wait_until_gone(pid)


@pytest.mark.asyncio
async def test_generate_under_wait_for_kills_child(tmp_path, make_orchestrator, script_provider) -> None:
    pid_file = tmp_path / "child.pid"
    orchestrator = make_orchestrator(script_provider(_pid_script(pid_file, "time.sleep(30)")))

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(orchestrator.generate(_request(tmp_path)), 1.5)

    assert await _wait_until_gone(await _read_pid(pid_file))


@pytest.mark.asyncio
async def test_generate_spawn_failure(tmp_path, script_provider) -> None:
    settings = Settings(shell_type="custom", custom_shell_path=str(tmp_path / "no-such-shell"))
    provider = script_provider("pass")
    orchestrator = CLIOrchestrator(settings, providers={provider.id: provider})

    result = await orchestrator.generate(_request(tmp_path))

    assert result.success is False
    assert result.error


@pytest.mark.asyncio
async def test_generate_forwards_capability_warnings(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT, warnings=("sessions unsupported",)))
    warnings: list[str] = []

    result = await orchestrator.generate(_request(tmp_path), on_warning=warnings.append)

    assert result.success is True
    assert warnings == ["sessions unsupported"]


@pytest.mark.asyncio
async def test_blank_prompt_is_rejected(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT))

    with pytest.raises(InvalidRequestError):
        await orchestrator.generate(_request(tmp_path, prompt="  \n"))


def test_unknown_provider(make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT))

    with pytest.raises(UnknownProviderError):
        orchestrator.provider("gemini-cli")
    with pytest.raises(UnknownProviderError):
        orchestrator.provider("nope")


@pytest.mark.asyncio
async def test_stream_emits_deltas_once_then_completes(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(CLAUDE_STREAM, decode_stream=decode_json_objects))
    recorder = Recorder()

    await orchestrator.run_stream(
        "review-1", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
    )

    assert recorder.chunks == ["Hel", "lo"]
    assert recorder.completed == 1
    assert recorder.errors == []
    assert orchestrator.active_operations == []


@pytest.mark.asyncio
async def test_stream_flushes_unterminated_last_line(tmp_path, make_orchestrator, script_provider) -> None:
    script = (
        "import sys; sys.stdout.write("
        '\'{"type": "message", "role": "assistant", "content": "tail"}\')'
    )
    provider = script_provider(script, provider_id=ProviderId.GEMINI_CLI, decode_stream=decode_json_lines)
    orchestrator = make_orchestrator(provider)
    recorder = Recorder()

    await orchestrator.run_stream(
        "g", _request(tmp_path, provider=ProviderId.GEMINI_CLI, output_format=OutputFormat.STREAM_JSON),
        recorder.callbacks(),
    )

    assert recorder.chunks == ["tail"]
    assert recorder.completed == 1


@pytest.mark.asyncio
async def test_stream_falls_back_to_batch_decoding(tmp_path, make_orchestrator, script_provider) -> None:
    script = 'print(\'{"type": "item.completed", "item": {"type": "agent_message", "text": "LGTM"}}\')'
    provider = script_provider(script, provider_id=ProviderId.CODEX_CLI, decode_batch=parse_codex_output)
    orchestrator = make_orchestrator(provider)
    recorder = Recorder()

    await orchestrator.run_stream("c", _request(tmp_path, provider=ProviderId.CODEX_CLI), recorder.callbacks())

    assert recorder.chunks == ["LGTM"]
    assert recorder.completed == 1


@pytest.mark.asyncio
async def test_stream_reports_nonzero_exit(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider("import sys; sys.exit(2)", decode_stream=decode_json_objects))
    recorder = Recorder()

    await orchestrator.run_stream(
        "r", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
    )

    assert recorder.errors == ["Exit code: 2"]
    assert recorder.completed == 0


@pytest.mark.asyncio
async def test_stream_spawn_failure_reports_error(tmp_path, script_provider) -> None:
    settings = Settings(shell_type="custom", custom_shell_path=str(tmp_path / "no-such-shell"))
    provider = script_provider("pass", decode_stream=decode_json_objects)
    orchestrator = CLIOrchestrator(settings, providers={provider.id: provider})
    recorder = Recorder()

    await orchestrator.run_stream("r", _request(tmp_path), recorder.callbacks())

    assert len(recorder.errors) == 1
    assert recorder.completed == 0
    assert orchestrator.active_operations == []


@pytest.mark.asyncio
async def test_stop_cancels_running_stream(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(SLOW_STREAM, decode_stream=decode_json_objects))
    recorder = Recorder()

    task = orchestrator.start_stream(
        "review-1", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
    )
    await asyncio.wait_for(recorder.first_chunk.wait(), timeout=10)

    assert orchestrator.active_operations == ["review-1"]
    assert orchestrator.stop("review-1") is True
    await asyncio.wait_for(task, timeout=10)

    assert recorder.chunks == ["working"]
    assert recorder.errors == ["Operation cancelled"]
    assert recorder.completed == 0
    assert orchestrator.stop("review-1") is False
    assert orchestrator.active_operations == []


@pytest.mark.asyncio
async def test_cancelling_stream_task_kills_child_and_reports_once(
    tmp_path, make_orchestrator, script_provider
) -> None:
    pid_file = tmp_path / "child.pid"
    script = _pid_script(pid_file, 'print(\'{"type": "text", "text": "working"}\', flush=True); time.sleep(30)')
    orchestrator = make_orchestrator(script_provider(script, decode_stream=decode_json_objects))
    recorder = Recorder()

    task = orchestrator.start_stream(
        "review-1", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
    )
    await asyncio.wait_for(recorder.first_chunk.wait(), timeout=10)
    pid = await _read_pid(pid_file)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert orchestrator.active_operations == []
    assert recorder.errors == ["Operation cancelled"]
    assert recorder.completed == 0
    assert await _wait_until_gone(pid)
    assert orchestrator.stop("review-1") is False


@pytest.mark.asyncio
async def test_stop_before_spawn_completes(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(SLOW_STREAM, decode_stream=decode_json_objects))
    recorder = Recorder()

    task = orchestrator.start_stream(
        "early", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
    )
    assert orchestrator.stop("early") is True
    await asyncio.wait_for(task, timeout=10)

    assert recorder.errors == ["Operation cancelled"]
    assert recorder.terminal_count == 1


@pytest.mark.asyncio
async def test_stop_all(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(SLOW_STREAM, decode_stream=decode_json_objects))
    recorders = [Recorder(), Recorder()]
    tasks = [
        orchestrator.start_stream(
            f"op-{index}", _request(tmp_path, output_format=OutputFormat.STREAM_JSON), recorder.callbacks()
        )
        for index, recorder in enumerate(recorders)
    ]

    assert sorted(orchestrator.active_operations) == ["op-0", "op-1"]
    assert orchestrator.stop_all() == 2
    await asyncio.wait_for(asyncio.gather(*tasks), timeout=10)

    for recorder in recorders:
        assert recorder.errors == ["Operation cancelled"]
        assert recorder.completed == 0
    assert orchestrator.stop_all() == 0


@pytest.mark.asyncio
async def test_duplicate_operation_id_is_rejected(tmp_path, make_orchestrator, script_provider) -> None:
    orchestrator = make_orchestrator(script_provider(SLOW_STREAM, decode_stream=decode_json_objects))
    recorder = Recorder()
    task = orchestrator.start_stream("dup", _request(tmp_path), recorder.callbacks())

    with pytest.raises(OperationExistsError):
        orchestrator.start_stream("dup", _request(tmp_path), Recorder().callbacks())

    orchestrator.stop("dup")
    await asyncio.wait_for(task, timeout=10)
    assert recorder.terminal_count == 1


@pytest.mark.asyncio
async def test_orchestrators_do_not_share_operations(tmp_path, make_orchestrator, script_provider) -> None:
    provider = script_provider(SLOW_STREAM, decode_stream=decode_json_objects)
    first = make_orchestrator(provider)
    second = make_orchestrator(provider)
    recorder = Recorder()
    task = first.start_stream("shared-id", _request(tmp_path), recorder.callbacks())

    assert second.stop("shared-id") is False
    assert first.stop("shared-id") is True
    await asyncio.wait_for(task, timeout=10)


@pytest.mark.asyncio
async def test_code_review_without_changes_does_not_spawn(tmp_path, make_orchestrator, script_provider) -> None:
    seen: list[CLIRequest] = []
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT, seen=seen))
    recorder = Recorder()

    task = orchestrator.start_code_review(
        "review", workdir=str(tmp_path), provider="claude-code", callbacks=recorder.callbacks(), git_diff="", git_log=" "
    )

    assert task is None
    assert recorder.errors == [NO_CHANGES_TO_REVIEW]
    assert seen == []


@pytest.mark.asyncio
async def test_code_review_request_shape(tmp_path, make_orchestrator, script_provider) -> None:
    seen: list[CLIRequest] = []
    orchestrator = make_orchestrator(script_provider(CLAUDE_STREAM, decode_stream=decode_json_objects, seen=seen))
    recorder = Recorder()

    task = orchestrator.start_code_review(
        "review",
        workdir=str(tmp_path),
        provider="claude-code",
        callbacks=recorder.callbacks(),
        git_diff="diff --git a/x b/x",
        git_log="abc123 add x",
        language="Deutsch",
        session_id="sess-1",
    )
    assert task is not None
    await asyncio.wait_for(task, timeout=10)

    request = seen[0]
    assert request.output_format is OutputFormat.STREAM_JSON
    assert request.disallowed_tools == REVIEW_DISALLOWED_TOOLS
    assert request.session_id == "sess-1"
    assert request.preserve_session is True
    assert request.prompt.startswith("Always reply in Deutsch.")
    assert "diff --git a/x b/x" in request.prompt
    assert recorder.chunks == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_commit_message_and_branch_name(tmp_path, make_orchestrator, script_provider) -> None:
    seen: list[CLIRequest] = []
    orchestrator = make_orchestrator(script_provider(ECHO_RESULT, seen=seen))

    commit = await orchestrator.generate_commit_message(
        workdir=str(tmp_path),
        provider="claude-code",
        staged_stat="1 file changed",
        staged_diff="\n".join(f"+line {index}" for index in range(10)),
        max_diff_lines=3,
    )
    branch = await orchestrator.generate_branch_name(
        workdir=str(tmp_path), provider=ProviderId.CLAUDE_CODE, description="add login page"
    )

    assert commit.success and branch.success
    assert "+LINE 2" in commit.text
    assert "+LINE 3" not in commit.text
    assert "ADD LOGIN PAGE" in branch.text
    assert all(request.output_format is OutputFormat.JSON for request in seen)
