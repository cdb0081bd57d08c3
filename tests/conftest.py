from __future__ import annotations

import signal
import sys
from collections.abc import Callable

import pytest

from agentshell.config import Settings
from agentshell.decoding import BatchDecodeFn, StreamDecodeFn, parse_result_output
from agentshell.orchestrator import CLIOrchestrator
from agentshell.process import ProcessGroupKiller, ProcessLauncher
from agentshell.providers import CommandLine, Provider
from agentshell.types import CLIRequest, ProviderId


class RecordingKiller:
    """Counts tree teardowns and still performs them."""

    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []
        self._delegate = ProcessGroupKiller()

    def kill_tree(self, pid: int, sig: int = signal.SIGTERM) -> None:
        self.calls.append((pid, sig))
        self._delegate.kill_tree(pid, sig)


def _script_provider(
    script: str,
    *,
    provider_id: ProviderId = ProviderId.CLAUDE_CODE,
    decode_batch: BatchDecodeFn = parse_result_output,
    decode_stream: StreamDecodeFn | None = None,
    warnings: tuple[str, ...] = (),
    seen: list[CLIRequest] | None = None,
) -> Provider:
    """A provider whose "CLI" is a Python snippet run by the current interpreter."""

    def build_args(request: CLIRequest) -> CommandLine:
        if seen is not None:
            seen.append(request)
        return CommandLine(binary=sys.executable, args=("-c", script), warnings=warnings)

    return Provider(
        id=provider_id,
        binary=sys.executable,
        models=("test",),
        default_model="test",
        build_args=build_args,
        decode_batch=decode_batch,
        decode_stream=decode_stream,
    )


@pytest.fixture
def sh_settings(tmp_path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.chdir(tmp_path)
    return Settings(shell_type="custom", custom_shell_path="/bin/sh", timeout_seconds=30)


@pytest.fixture
def make_orchestrator(sh_settings: Settings) -> Callable[..., CLIOrchestrator]:
    def factory(*providers: Provider, killer: RecordingKiller | None = None) -> CLIOrchestrator:
        launcher = ProcessLauncher(killer=killer) if killer is not None else None
        return CLIOrchestrator(
            sh_settings, launcher=launcher, providers={provider.id: provider for provider in providers}
        )

    return factory


@pytest.fixture
def script_provider() -> Callable[..., Provider]:
    return _script_provider


@pytest.fixture
def recording_killer() -> RecordingKiller:
    return RecordingKiller()

