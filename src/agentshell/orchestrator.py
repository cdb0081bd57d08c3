"""Public entry point: single-shot generation and cancellable streaming tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence

from loguru import logger

from agentshell.config import Settings, load_settings
from agentshell.errors import InvalidRequestError, SpawnError, UnknownProviderError
from agentshell.process import ProcessLauncher, SpawnedOperation, build_child_env
from agentshell.providers import PROVIDERS, CommandLine, Provider
from agentshell.registry import ActiveOperation, OperationRegistry
from agentshell.shells import ShellDetector
from agentshell.tasks import (
    NO_CHANGES_TO_REVIEW,
    REVIEW_DISALLOWED_TOOLS,
    build_branch_name_prompt,
    build_code_review_prompt,
    build_commit_message_prompt,
)
from agentshell.types import (
    CLIRequest,
    OutputFormat,
    ParsedResult,
    ProviderId,
    ReasoningEffort,
    StreamCallbacks,
    WarningCallback,
)

TIMEOUT_ERROR = "timeout"
CANCELLED_ERROR = "Operation cancelled"
UNKNOWN_ERROR = "Unknown error"


class CLIOrchestrator:
    """Drive provider CLIs and translate process lifecycles into outcomes.

    Every instance owns its own operation registry, so several orchestrators
    can run side by side without seeing each other's operations.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        detector: ShellDetector | None = None,
        launcher: ProcessLauncher | None = None,
        providers: Mapping[ProviderId, Provider] | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.detector = detector or ShellDetector()
        self.launcher = launcher or ProcessLauncher(platform=self.detector.platform)
        self.providers = dict(providers) if providers is not None else dict(PROVIDERS)
        self.registry = OperationRegistry()
        self._tasks: set[asyncio.Task[None]] = set()

    def provider(self, provider_id: ProviderId | str) -> Provider:
        try:
            return self.providers[ProviderId(provider_id)]
        except (KeyError, ValueError):
            available = ", ".join(item.value for item in self.providers)
            raise UnknownProviderError(f"Unknown provider '{provider_id}'. Available: {available}") from None

    @property
    def active_operations(self) -> list[str]:
        return self.registry.ids()

    async def generate(self, request: CLIRequest, *, on_warning: WarningCallback | None = None) -> ParsedResult:
        """Run one bounded request and return exactly one result."""

        provider, command = self._prepare(request, on_warning)
        timeout = request.timeout_seconds or self.settings.timeout_seconds
        logger.info(
            "cli.generate.start provider={} model={} cwd={}", provider.id.value, request.model, request.workdir
        )
        operation = await self._spawn(request, command)
        try:
            async with asyncio.timeout(timeout):
                stdout, stderr, returncode = await operation.communicate()
        except TimeoutError:
            operation.kill_tree()
            self._reap_in_background(operation)
            logger.warning("cli.generate.timeout provider={} timeout={}s", provider.id.value, timeout)
            return ParsedResult.failure(TIMEOUT_ERROR)
        except asyncio.CancelledError:
            operation.kill_tree()
            self._reap_in_background(operation)
            logger.info("cli.generate.cancelled provider={}", provider.id.value)
            raise
        except SpawnError as exc:
            logger.error("cli.generate.spawn_error provider={} error={}", provider.id.value, exc)
            return ParsedResult.failure(str(exc))

        if returncode != 0:
            error = _exit_error(returncode, stderr)
            logger.error("cli.generate.exit provider={} code={} stderr={}", provider.id.value, returncode, stderr)
            return ParsedResult.failure(error)

        result = provider.decode_batch(stdout)
        logger.debug("cli.generate.parsed provider={} result={}", provider.id.value, result)
        if result.success and result.text and result.text.strip():
            return ParsedResult.ok(result.text.strip())
        return ParsedResult.failure(result.error or UNKNOWN_ERROR)

    def start_stream(
        self, operation_id: str, request: CLIRequest, callbacks: StreamCallbacks
    ) -> asyncio.Task[None]:
        """Schedule a streaming task; must be called with a running event loop."""

        provider, command = self._prepare(request, callbacks.on_warning)
        entry = self.registry.reserve(operation_id)
        task = asyncio.create_task(
            self._drive_stream(entry, provider, command, request, callbacks), name=f"agentshell:{operation_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_stream(self, operation_id: str, request: CLIRequest, callbacks: StreamCallbacks) -> None:
        """Run a streaming task to completion; callbacks fire as output arrives."""

        await self.start_stream(operation_id, request, callbacks)

    def stop(self, operation_id: str) -> bool:
        entry = self.registry.pop(operation_id)
        if entry is None:
            return False
        logger.info("cli.stream.stop id={}", operation_id)
        entry.stop()
        return True

    def stop_all(self) -> int:
        entries = self.registry.drain()
        for entry in entries:
            entry.stop()
        if entries:
            logger.info("cli.stream.stop_all count={}", len(entries))
        return len(entries)

    async def generate_commit_message(
        self,
        *,
        workdir: str,
        provider: ProviderId | str,
        model: str = "",
        recent_commits: str = "",
        staged_stat: str = "",
        staged_diff: str = "",
        reasoning_effort: ReasoningEffort | None = None,
        timeout_seconds: float | None = None,
        max_diff_lines: int | None = None,
    ) -> ParsedResult:
        prompt = build_commit_message_prompt(
            recent_commits,
            staged_stat,
            staged_diff,
            max_diff_lines=max_diff_lines or self.settings.commit_max_diff_lines,
        )
        request = CLIRequest(
            provider=self.provider(provider).id,
            model=model,
            prompt=prompt,
            workdir=workdir,
            reasoning_effort=reasoning_effort,
            output_format=OutputFormat.JSON,
            timeout_seconds=timeout_seconds,
        )
        return await self.generate(request)

    async def generate_branch_name(
        self,
        *,
        workdir: str,
        provider: ProviderId | str,
        description: str,
        model: str = "",
        reasoning_effort: ReasoningEffort | None = None,
        timeout_seconds: float | None = None,
    ) -> ParsedResult:
        request = CLIRequest(
            provider=self.provider(provider).id,
            model=model,
            prompt=build_branch_name_prompt(description),
            workdir=workdir,
            reasoning_effort=reasoning_effort,
            output_format=OutputFormat.JSON,
            timeout_seconds=timeout_seconds,
        )
        return await self.generate(request)

    def start_code_review(
        self,
        review_id: str,
        *,
        workdir: str,
        provider: ProviderId | str,
        callbacks: StreamCallbacks,
        git_diff: str,
        git_log: str,
        model: str = "",
        language: str | None = None,
        reasoning_effort: ReasoningEffort | None = None,
        session_id: str | None = None,
        disallowed_tools: Sequence[str] = REVIEW_DISALLOWED_TOOLS,
    ) -> asyncio.Task[None] | None:
        """Start a streaming review; returns ``None`` when there is nothing to review."""

        if not git_diff.strip() and not git_log.strip():
            callbacks.on_error(NO_CHANGES_TO_REVIEW)
            return None
        selected = self.provider(provider)
        request = CLIRequest(
            provider=selected.id,
            model=model,
            prompt=build_code_review_prompt(git_diff, git_log, language or self.settings.review_language),
            workdir=workdir,
            reasoning_effort=reasoning_effort,
            output_format=OutputFormat.STREAM_JSON if selected.supports_streaming else OutputFormat.JSON,
            disallowed_tools=tuple(disallowed_tools),
            session_id=session_id,
            preserve_session=bool(session_id),
        )
        return self.start_stream(review_id, request, callbacks)

    def _prepare(self, request: CLIRequest, on_warning: WarningCallback | None) -> tuple[Provider, CommandLine]:
        if not request.prompt.strip():
            raise InvalidRequestError("prompt is empty")
        provider = self.provider(request.provider)
        command = provider.build_args(request)
        for warning in command.warnings:
            logger.warning("cli.capability provider={} {}", provider.id.value, warning)
            if on_warning is not None:
                on_warning(warning)
        return provider, command

    async def _spawn(self, request: CLIRequest, command: CommandLine) -> SpawnedOperation:
        shell = self.detector.resolve_shell_for_command(self.settings.shell_config())
        env = build_child_env(extra=self.settings.extra_env, platform=self.detector.platform)
        return await self.launcher.launch(shell, command, prompt=request.prompt, cwd=request.workdir, env=env)

    async def _drive_stream(
        self,
        entry: ActiveOperation,
        provider: Provider,
        command: CommandLine,
        request: CLIRequest,
        callbacks: StreamCallbacks,
    ) -> None:
        try:
            await self._stream(entry, provider, command, request, callbacks)
        except asyncio.CancelledError:
            # No terminal callback has fired yet: they all run after the last await.
            if entry.handle is not None:
                entry.handle.kill_tree()
            self._release(entry)
            logger.info("cli.stream.cancelled id={} reason=task_cancelled", entry.id)
            callbacks.on_error(CANCELLED_ERROR)
            raise
        except Exception as exc:
            logger.exception("cli.stream.error id={}", entry.id)
            self._release(entry)
            callbacks.on_error(str(exc) or exc.__class__.__name__)

    async def _stream(
        self,
        entry: ActiveOperation,
        provider: Provider,
        command: CommandLine,
        request: CLIRequest,
        callbacks: StreamCallbacks,
    ) -> None:
        logger.info("cli.stream.start id={} provider={} model={}", entry.id, provider.id.value, request.model)
        operation = await self._spawn(request, command)
        entry.handle = operation
        if entry.stopped:
            # stop() arrived while the process was starting.
            operation.kill_tree()

        decoder = provider.new_stream_decoder() if request.streaming else None
        captured: list[str] = []

        async def pump_stdout() -> None:
            async for text in operation.iter_stdout():
                if entry.stopped:
                    continue
                captured.append(text)
                if decoder is not None:
                    for fragment in decoder.feed(text):
                        callbacks.on_chunk(fragment)

        if operation.spawn_error is not None:
            self._release(entry)
            callbacks.on_error(str(operation.spawn_error))
            return

        stdout_task = asyncio.create_task(pump_stdout())
        stderr_task = asyncio.create_task(operation.read_stderr())
        try:
            returncode = await operation.wait()
            # The provider may leave tool servers behind; they share its process group.
            operation.kill_tree()
            await stdout_task
            stderr = await stderr_task
        finally:
            stdout_task.cancel()
            stderr_task.cancel()
        if stderr.strip():
            logger.debug("cli.stream.stderr id={} stderr={}", entry.id, stderr.strip())

        if not self._release(entry) or entry.stopped:
            logger.info("cli.stream.cancelled id={} code={}", entry.id, returncode)
            callbacks.on_error(CANCELLED_ERROR)
            return
        if returncode != 0:
            logger.error("cli.stream.exit id={} code={}", entry.id, returncode)
            callbacks.on_error(_exit_error(returncode, stderr))
            return

        if decoder is not None:
            for fragment in decoder.finish():
                callbacks.on_chunk(fragment)
        else:
            result = provider.decode_batch("".join(captured))
            if not result.success:
                callbacks.on_error(result.error or UNKNOWN_ERROR)
                return
            if result.text:
                callbacks.on_chunk(result.text)
        logger.info("cli.stream.complete id={}", entry.id)
        callbacks.on_complete()

    def _release(self, entry: ActiveOperation) -> bool:
        released = self.registry.release(entry)
        if released and entry.handle is not None:
            entry.handle.kill_tree()
        return released

    def _reap_in_background(self, operation: SpawnedOperation) -> None:
        async def reap() -> None:
            try:
                await operation.wait()
            except SpawnError:
                return

        task = asyncio.create_task(reap())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _exit_error(returncode: int, stderr: str) -> str:
    return stderr.strip() or f"Exit code: {returncode}"
