"""Spawning provider commands through the resolved shell."""

from __future__ import annotations

import asyncio
import codecs
import signal
import subprocess
import sys
from collections.abc import AsyncIterator, Mapping

from loguru import logger

from agentshell.errors import SpawnError
from agentshell.providers import CommandLine
from agentshell.shells import ResolvedShell

from .command import join_command, shell_family
from .killer import TreeKiller, default_killer

READ_CHUNK_SIZE = 65536


class SpawnedOperation:
    """A live provider process and its tree teardown.

    Spawn failures are stored rather than raised; they surface from
    :meth:`wait` and :meth:`communicate` as :class:`SpawnError`.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process | None,
        *,
        killer: TreeKiller,
        command: str,
        error: OSError | None = None,
    ) -> None:
        self._process = process
        self._killer = killer
        self._error = error
        self._killed = False
        self._stdin_task: asyncio.Task[None] | None = None
        self.command = command

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    @property
    def spawn_error(self) -> OSError | None:
        return self._error

    @property
    def killed(self) -> bool:
        return self._killed

    def deliver_prompt(self, prompt: str) -> None:
        """Write the prompt to stdin in the background, then close it."""

        if self._process is None or self._process.stdin is None:
            return
        self._stdin_task = asyncio.create_task(_write_stdin(self._process.stdin, prompt, self.pid))

    async def wait(self) -> int:
        process = self._require_process()
        return await process.wait()

    async def iter_stdout(self) -> AsyncIterator[str]:
        """Yield decoded stdout text as it arrives."""

        process = self._require_process()
        if process.stdout is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while chunk := await process.stdout.read(READ_CHUNK_SIZE):
            text = decoder.decode(chunk)
            if text:
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail

    async def read_stderr(self) -> str:
        process = self._require_process()
        if process.stderr is None:
            return ""
        return (await process.stderr.read()).decode("utf-8", errors="replace")

    async def communicate(self) -> tuple[str, str, int]:
        """Capture all output and the exit code.

        Once the shell exits, the rest of its process group is terminated so
        that leftover children holding the pipes open cannot stall EOF.
        """

        process = self._require_process()
        stdout_task = asyncio.create_task(self._read_all(process.stdout))
        stderr_task = asyncio.create_task(self.read_stderr())
        try:
            returncode = await process.wait()
            self.kill_tree()
            stdout, stderr = await asyncio.gather(stdout_task, stderr_task)
        finally:
            for task in (stdout_task, stderr_task):
                task.cancel()
        return stdout, stderr, returncode

    def kill_tree(self, sig: int = signal.SIGTERM) -> None:
        """Terminate the process tree once; later calls are no-ops."""

        if self._process is None or self._killed:
            return
        self._killed = True
        logger.debug("process.kill_tree pid={} signal={}", self._process.pid, sig)
        self._killer.kill_tree(self._process.pid, sig)

    def _require_process(self) -> asyncio.subprocess.Process:
        if self._process is None:
            raise SpawnError(str(self._error) if self._error else f"failed to start: {self.command}")
        return self._process

    @staticmethod
    async def _read_all(stream: asyncio.StreamReader | None) -> str:
        if stream is None:
            return ""
        return (await stream.read()).decode("utf-8", errors="replace")


class ProcessLauncher:
    """Start provider commands through ``<shell> <exec-args> "<command>"``.

    Going through the user's shell keeps version managers and PATH tweaks
    from login profiles in effect, just like in a terminal.
    """

    def __init__(self, platform: str | None = None, killer: TreeKiller | None = None) -> None:
        self.platform = platform or sys.platform
        self.killer = killer or default_killer(self.platform)

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    def build_argv(self, shell: ResolvedShell, command: CommandLine) -> list[str]:
        command_string = join_command(command.binary, command.args, shell_family(shell.path))
        return [shell.path, *shell.args, command_string]

    async def launch(
        self,
        shell: ResolvedShell,
        command: CommandLine,
        *,
        prompt: str,
        cwd: str,
        env: Mapping[str, str],
    ) -> SpawnedOperation:
        argv = self.build_argv(shell, command)
        options: dict[str, object] = {}
        if self.is_windows:
            options["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)
        else:
            options["start_new_session"] = True

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=dict(env),
                **options,  # type: ignore[arg-type]
            )
        except OSError as exc:
            logger.warning("process.spawn_failed shell={} cwd={} error={}", shell.path, cwd, exc)
            return SpawnedOperation(None, killer=self.killer, command=argv[-1], error=exc)

        logger.info("process.spawned pid={} shell={} command={}", process.pid, shell.path, argv[-1])
        operation = SpawnedOperation(process, killer=self.killer, command=argv[-1])
        operation.deliver_prompt(prompt)
        return operation


async def _write_stdin(stdin: asyncio.StreamWriter, prompt: str, pid: int | None) -> None:
    try:
        stdin.write(prompt.encode("utf-8"))
        await stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The child exited before reading its input; its exit status tells the story.
        logger.debug("process.stdin_closed_early pid={}", pid)
    finally:
        stdin.close()
