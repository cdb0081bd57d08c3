"""Command line front end for agentshell."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from agentshell.config import Settings, load_settings
from agentshell.errors import AgentShellError
from agentshell.logging_utils import configure_logging, profile_for
from agentshell.orchestrator import CLIOrchestrator
from agentshell.shells import ShellDetector
from agentshell.types import CLIRequest, OutputFormat, ReasoningEffort, StreamCallbacks

app = typer.Typer(name="agentshell", help="Drive AI coding CLIs through your shell.", add_completion=False)
console = Console()
err_console = Console(stderr=True)

REVIEW_OPERATION_ID = "cli-review"


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Override AGENTSHELL_LOG_LEVEL"),
) -> None:
    configure_logging(profile=profile_for(sys.stderr), level=log_level or _settings(None, None).log_level)


def _settings(shell: str | None, timeout: float | None) -> Settings:
    try:
        return load_settings(shell_type=shell, timeout_seconds=timeout)
    except AgentShellError as exc:
        err_console.print(f"[red]configuration error:[/red] {exc}")
        raise typer.Exit(2) from exc


def _read_text(path: Path | None) -> str:
    if path is None:
        return ""
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


@app.command()
def shells(
    shell: str | None = typer.Option(None, "--shell", help="Shell id, 'system' or 'custom'"),
) -> None:
    """List detected shells and the one used to launch providers."""

    settings = _settings(shell, None)
    detector = ShellDetector()
    table = Table("id", "name", "path", "available")
    for info in detector.detect_shells():
        table.add_row(info.id, info.name, info.path, "yes" if info.available else "no")
    console.print(table)

    resolved = detector.resolve_shell_for_command(settings.shell_config())
    console.print(f"command shell: {resolved.path} {' '.join(resolved.args)}")


@app.command()
def generate(
    prompt: str = typer.Argument("-", help="Prompt text; '-' reads stdin"),
    provider: str = typer.Option(..., "--provider", "-p", help="claude-code, codex-cli, cursor-cli or gemini-cli"),
    model: str = typer.Option("", "--model", "-m", help="Model id; empty selects the provider default"),
    workdir: Path = typer.Option(Path("."), "--workdir", "-w", help="Working directory"),  # noqa: B008
    effort: ReasoningEffort | None = typer.Option(None, "--effort", help="Reasoning effort"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds before the provider is killed"),
    shell: str | None = typer.Option(None, "--shell", help="Shell id, 'system' or 'custom'"),
) -> None:
    """Run one prompt and print the provider's answer."""

    text = sys.stdin.read() if prompt == "-" else prompt
    orchestrator = CLIOrchestrator(_settings(shell, timeout))
    try:
        request = CLIRequest(
            provider=orchestrator.provider(provider).id,
            model=model,
            prompt=text,
            workdir=str(workdir.resolve()),
            reasoning_effort=effort,
            output_format=OutputFormat.JSON,
        )
        result = asyncio.run(orchestrator.generate(request, on_warning=_print_warning))
    except AgentShellError as exc:
        err_console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(2) from exc

    if not result.success:
        err_console.print(f"[red]error:[/red] {result.error}")
        raise typer.Exit(1)
    typer.echo(result.text)


@app.command()
def review(
    provider: str = typer.Option(..., "--provider", "-p", help="claude-code, codex-cli, cursor-cli or gemini-cli"),
    diff_file: Path | None = typer.Option(None, "--diff-file", help="File holding the branch diff; '-' reads stdin"),  # noqa: B008
    log_file: Path | None = typer.Option(None, "--log-file", help="File holding the branch commit log"),  # noqa: B008
    model: str = typer.Option("", "--model", "-m", help="Model id; empty selects the provider default"),
    workdir: Path = typer.Option(Path("."), "--workdir", "-w", help="Working directory"),  # noqa: B008
    language: str | None = typer.Option(None, "--language", help="Language the review is written in"),
    session_id: str | None = typer.Option(None, "--session-id", help="Provider session to keep"),
    shell: str | None = typer.Option(None, "--shell", help="Shell id, 'system' or 'custom'"),
) -> None:
    """Stream a code review of the given diff and commit log."""

    orchestrator = CLIOrchestrator(_settings(shell, None))
    failures: list[str] = []

    def on_error(message: str) -> None:
        failures.append(message)
        err_console.print(f"\n[red]error:[/red] {message}")

    callbacks = StreamCallbacks(
        on_chunk=lambda text: typer.echo(text, nl=False),
        on_complete=lambda: typer.echo(""),
        on_error=on_error,
        on_warning=_print_warning,
    )

    async def _run() -> None:
        task = orchestrator.start_code_review(
            REVIEW_OPERATION_ID,
            workdir=str(workdir.resolve()),
            provider=provider,
            callbacks=callbacks,
            git_diff=_read_text(diff_file),
            git_log=_read_text(log_file),
            model=model,
            language=language,
            session_id=session_id,
        )
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            orchestrator.stop(REVIEW_OPERATION_ID)
            await task
            raise

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        raise typer.Exit(130) from None
    except AgentShellError as exc:
        err_console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(2) from exc
    if failures:
        raise typer.Exit(1)


def _print_warning(message: str) -> None:
    err_console.print(f"[yellow]warning:[/yellow] {message}")
