"""agentshell CLI bootstrap."""

from __future__ import annotations

from agentshell.cli import app

if __name__ == "__main__":
    app()
