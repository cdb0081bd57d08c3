"""Configuration management for agentshell."""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentshell.errors import ConfigurationError
from agentshell.shells import ShellConfig

DEFAULT_TIMEOUT_SECONDS = 120


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTSHELL_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shell Configuration
    shell_type: str = Field(default="system", description="Shell id, 'system' or 'custom'")
    custom_shell_path: str | None = Field(None, description="Executable used when shell_type is 'custom'")
    custom_shell_args: list[str] | None = Field(None, description="Interactive args for the custom shell")

    # Operation Configuration
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, description="Single-shot timeout")
    commit_max_diff_lines: int = Field(default=1000, gt=0, description="Staged diff lines sent for commit messages")
    review_language: str = Field(default="English", description="Language code reviews are written in")
    extra_env: dict[str, str] = Field(default_factory=dict, description="Variables merged into child env")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    def shell_config(self) -> ShellConfig:
        return ShellConfig(
            shell_type=self.shell_type,
            custom_shell_path=self.custom_shell_path,
            custom_shell_args=tuple(self.custom_shell_args) if self.custom_shell_args is not None else None,
        )


def load_settings(**overrides: Any) -> Settings:
    """Load settings from env/.env and apply non-None overrides."""

    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
