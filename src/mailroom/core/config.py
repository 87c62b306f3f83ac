"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field

DEFAULT_WORKSPACE_ROOT = Path("/workspaces/agent-ps")
MESSAGES_SUBPATH = Path(".agents") / "messages"


class MailboxSettings(BaseModel):
    """Settings locating the mailbox root directory."""

    root_path: Path | None = Field(
        default=None, description="Explicit mailbox root, overrides workspace_root"
    )
    workspace_root: Path | None = Field(
        default=None, description="Workspace directory holding .agents/messages"
    )

    def resolve_root(self) -> Path:
        """Return the absolute mailbox root directory."""
        if self.root_path is not None:
            return self.root_path.expanduser().resolve()
        workspace = self.workspace_root or DEFAULT_WORKSPACE_ROOT
        return (workspace.expanduser() / MESSAGES_SUBPATH).resolve()


class StorageSettings(BaseModel):
    """Settings for the status store."""

    db_path: Path = Field(
        default=Path("./.agents/data/mailroom.db"),
        description="SQLite database path, or :memory:",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class WatchSettings(BaseModel):
    """Settings controlling how the folder watcher debounces and polls."""

    stability_threshold_ms: int = Field(
        default=300, ge=0, description="Quiet period before a file counts as written"
    )
    stability_poll_ms: int = Field(
        default=100, ge=10, description="How often to re-check a pending file"
    )
    force_polling: bool | None = Field(
        default=None, description="Force polling; None auto-detects containers"
    )


class LlmSettings(BaseModel):
    """Settings for the bundled Ollama agent responder."""

    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(default="gpt-oss:20b", description="Model identifier")
    timeout_seconds: int = Field(
        default=120, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for LLM completions",
    )
    max_output_tokens: int | None = Field(
        default=1024,
        ge=32,
        description="Maximum tokens to request from the provider",
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    mailbox: MailboxSettings = Field(default_factory=MailboxSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    llm: LlmSettings = Field(default_factory=LlmSettings)


ENV_PREFIX = "MAILROOM_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "LlmSettings",
    "LoggingSettings",
    "MailboxSettings",
    "StorageSettings",
    "WatchSettings",
    "load_app_settings",
]
