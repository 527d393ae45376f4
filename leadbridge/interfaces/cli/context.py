"""Helpers shared by the CLI commands."""

from __future__ import annotations

from typing import Callable, TypeVar

import click
from rich.console import Console

from leadbridge.app.config import ConfigurationError, Settings
from leadbridge.infrastructure.observability import register_secrets

F = TypeVar("F", bound=Callable[..., object])


def env_file_option(fn: F) -> F:
    return click.option(
        "--env-file",
        type=click.Path(dir_okay=False, path_type=str),
        default=None,
        help="Environment file to load before reading settings (default: .env).",
    )(fn)


def load_settings(console: Console, env_file: str | None) -> Settings | None:
    """Read settings, printing configuration errors instead of raising."""
    try:
        settings = Settings.from_env(dotenv_path=env_file or ".env")
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        return None
    register_secrets(settings.secret_values())
    return settings
