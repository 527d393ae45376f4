"""``leadbridge serve``: run the reporting server with its pull scheduler."""

from __future__ import annotations

import click
import uvicorn
from rich.console import Console

from leadbridge.app.config import ConfigurationError

from .context import env_file_option, load_settings


@click.command(name="serve")
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address.")
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to listen on (default: PORT from the environment, else 3000).",
)
@env_file_option
def serve(host: str, port: int | None, env_file: str | None) -> None:
    """Serve the registration feed and pull the affiliate report on an interval."""
    from leadbridge.app.api import create_app

    console = Console()
    settings = load_settings(console, env_file)
    if settings is None:
        raise SystemExit(1)
    try:
        settings.require_server_settings()
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    bind_port = port or settings.port
    console.print(
        f"[bold]API listening on port {bind_port}[/bold], "
        f"affiliate {settings.affiliate_id}, pulling every "
        f"{settings.pull_interval_minutes} min"
    )
    uvicorn.run(create_app(settings, start_scheduler=True), host=host, port=bind_port)
