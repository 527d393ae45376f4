"""``leadbridge pull``: run one fetch-and-store cycle and print a summary."""

from __future__ import annotations

import asyncio

import click
import httpx
from rich.console import Console
from rich.table import Table

from leadbridge.app.config import Settings
from leadbridge.services.reporting import PullResult, ReportPipeline

from .context import env_file_option, load_settings


async def _pull(settings: Settings) -> PullResult:
    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
        pipeline = ReportPipeline.from_settings(settings, client)
        return await pipeline.fetch_and_store()


def _summary_table(result: PullResult) -> Table:
    table = Table(title="Pull summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Rows fetched", str(result.fetched))
    table.add_row("Rows valid", str(result.valid))
    table.add_row("Records stored", str(result.stored))
    table.add_row("Records changed", str(result.changed))
    table.add_row("Email cache hits", str(result.cache_hits))
    table.add_row("Email lookups", str(result.lookups))
    table.add_row("Emails found", str(result.found))
    table.add_row("Duration", f"{result.duration_seconds:.1f}s")
    return table


@click.command(name="pull")
@env_file_option
def pull(env_file: str | None) -> None:
    """Fetch the registration report once and update the stored snapshot."""
    console = Console()
    settings = load_settings(console, env_file)
    if settings is None:
        raise SystemExit(1)

    try:
        with console.status("Pulling registration report..."):
            result = asyncio.run(_pull(settings))
    except Exception as exc:
        console.print(f"[red]Pull failed: {exc}[/red]")
        raise SystemExit(1) from exc
    console.print(_summary_table(result))
