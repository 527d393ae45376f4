"""``leadbridge job NAME``: run a board-sync job once or on its interval."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.table import Table

from leadbridge.services.jobs import JOB_FACTORIES, JobResult, build_job, job_interval_minutes
from leadbridge.services.scheduler import PullScheduler

from .context import env_file_option, load_settings


def _result_table(result: JobResult) -> Table:
    table = Table(title=f"{result.job} summary")
    table.add_column("Boards", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_row(
        str(result.boards),
        str(result.created),
        str(result.updated),
        str(result.skipped),
        str(result.failed),
    )
    return table


@click.command(name="job")
@click.argument("name", type=click.Choice(sorted(JOB_FACTORIES)))
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single pass and exit instead of repeating on the job's interval.",
)
@env_file_option
def job(name: str, once: bool, env_file: str | None) -> None:
    """Run the board-sync job NAME."""
    console = Console()
    settings = load_settings(console, env_file)
    if settings is None:
        raise SystemExit(1)
    board_job = build_job(name, settings)

    if once:
        try:
            result = board_job.run()
        except Exception as exc:
            console.print(f"[red]{name} failed: {exc}[/red]")
            raise SystemExit(1) from exc
        console.print(_result_table(result))
        return

    interval = job_interval_minutes(name, settings)
    scheduler = PullScheduler(
        lambda: asyncio.to_thread(board_job.run),
        name=name,
        interval_seconds=interval * 60,
        retry_delay_seconds=settings.retry_delay_seconds,
        error_log_path=settings.error_log,
    )
    console.print(f"[bold]Scheduler started:[/bold] {name} every {interval} minutes")
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
