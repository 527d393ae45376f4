"""Entry point for running the leadbridge CLI.

This module defines the top-level Click group that aggregates the ``serve``,
``pull`` and ``job`` subcommands. Executing ``python -m leadbridge.interfaces.cli``
invokes this group.
"""

import logging

import click

from leadbridge.infrastructure.observability import configure_logging

from .job import job
from .pull import pull
from .serve import serve


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Log level for leadbridge loggers.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=str),
    default=None,
    help="Optional file that receives a copy of the log output.",
)
def cli(log_level: str, log_file: str | None) -> None:
    """leadbridge command-line interface."""
    configure_logging(level=getattr(logging, log_level.upper()), log_file=log_file)


cli.add_command(serve)
cli.add_command(pull)
cli.add_command(job)


if __name__ == "__main__":
    cli()
