"""Observability and logging facades."""

from .logging import (
    configure_logging,
    get_logger,
    log_context,
    log_exception,
    mask_secrets,
    register_secrets,
)
from .metrics import (
    Timer,
    format_prometheus,
    get_metrics_summary,
    increment_counter,
    observe_histogram,
    record_board_update,
    record_email_cooldown,
    record_email_lookup,
    record_pull_run,
    set_gauge,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    "log_exception",
    "mask_secrets",
    "register_secrets",
    # Metrics
    "Timer",
    "format_prometheus",
    "get_metrics_summary",
    "increment_counter",
    "observe_histogram",
    "record_board_update",
    "record_email_cooldown",
    "record_email_lookup",
    "record_pull_run",
    "set_gauge",
]
