"""Logging utilities for leadbridge.

Centralised logging configuration for the pull pipeline, the reporting server
and the board-sync jobs. Two things are added on top of stdlib logging:

* ``log_context(...)`` appends ``key=value`` fields (job, board, ...) to every
  record emitted inside the block.
* :class:`SecretFilter` masks API keys, bearer tokens and passwords. Upstream
  errors often echo full request URLs, and the partners API takes its
  password as a query parameter.
"""

from __future__ import annotations

import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Iterable, Iterator


# ---------------------------------------------------------------------------
# Context fields
# ---------------------------------------------------------------------------

_log_context: ContextVar[dict[str, Any]] = ContextVar(
    "log_context", default={})

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MASK = "***"


class ContextualFormatter(logging.Formatter):
    """Appends the active ``log_context`` fields as ``[k=v ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = _log_context.get()
        if ctx:
            ctx_str = " ".join(f"{k}={v}" for k, v in ctx.items())
            # Work on a copy; the same record reaches every handler.
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"{record.getMessage()} [{ctx_str}]"
            record.args = None
        return super().format(record)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Attach ``key=value`` fields to every record logged inside the block.

    Usage::

        with log_context(job="sales-updater", board_id=1234):
            logger.info("Processing board")  # message includes context

    Nested blocks extend the outer fields; the outer set is restored on exit.
    """
    current = _log_context.get()
    merged = {**current, **fields}
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


# ---------------------------------------------------------------------------
# Secret masking
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[^\s'\",]+", re.IGNORECASE),
    re.compile(r"((?:api_password|pass|password|api_key|token)=)[^&\s'\"]+", re.IGNORECASE),
    re.compile(
        r"((?:x-api-key|authorization)['\"]?\s*[:=]\s*['\"]?)(?!Bearer\s)[^\s'\",}]+",
        re.IGNORECASE,
    ),
)

_registered_secrets: set[str] = set()


def register_secrets(values: Iterable[str | None]) -> None:
    """Mask these literal values wherever they appear in log output."""
    for value in values:
        # Very short values would mask ordinary words.
        if value and len(value) >= 4:
            _registered_secrets.add(value)


def mask_secrets(text: str) -> str:
    for secret in sorted(_registered_secrets, key=len, reverse=True):
        text = text.replace(secret, MASK)
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + MASK, text)
    return text


class SecretFilter(logging.Filter):
    """Rewrite each record's message with credentials masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

_configured = False


def _handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(SecretFilter())
    return handler


def configure_logging(
    level: int = logging.INFO,
    third_party_level: int = logging.WARNING,
    log_file: str | Path | None = None,
) -> None:
    """Install the stderr handler (and optionally a file handler) on the root logger.

    Called by the CLI group and the server lifespan; later calls are no-ops.

    Args:
        level: Root log level.
        third_party_level: Level for the noisy HTTP and server libraries.
        log_file: Optional file that receives the same records as stderr.
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = ContextualFormatter(DEFAULT_FORMAT)
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), formatter))
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_handler(logging.FileHandler(path, encoding="utf-8"), formatter))

    # httpx logs every request URL at INFO
    for name in ("httpx", "httpcore", "urllib3", "asyncio", "uvicorn.access"):
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``.

    Before :func:`configure_logging` runs, a masked stderr handler is attached
    so library use outside the CLI still prints something.
    """
    logger = logging.getLogger(name)
    if not _configured and not logger.handlers and not logging.getLogger().handlers:
        logger.addHandler(
            _handler(logging.StreamHandler(), logging.Formatter(DEFAULT_FORMAT))
        )
        logger.setLevel(logging.INFO)
    return logger


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    **context: Any,
) -> None:
    """Log an exception together with the current context fields."""
    with log_context(**context):
        logger.exception(f"{message}: {exc}")
