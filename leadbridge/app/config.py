"""Configuration utilities for leadbridge.

Secrets and endpoints come from environment variables (a ``.env`` file in the
working directory is loaded first when present). Board lists for the sync jobs
live in a JSON file read with :func:`load_config`.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import load_dotenv

DEFAULT_AFFILIATE_API_URL = "https://adminapi.cellxpert.com/"
DEFAULT_PARTNERS_BASE_URL = "https://partners.raisefx.com/api/admin"
DEFAULT_BOARD_API_URL = "https://api.monday.com/v2"
DEFAULT_ADMIN_URL = "RaiseFX"


class ConfigurationError(Exception):
    """Raised when required settings are missing or malformed."""


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file.

    Returns:
        A dictionary of configuration values, empty when the file is missing.
    """
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _split_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(env: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


@dataclass
class Settings:
    """Runtime settings shared by the server, the pull pipeline and the jobs."""

    api_username: str | None = None
    api_password: str | None = None
    reports_api_key: str | None = None
    affiliate_id: str | None = None
    backend_base_url: str = ""
    lead_export_api_key: str | None = None
    board_api_token: str | None = None
    affiliate_api_url: str = DEFAULT_AFFILIATE_API_URL
    partners_base_url: str = DEFAULT_PARTNERS_BASE_URL
    board_api_url: str = DEFAULT_BOARD_API_URL
    admin_url: str = DEFAULT_ADMIN_URL
    port: int = 3000
    pull_interval_minutes: int = 15
    job_interval_minutes: int = 15
    retention_interval_minutes: int = 30
    data_dir: Path = field(default_factory=lambda: Path("data"))
    boards_config_path: Path = field(default_factory=lambda: Path("config.json"))
    email_lookup_tokens: list[str] = field(default_factory=list)
    rate_limit_capacity: int = 60
    rate_limit_window_seconds: float = 60.0
    acquire_timeout_seconds: float | None = None
    cooldown_seconds: float = 60.0
    cooldown_max_retries: int | None = None
    cooldown_backoff_factor: float = 1.0
    cooldown_max_seconds: float | None = None
    cooldown_jitter_seconds: float = 0.0
    retry_delay_seconds: float = 60.0
    request_timeout_seconds: float = 10.0

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        dotenv_path: str | Path | None = ".env",
    ) -> "Settings":
        """Build settings from environment variables.

        When ``env`` is omitted the process environment is used after loading
        ``dotenv_path`` (existing variables are not overridden).
        """
        if env is None:
            if dotenv_path is not None and Path(dotenv_path).exists():
                load_dotenv(dotenv_path=dotenv_path)
            env = os.environ

        max_retries_raw = env.get("EMAIL_COOLDOWN_MAX_RETRIES")
        return cls(
            api_username=env.get("API_USERNAME"),
            api_password=env.get("API_PASSWORD"),
            reports_api_key=env.get("REPORTS_API_KEY"),
            affiliate_id=env.get("AFFILIATE_ID"),
            backend_base_url=env.get("BACKEND_BASE_URL", "").rstrip("/"),
            lead_export_api_key=env.get("LEAD_EXPORT_API_KEY"),
            board_api_token=env.get("MONDAY_TOKEN") or env.get("Monday_Token"),
            affiliate_api_url=env.get("AFFILIATE_API_URL", DEFAULT_AFFILIATE_API_URL),
            partners_base_url=env.get("PARTNERS_BASE_URL", DEFAULT_PARTNERS_BASE_URL),
            board_api_url=env.get("BOARD_API_URL", DEFAULT_BOARD_API_URL),
            admin_url=env.get("AFFILIATE_ADMIN_URL", DEFAULT_ADMIN_URL),
            port=_int_env(env, "PORT", 3000),
            pull_interval_minutes=_int_env(env, "PULL_INTERVAL_MINUTES", 15),
            job_interval_minutes=_int_env(env, "JOB_INTERVAL_MINUTES", 15),
            retention_interval_minutes=_int_env(env, "RETENTION_INTERVAL_MINUTES", 30),
            data_dir=Path(env.get("DATA_DIR", "data")),
            boards_config_path=Path(env.get("BOARDS_CONFIG", "config.json")),
            email_lookup_tokens=_split_list(env.get("EMAIL_LOOKUP_TOKENS")),
            rate_limit_capacity=_int_env(env, "EMAIL_RATE_LIMIT", 60),
            rate_limit_window_seconds=_float_env(env, "EMAIL_RATE_WINDOW_SECONDS", 60.0)
            or 60.0,
            acquire_timeout_seconds=_float_env(env, "EMAIL_ACQUIRE_TIMEOUT_SECONDS", None),
            cooldown_seconds=_float_env(env, "EMAIL_COOLDOWN_SECONDS", 60.0) or 0.0,
            cooldown_max_retries=(
                _int_env(env, "EMAIL_COOLDOWN_MAX_RETRIES", 0)
                if max_retries_raw not in (None, "")
                else None
            ),
            cooldown_backoff_factor=_float_env(env, "EMAIL_COOLDOWN_BACKOFF", 1.0) or 1.0,
            cooldown_max_seconds=_float_env(env, "EMAIL_COOLDOWN_MAX_SECONDS", None),
            cooldown_jitter_seconds=_float_env(env, "EMAIL_COOLDOWN_JITTER_SECONDS", 0.0)
            or 0.0,
            retry_delay_seconds=_float_env(env, "RUN_RETRY_DELAY_SECONDS", 60.0) or 0.0,
        )

    def require_server_settings(self) -> None:
        """Raise :class:`ConfigurationError` if the reporting server cannot start."""
        missing = [
            name
            for name, value in (
                ("API_USERNAME", self.api_username),
                ("API_PASSWORD", self.api_password),
                ("REPORTS_API_KEY", self.reports_api_key),
                ("AFFILIATE_ID", self.affiliate_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Missing environment variables: " + ", ".join(missing)
            )

    def secret_values(self) -> list[str]:
        """Credentials that must never show up in log output."""
        values = [
            self.api_password,
            self.reports_api_key,
            self.lead_export_api_key,
            self.board_api_token,
            *self.email_lookup_tokens,
        ]
        return [value for value in values if value]

    def board_configs(self, section: str) -> list[dict[str, Any]]:
        """Return the board list configured under ``boards.<section>``."""
        cfg = load_config(self.boards_config_path)
        boards = cfg.get("boards", {}) if isinstance(cfg.get("boards"), dict) else {}
        entries = boards.get(section, [])
        if not isinstance(entries, list):
            raise ConfigurationError(f"boards.{section} must be a list")
        return entries


__all__ = ["ConfigurationError", "Settings", "load_config"]
