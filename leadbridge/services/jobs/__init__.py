"""Board-sync jobs and the registry used by the CLI."""

from __future__ import annotations

from typing import Callable

from leadbridge.app.config import Settings
from leadbridge.infrastructure.http import BackendClient, BoardClient, PartnersClient

from .base import BoardJob, JobResult
from .lead_intake import LeadIntakeJob
from .registration_updater import RegistrationUpdaterJob
from .retention_updater import RetentionUpdaterJob
from .sales_updater import SalesUpdaterJob


def _board_client(settings: Settings) -> BoardClient:
    return BoardClient(settings.board_api_token, api_url=settings.board_api_url)


def _backend_client(settings: Settings) -> BackendClient:
    return BackendClient(settings.backend_base_url, settings.lead_export_api_key)


def _lead_intake(settings: Settings) -> BoardJob:
    return LeadIntakeJob(
        _board_client(settings),
        _backend_client(settings),
        settings.board_configs("registration"),
        partners=PartnersClient(
            settings.partners_base_url,
            settings.api_username,
            settings.api_password,
            timeout=settings.request_timeout_seconds,
        ),
        state_path=settings.data_dir / "last_processed.json",
    )


def _registration_updater(settings: Settings) -> BoardJob:
    return RegistrationUpdaterJob(
        _board_client(settings),
        _backend_client(settings),
        settings.board_configs("registration"),
    )


def _retention_updater(settings: Settings) -> BoardJob:
    return RetentionUpdaterJob(
        _board_client(settings),
        _backend_client(settings),
        settings.board_configs("retention"),
        state_path=settings.data_dir / "sync_state.json",
    )


def _sales_updater(settings: Settings) -> BoardJob:
    return SalesUpdaterJob(
        _board_client(settings),
        _backend_client(settings),
        settings.board_configs("sales"),
    )


JOB_FACTORIES: dict[str, Callable[[Settings], BoardJob]] = {
    LeadIntakeJob.name: _lead_intake,
    RegistrationUpdaterJob.name: _registration_updater,
    RetentionUpdaterJob.name: _retention_updater,
    SalesUpdaterJob.name: _sales_updater,
}


def build_job(name: str, settings: Settings) -> BoardJob:
    try:
        factory = JOB_FACTORIES[name]
    except KeyError:
        raise ValueError(f"Unknown job: {name}") from None
    return factory(settings)


def job_interval_minutes(name: str, settings: Settings) -> int:
    if name == RetentionUpdaterJob.name:
        return settings.retention_interval_minutes
    return settings.job_interval_minutes


__all__ = [
    "BoardJob",
    "JOB_FACTORIES",
    "JobResult",
    "LeadIntakeJob",
    "RegistrationUpdaterJob",
    "RetentionUpdaterJob",
    "SalesUpdaterJob",
    "build_job",
    "job_interval_minutes",
]
