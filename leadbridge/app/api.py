"""FastAPI application serving the pseudonymized registration feed.

Run with ``uvicorn leadbridge.app.api:app`` or ``leadbridge serve``. When the
scheduler is enabled the app pulls the affiliate report on startup and then
every ``PULL_INTERVAL_MINUTES``; the endpoints always read the last persisted
snapshot.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from leadbridge import __version__
from leadbridge.app.config import Settings
from leadbridge.app.dependencies import (
    AccessLockDep,
    ReportStoreDep,
    SettingsDep,
    require_api_key,
)
from leadbridge.domain.models import StoredRecord, iso_utc, iso_utcnow, parse_timestamp
from leadbridge.infrastructure.observability import (
    configure_logging,
    get_logger,
    get_metrics_summary,
    register_secrets,
)
from leadbridge.services.reporting import (
    ReportPipeline,
    ReportStore,
    generate_mock_records,
)
from leadbridge.services.scheduler import PullScheduler

logger = get_logger(__name__)

DELTA_MOCK_COUNT = 5
FULL_MOCK_COUNT = 10


class ReportResponse(BaseModel):
    count: int
    records: list[dict[str, Any]]


class HealthResponse(BaseModel):
    status: str
    last_client_fetch: str | None = Field(None, serialization_alias="lastClientFetch")
    last_broker_update: str | None = Field(None, serialization_alias="lastBrokerUpdate")


class MetaResponse(BaseModel):
    version: str
    record_count: int = Field(serialization_alias="recordCount")
    last_broker_update: str | None = Field(serialization_alias="lastBrokerUpdate")
    last_client_fetch: str | None = Field(serialization_alias="lastClientFetch")
    last_update_detected: str | None = Field(serialization_alias="lastUpdateDetected")
    file_size_kb: float = Field(serialization_alias="fileSizeKB")
    interval_minutes: int = Field(serialization_alias="intervalMinutes")
    affiliate_id: str | None = Field(serialization_alias="affiliateId")
    uptime_seconds: int = Field(serialization_alias="uptimeSeconds")
    timezone: str = "UTC"
    metrics: dict[str, Any] = Field(default_factory=dict)


def _report(records: list[StoredRecord]) -> ReportResponse:
    return ReportResponse(
        count=len(records), records=[record.to_report() for record in records]
    )


def _load_records(store: ReportStore, mock: bool, mock_count: int) -> list[StoredRecord]:
    if mock:
        return generate_mock_records(mock_count)
    try:
        return store.load_records()
    except Exception as exc:
        logger.exception("Unable to load snapshot: %s", exc)
        raise HTTPException(status_code=500, detail="Unable to load data") from exc


def _build_lifespan(start_scheduler: bool):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        settings: Settings = app.state.settings
        register_secrets(settings.secret_values())
        app.state.started_at = time.monotonic()
        if not start_scheduler:
            yield
            return

        logger.info(
            "Server starting on port %s, affiliate %s",
            settings.port,
            settings.affiliate_id,
        )
        async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as client:
            pipeline = ReportPipeline.from_settings(settings, client, app.state.store)
            scheduler = PullScheduler(
                pipeline.fetch_and_store,
                name="fetch-and-store",
                interval_seconds=settings.pull_interval_minutes * 60,
                retry_delay_seconds=settings.retry_delay_seconds,
                error_log_path=app.state.store.error_log_path,
            )
            app.state.scheduler = scheduler
            scheduler.start()
            try:
                yield
            finally:
                await scheduler.stop()

    return lifespan


def create_app(
    settings: Settings | None = None,
    *,
    store: ReportStore | None = None,
    start_scheduler: bool = False,
) -> FastAPI:
    """Build the reporting app.

    Args:
        settings: Runtime settings; read from the environment when omitted.
        store: Snapshot store; defaults to the files under ``settings.data_dir``.
        start_scheduler: Run the fetch-and-store loop for the app's lifetime.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(
        title="leadbridge reports",
        version=__version__,
        lifespan=_build_lifespan(start_scheduler),
        dependencies=[Depends(require_api_key)],
    )
    app.state.settings = settings
    app.state.store = store or ReportStore(settings.data_dir)
    app.state.access_lock = asyncio.Lock()
    app.state.started_at = time.monotonic()
    app.state.scheduler = None

    @app.get("/reports", response_model=ReportResponse)
    async def reports(
        response: Response,
        store: ReportStoreDep,
        lock: AccessLockDep,
        mock: bool = False,
    ) -> ReportResponse:
        """Records modified since the previous call; advances the client cursor."""
        async with lock:
            records = _load_records(store, mock, DELTA_MOCK_COUNT)
            cursor = parse_timestamp(store.last_client_fetch())
            fresh = [r for r in records if r.modified_at_dt > cursor]
            now = iso_utcnow()
            store.save_last_client_fetch(now)
        response.headers["Last-Modified"] = now
        return _report(fresh)

    @app.get("/reports/full", response_model=ReportResponse)
    async def reports_full(
        response: Response,
        store: ReportStoreDep,
        mock: bool = False,
    ) -> ReportResponse:
        """Every stored record; the client cursor is left untouched."""
        records = _load_records(store, mock, FULL_MOCK_COUNT)
        response.headers["Last-Modified"] = iso_utcnow()
        return _report(records)

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
    async def health(store: ReportStoreDep) -> HealthResponse:
        return HealthResponse(
            status="ok",
            last_client_fetch=store.last_client_fetch(),
            last_broker_update=store.last_fetch(),
        )

    @app.get("/meta", response_model=MetaResponse, response_model_by_alias=True)
    async def meta(store: ReportStoreDep, settings: SettingsDep) -> MetaResponse:
        records = _load_records(store, False, 0)
        last_update = (
            iso_utc(max(r.modified_at_dt for r in records)) if records else None
        )
        return MetaResponse(
            version=__version__,
            record_count=len(records),
            last_broker_update=store.last_fetch(),
            last_client_fetch=store.last_client_fetch(),
            last_update_detected=last_update,
            file_size_kb=round(store.data.size_bytes() / 1024, 2),
            interval_minutes=settings.pull_interval_minutes,
            affiliate_id=settings.affiliate_id,
            uptime_seconds=int(time.monotonic() - app.state.started_at),
            metrics=get_metrics_summary(),
        )

    return app


app = create_app(start_scheduler=True)
