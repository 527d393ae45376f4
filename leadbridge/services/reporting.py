"""Fetch-and-store pipeline behind the reporting server.

A pull authenticates against the affiliate platform, downloads every
registration since the epoch, validates the rows, enriches them with email
hashes, merges them into the stored snapshot and persists the result together
with the pull timestamp.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
from pydantic import ValidationError

from leadbridge.app.config import Settings
from leadbridge.domain.models import (
    EPOCH,
    RegistrationRow,
    StoredRecord,
    format_report_date,
    iso_utc,
    pseudonymize,
)
from leadbridge.infrastructure.enrichment import (
    CooldownPolicy,
    CredentialPool,
    EmailFetcher,
    RoundRobinDispatcher,
)
from leadbridge.infrastructure.http import AffiliateReportClient
from leadbridge.infrastructure.observability import get_logger, record_pull_run
from leadbridge.infrastructure.persistence import JsonDocument

from .enrichment import EmailEnrichmentPipeline, EnrichmentCache
from .merge import merge_records

logger = get_logger(__name__)


class ReportStore:
    """The snapshot, pull state and client access cursor files."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.data = JsonDocument(self.data_dir / "data.json", default=[])
        self.state = JsonDocument(self.data_dir / "state.json", default={})
        self.access = JsonDocument(
            self.data_dir / "last-client-access.json", default={"lastClientFetch": None}
        )
        self.error_log_path = self.data_dir / "error.log"

    def load_records(self) -> list[StoredRecord]:
        return [StoredRecord.model_validate(raw) for raw in self.data.load() or []]

    def save_records(self, records: Iterable[StoredRecord]) -> None:
        self.data.save([record.to_wire() for record in records])

    def last_fetch(self) -> str | None:
        state = self.state.load() or {}
        return state.get("lastUpdate") or state.get("lastFetch")

    def save_last_fetch(self, timestamp: str) -> None:
        self.state.save({"lastFetch": timestamp})

    def last_client_fetch(self) -> str | None:
        return (self.access.load() or {}).get("lastClientFetch")

    def save_last_client_fetch(self, timestamp: str) -> None:
        self.access.save({"lastClientFetch": timestamp})


def validate_rows(raw_rows: Iterable[Any]) -> list[RegistrationRow]:
    """Validate raw report rows, logging and dropping the invalid ones."""
    rows: list[RegistrationRow] = []
    for raw in raw_rows:
        if not isinstance(raw, dict):
            logger.error("Validation error: row is not an object: %r", raw)
            continue
        try:
            rows.append(RegistrationRow.model_validate(raw))
        except ValidationError as exc:
            messages = [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
            logger.error("Validation error %s: %s", raw.get("User_ID"), messages)
    return rows


def generate_mock_records(
    count: int = 10,
    *,
    now: str | None = None,
    rng: Callable[[], float] = random.random,
) -> list[StoredRecord]:
    """Placeholder records for client integration testing."""
    stamp = now or iso_utc(datetime.now(timezone.utc))
    records = []
    for number in range(1, count + 1):
        records.append(
            StoredRecord(
                customer_id=f"fake_{number}",
                registration_date=stamp,
                tracking_code=f"TRACK{number}",
                qualification_date=stamp,
                lot_amount=round(rng() * 100, 2),
                first_deposit=round(rng() * 1000, 2),
                first_deposit_date=stamp,
                net_deposit=round(rng() * 500, 2),
                customer_name_hash=pseudonymize(f"Customer_{number}"),
                commission=round(rng() * 100, 2),
                email=pseudonymize(f"test.user{number}@example.com"),
                modified_at=stamp,
            )
        )
    return records


@dataclass
class PullResult:
    fetched: int
    valid: int
    stored: int
    changed: int
    cache_hits: int
    lookups: int
    found: int
    finished_at: str
    duration_seconds: float


class ReportPipeline:
    """One fetch-and-store run over the affiliate report."""

    def __init__(
        self,
        reports: AffiliateReportClient,
        fetcher: EmailFetcher,
        store: ReportStore,
        *,
        progress_every: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.reports = reports
        self.fetcher = fetcher
        self.store = store
        self.progress_every = progress_every
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        store: ReportStore | None = None,
    ) -> "ReportPipeline":
        """Wire the report client and the email fetcher from settings."""
        pool = CredentialPool.from_tokens(
            settings.email_lookup_tokens,
            capacity=settings.rate_limit_capacity,
            window_seconds=settings.rate_limit_window_seconds,
        )
        fetcher = EmailFetcher(
            client,
            RoundRobinDispatcher(pool),
            lookup_url=f"{settings.backend_base_url}/email-by-id",
            policy=CooldownPolicy(
                cooldown_seconds=settings.cooldown_seconds,
                max_retries=settings.cooldown_max_retries,
                backoff_factor=settings.cooldown_backoff_factor,
                max_cooldown_seconds=settings.cooldown_max_seconds,
                jitter_seconds=settings.cooldown_jitter_seconds,
            ),
            acquire_timeout=settings.acquire_timeout_seconds,
        )
        reports = AffiliateReportClient(
            client,
            base_url=settings.affiliate_api_url,
            username=settings.api_username or "",
            password=settings.api_password or "",
            admin_url=settings.admin_url,
            affiliate_id=settings.affiliate_id,
            timeout=settings.request_timeout_seconds,
        )
        return cls(reports, fetcher, store or ReportStore(settings.data_dir))

    async def fetch_and_store(self) -> PullResult:
        started = time.perf_counter()
        try:
            result = await self._fetch_and_store(started)
        except Exception:
            record_pull_run("error", time.perf_counter() - started, 0)
            raise
        record_pull_run(
            "success", result.duration_seconds, result.changed, stored=result.stored
        )
        return result

    async def _fetch_and_store(self, started: float) -> PullResult:
        now = self._clock()

        token = await self.reports.authenticate()
        raw = await self.reports.fetch_registration_report(
            token, format_report_date(EPOCH), format_report_date(now)
        )
        rows = validate_rows(raw)

        existing = self.store.load_records()
        pipeline = EmailEnrichmentPipeline(
            self.fetcher,
            EnrichmentCache.from_records(existing),
            progress_every=self.progress_every,
        )
        run = await pipeline.enrich(rows)

        # Must be later than any client cursor set while enrichment ran.
        merged_at = iso_utc(self._clock())
        incoming = [StoredRecord.from_registration(row) for row in run.rows]
        merged = merge_records(existing, incoming, merged_at)
        changed = sum(1 for record in merged if record.modified_at == merged_at)

        self.store.save_records(merged)
        self.store.save_last_fetch(merged_at)
        logger.info(
            "Pull finished: %d records stored, %d changed", len(merged), changed
        )
        return PullResult(
            fetched=len(raw),
            valid=len(rows),
            stored=len(merged),
            changed=changed,
            cache_hits=run.cache_hits,
            lookups=run.lookups,
            found=run.found,
            finished_at=merged_at,
            duration_seconds=time.perf_counter() - started,
        )


__all__ = [
    "PullResult",
    "ReportPipeline",
    "ReportStore",
    "generate_mock_records",
    "validate_rows",
]
