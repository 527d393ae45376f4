"""Batch email enrichment for validated registration rows.

Each row gets ``email_hash`` set to the SHA-256 of its customer's email, or
``None`` when the email is unknown. Hashes from the previous snapshot are
reused through :class:`EnrichmentCache`; everything else is resolved
concurrently through the :class:`EmailFetcher`, whose per-credential rate
limiters provide the backpressure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from leadbridge.domain.models import RegistrationRow, StoredRecord, pseudonymize
from leadbridge.infrastructure.enrichment import EmailFetcher
from leadbridge.infrastructure.observability import get_logger

logger = get_logger(__name__)


class EnrichmentCache:
    """Identifier to email-hash map that only ever holds known hashes."""

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = {
            key: value for key, value in (entries or {}).items() if value
        }

    @classmethod
    def from_records(cls, records: Iterable[StoredRecord]) -> "EnrichmentCache":
        return cls({r.customer_id: r.email for r in records if r.email})

    def get(self, identifier: str) -> str | None:
        return self._entries.get(identifier)

    def put(self, identifier: str, email_hash: str) -> None:
        if email_hash:
            self._entries[identifier] = email_hash

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class EnrichmentRun:
    """Rows of one pipeline run plus counters describing how they were enriched."""

    rows: list[RegistrationRow] = field(default_factory=list)
    cache_hits: int = 0
    lookups: int = 0
    found: int = 0
    errors: int = 0

    @property
    def missing(self) -> int:
        return sum(1 for row in self.rows if row.email_hash is None)


class EmailEnrichmentPipeline:
    def __init__(
        self,
        fetcher: EmailFetcher,
        cache: EnrichmentCache | None = None,
        *,
        progress_every: int = 10,
    ) -> None:
        self._fetcher = fetcher
        self.cache = cache or EnrichmentCache()
        self.progress_every = max(1, progress_every)

    async def enrich(self, rows: Iterable[RegistrationRow]) -> EnrichmentRun:
        """Attach ``email_hash`` to every row.

        All lookups are spawned at once and awaited together; a failure in one
        lookup leaves that row with a null hash and never aborts the batch.
        Duplicate identifiers share a single in-flight lookup.
        """
        run = EnrichmentRun(rows=list(rows))
        total = len(run.rows)
        logger.info("Starting email enrichment for %d records", total)
        inflight: dict[str, asyncio.Task] = {}
        completed = 0

        async def tracked(row: RegistrationRow) -> str | None:
            nonlocal completed
            try:
                return await self._hash_for(row.user_id, inflight, run)
            finally:
                completed += 1
                if completed % self.progress_every == 0 or completed == total:
                    logger.info("Enrichment progress: %d/%d", completed, total)

        outcomes = await asyncio.gather(
            *(tracked(row) for row in run.rows), return_exceptions=True
        )
        for row, outcome in zip(run.rows, outcomes):
            if isinstance(outcome, BaseException):
                run.errors += 1
                logger.error("Email enrichment failed for %s: %s", row.user_id, outcome)
                row.email_hash = None
            else:
                row.email_hash = outcome
        logger.info(
            "Email enrichment finished: %d cached, %d looked up, %d found",
            run.cache_hits,
            run.lookups,
            run.found,
        )
        return run

    async def _hash_for(
        self, identifier: str, inflight: dict[str, asyncio.Task], run: EnrichmentRun
    ) -> str | None:
        cached = self.cache.get(identifier)
        if cached is not None:
            run.cache_hits += 1
            return cached
        task = inflight.get(identifier)
        if task is None:
            task = asyncio.ensure_future(self._lookup(identifier, run))
            inflight[identifier] = task
            run.lookups += 1
        return await task

    async def _lookup(self, identifier: str, run: EnrichmentRun) -> str | None:
        email = await self._fetcher.resolve(identifier)
        if not email:
            return None
        digest = pseudonymize(email)
        self.cache.put(identifier, digest)
        run.found += 1
        return digest


__all__ = ["EmailEnrichmentPipeline", "EnrichmentCache", "EnrichmentRun"]
