"""Service layer modules for leadbridge."""

from .enrichment import EmailEnrichmentPipeline, EnrichmentCache, EnrichmentRun
from .merge import merge_records
from .reporting import (
    PullResult,
    ReportPipeline,
    ReportStore,
    generate_mock_records,
    validate_rows,
)
from .scheduler import PullScheduler

__all__ = [
    "EmailEnrichmentPipeline",
    "EnrichmentCache",
    "EnrichmentRun",
    "PullResult",
    "PullScheduler",
    "ReportPipeline",
    "ReportStore",
    "generate_mock_records",
    "merge_records",
    "validate_rows",
]
