"""Simple in-process metrics collection for leadbridge.

Counters, gauges and running summaries that track email lookups, pull runs
and board updates. Everything lives in memory; the reporting server includes
:func:`get_metrics_summary` in ``/meta`` and :func:`format_prometheus` renders
the text exposition format.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Iterator, Mapping

Labels = Mapping[str, str | None]
LabelKey = tuple[tuple[str, str | None], ...]


def _key(labels: Labels | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


def _render_labels(key: LabelKey, quoted: bool) -> str:
    if quoted:
        return ",".join(f'{k}="{v}"' for k, v in key)
    return ",".join(f"{k}={v}" for k, v in key)


# ---------------------------------------------------------------------------
# Metric types
# ---------------------------------------------------------------------------


@dataclass
class Counter:
    """A monotonically increasing value per label set."""

    name: str
    help_text: str = ""
    kind = "counter"
    _values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def inc(self, value: float = 1.0, labels: Labels | None = None) -> None:
        key = _key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + value

    def get(self, labels: Labels | None = None) -> float:
        with self._lock:
            return self._values.get(_key(labels), 0.0)

    def samples(self) -> Iterator[tuple[LabelKey, float]]:
        with self._lock:
            items = list(self._values.items())
        yield from items


@dataclass
class Gauge(Counter):
    """A value that is overwritten rather than accumulated."""

    kind = "gauge"

    def set(self, value: float, labels: Labels | None = None) -> None:
        with self._lock:
            self._values[_key(labels)] = value


@dataclass
class Summary:
    """Count and sum of observations per label set."""

    name: str
    help_text: str = ""
    _totals: dict[LabelKey, tuple[int, float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def observe(self, value: float, labels: Labels | None = None) -> None:
        key = _key(labels)
        with self._lock:
            count, total = self._totals.get(key, (0, 0.0))
            self._totals[key] = (count + 1, total + value)

    def get_stats(self, labels: Labels | None = None) -> dict[str, float]:
        with self._lock:
            count, total = self._totals.get(_key(labels), (0, 0.0))
        return {"count": count, "sum": total, "avg": total / count if count else 0.0}

    def samples(self) -> Iterator[tuple[LabelKey, dict[str, float]]]:
        with self._lock:
            keys = list(self._totals)
        for key in keys:
            yield key, self.get_stats(dict(key))


class MetricRegistry:
    """Metrics by name; the first registration of a name fixes its type."""

    def __init__(self) -> None:
        self._values: dict[str, Counter] = {}
        self._summaries: dict[str, Summary] = {}
        self._lock = threading.Lock()

    def _get(self, table: dict, factory: type, name: str, help_text: str):
        with self._lock:
            metric = table.get(name)
            if metric is None:
                metric = table[name] = factory(name=name, help_text=help_text)
            return metric

    def counter(self, name: str, help_text: str = "") -> Counter:
        return self._get(self._values, Counter, name, help_text)

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        return self._get(self._values, Gauge, name, help_text)

    def summary(self, name: str, help_text: str = "") -> Summary:
        return self._get(self._summaries, Summary, name, help_text)

    def values(self) -> list[Counter]:
        with self._lock:
            return list(self._values.values())

    def summaries(self) -> list[Summary]:
        with self._lock:
            return list(self._summaries.values())

    def reset(self) -> None:
        with self._lock:
            self._values.clear()
            self._summaries.clear()


_registry = MetricRegistry()


def get_registry() -> MetricRegistry:
    return _registry


# ---------------------------------------------------------------------------
# Recording helpers
# ---------------------------------------------------------------------------


def increment_counter(
    name: str,
    value: float = 1.0,
    labels: Labels | None = None,
    help_text: str = "",
) -> None:
    _registry.counter(name, help_text).inc(value, labels)


def set_gauge(
    name: str, value: float, labels: Labels | None = None, help_text: str = ""
) -> None:
    _registry.gauge(name, help_text).set(value, labels)


def observe_histogram(
    name: str,
    value: float,
    labels: Labels | None = None,
    help_text: str = "",
) -> None:
    """Add one observation (usually a duration in seconds)."""
    _registry.summary(name, help_text).observe(value, labels)


class Timer:
    """Context manager that records the elapsed time of its block."""

    def __init__(
        self,
        name: str,
        labels: Labels | None = None,
        help_text: str = "",
    ) -> None:
        self.name = name
        self.labels = labels
        self.help_text = help_text
        self.elapsed = 0.0
        self._start = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.elapsed = time.perf_counter() - self._start
        observe_histogram(self.name, self.elapsed, self.labels, self.help_text)


EMAIL_LOOKUPS = "email_lookups_total"
EMAIL_COOLDOWNS = "email_lookup_cooldowns_total"
PULL_RUNS = "pull_runs_total"
PULL_RUN_DURATION = "pull_run_duration_seconds"
PULL_RECORDS_CHANGED = "pull_records_changed_total"
STORED_RECORDS = "stored_records"
BOARD_UPDATES = "board_updates_total"
BOARD_JOB_DURATION = "board_job_duration_seconds"


def record_email_lookup(outcome: str) -> None:
    """Record one HTTP attempt against the email lookup API.

    Args:
        outcome: 'found', 'absent', 'rate_limited', 'transient' or 'fatal'
    """
    increment_counter(
        EMAIL_LOOKUPS,
        labels={"outcome": outcome},
        help_text="Email lookup attempts by outcome",
    )


def record_email_cooldown() -> None:
    increment_counter(
        EMAIL_COOLDOWNS,
        help_text="Cooldowns after every credential was rate limited",
    )


def record_pull_run(
    status: str,
    duration: float,
    records_changed: int,
    stored: int | None = None,
) -> None:
    """Record a finished fetch-and-store run.

    ``stored`` is the snapshot size after a successful run; failed runs leave
    the gauge at its previous value.
    """
    labels = {"status": status}
    increment_counter(PULL_RUNS, labels=labels, help_text="Pull runs by status")
    observe_histogram(
        PULL_RUN_DURATION, duration, labels=labels, help_text="Pull run duration"
    )
    if records_changed:
        increment_counter(
            PULL_RECORDS_CHANGED,
            value=float(records_changed),
            help_text="Stored records whose modifiedAt was bumped",
        )
    if stored is not None:
        set_gauge(STORED_RECORDS, float(stored), help_text="Records in the snapshot")


def record_board_update(job: str, status: str) -> None:
    """Record a board item created, updated or failed by a sync job."""
    increment_counter(
        BOARD_UPDATES,
        labels={"job": job, "status": status},
        help_text="Board items written by sync jobs",
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def get_metrics_summary() -> dict[str, object]:
    """Plain-dict view of every metric, keyed ``k=v,k=v`` (or ``default``)."""
    counters: dict[str, dict[str, float]] = {}
    gauges: dict[str, dict[str, float]] = {}
    histograms: dict[str, dict[str, dict[str, float]]] = {}

    for metric in _registry.values():
        target = gauges if metric.kind == "gauge" else counters
        target[metric.name] = {
            _render_labels(key, quoted=False) or "default": value
            for key, value in metric.samples()
        }
    for summary in _registry.summaries():
        histograms[summary.name] = {
            _render_labels(key, quoted=False) or "default": stats
            for key, stats in summary.samples()
        }
    return {"counters": counters, "gauges": gauges, "histograms": histograms}


def format_prometheus() -> str:
    """Render every metric in the Prometheus text exposition format."""
    lines: list[str] = []

    def header(name: str, help_text: str, kind: str) -> None:
        if help_text:
            lines.append(f"# HELP {name} {help_text}")
        lines.append(f"# TYPE {name} {kind}")

    def sample(name: str, key: LabelKey, value: float) -> None:
        labels = _render_labels(key, quoted=True)
        lines.append(f"{name}{{{labels}}} {value}" if labels else f"{name} {value}")

    for metric in _registry.values():
        header(metric.name, metric.help_text, metric.kind)
        for key, value in metric.samples():
            sample(metric.name, key, value)

    for summary in _registry.summaries():
        header(summary.name, summary.help_text, "summary")
        for key, stats in summary.samples():
            sample(f"{summary.name}_count", key, stats["count"])
            sample(f"{summary.name}_sum", key, stats["sum"])

    return "\n".join(lines)
