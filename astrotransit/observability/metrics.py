"""Prometheus counters and histograms emitted by providers and searches.

Metrics are created unregistered; call :func:`ensure_metrics_registered`
from the hosting application to expose them.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

__all__ = [
    "PROVIDER_FAILURES",
    "PROVIDER_QUERIES",
    "SAMPLE_GAPS",
    "SEARCHES_TOTAL",
    "SEARCH_DURATION",
    "ProviderMetricRecorder",
    "ensure_metrics_registered",
    "record_search",
]


PROVIDER_QUERIES = Counter(
    "astrotransit_provider_queries_total",
    "Position and horizon provider calls.",
    ("provider_id", "call"),
    registry=None,
)

PROVIDER_FAILURES = Counter(
    "astrotransit_provider_failures_total",
    "Provider calls that returned a failure instead of a value.",
    ("provider_id", "error_code"),
    registry=None,
)

SAMPLE_GAPS = Counter(
    "astrotransit_sample_gaps_total",
    "Samples skipped because a provider failed for that instant.",
    ("source",),
    registry=None,
)

SEARCH_DURATION = Histogram(
    "astrotransit_search_duration_seconds",
    "Wall time of a single point-key transit search.",
    ("source",),
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=None,
)

SEARCHES_TOTAL = Counter(
    "astrotransit_searches_total",
    "Transit searches by source kind and outcome.",
    ("source", "outcome"),
    registry=None,
)

_ALL_METRICS: tuple[Counter | Histogram, ...] = (
    PROVIDER_QUERIES,
    PROVIDER_FAILURES,
    SAMPLE_GAPS,
    SEARCH_DURATION,
    SEARCHES_TOTAL,
)


class ProviderMetricRecorder:
    """Counts calls and failures on behalf of one provider instance."""

    __slots__ = ("provider_id",)

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id

    def record_query(self, call: str) -> None:
        PROVIDER_QUERIES.labels(provider_id=self.provider_id, call=call).inc()

    def record_failure(self, error_code: str) -> None:
        PROVIDER_FAILURES.labels(provider_id=self.provider_id, error_code=error_code).inc()


def record_search(source: str, outcome: str, seconds: float | None = None) -> None:
    """Count one finished search and, when timed, observe its duration."""

    SEARCHES_TOTAL.labels(source=source, outcome=outcome).inc()
    if seconds is not None:
        SEARCH_DURATION.labels(source=source).observe(max(0.0, seconds))


def ensure_metrics_registered(registry: CollectorRegistry | None = None) -> None:
    """Register every astrotransit metric with ``registry`` (default: global)."""

    target = registry if registry is not None else REGISTRY
    for metric in _ALL_METRICS:
        try:
            target.register(metric)
        except ValueError:
            # already registered under the same name
            continue
