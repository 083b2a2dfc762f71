"""Runtime observability primitives for astrotransit modules."""

from __future__ import annotations

from .metrics import (
    PROVIDER_FAILURES,
    PROVIDER_QUERIES,
    SAMPLE_GAPS,
    SEARCH_DURATION,
    SEARCHES_TOTAL,
    ProviderMetricRecorder,
    ensure_metrics_registered,
    record_search,
)

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
