"""Prometheus metrics for the read-through cache.

Labels stay low-cardinality: outcomes only, never cache keys.
"""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

LookupOutcome = Literal["hit", "miss", "error"]
WriteOutcome = Literal["stored", "skipped", "error"]

CACHE_LOOKUPS_TOTAL = Counter(
    "cache_lookups_total",
    "Read-through cache lookups by outcome.",
    labelnames=("outcome",),
)

CACHE_WRITES_TOTAL = Counter(
    "cache_writes_total",
    "Read-through cache write-backs by outcome.",
    labelnames=("outcome",),
)

CACHE_FETCH_DURATION_SECONDS = Histogram(
    "cache_fetch_duration_seconds",
    "Time spent in the fetcher on a cache miss.",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def record_lookup(outcome: LookupOutcome) -> None:
    CACHE_LOOKUPS_TOTAL.labels(outcome=outcome).inc()


def record_write(outcome: WriteOutcome) -> None:
    CACHE_WRITES_TOTAL.labels(outcome=outcome).inc()


def observe_fetch(duration_seconds: float) -> None:
    CACHE_FETCH_DURATION_SECONDS.observe(max(0.0, float(duration_seconds)))


__all__ = [
    "CACHE_FETCH_DURATION_SECONDS",
    "CACHE_LOOKUPS_TOTAL",
    "CACHE_WRITES_TOTAL",
    "observe_fetch",
    "record_lookup",
    "record_write",
]
