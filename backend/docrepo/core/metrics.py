"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "docrepo_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

INGEST_TOTAL = Counter(
    "docrepo_ingest_total",
    "External PDF ingestion calls by outcome",
    labelnames=("outcome",),
    registry=REGISTRY,
)

OCR_RUNS = Counter(
    "docrepo_ocr_runs_total",
    "OCR attempts by committed outcome",
    labelnames=("status",),
    registry=REGISTRY,
)

OCR_DURATION = Histogram(
    "docrepo_ocr_duration_seconds",
    "Wall-clock time of a single OCR runner invocation",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 900),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "docrepo_search_latency_seconds",
    "Latency of full-text search queries",
    registry=REGISTRY,
)

PENDING_DOCUMENTS = Gauge(
    "docrepo_ocr_pending_documents",
    "Documents waiting for OCR at the last health snapshot",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "INGEST_TOTAL",
    "OCR_RUNS",
    "OCR_DURATION",
    "SEARCH_LATENCY",
    "PENDING_DOCUMENTS",
    "metrics_response",
]
