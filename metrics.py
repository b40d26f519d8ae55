"""
Prometheus metrics primitives and helpers for backup/restore/sync operations.
"""
from __future__ import annotations

import time
from contextlib import contextmanager

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from observability import emit_event

# Core metrics
backup_operations_total = Counter(
    "backup_operations_total",
    "Backup engine operations by outcome",
    ["operation", "status"],
)
backup_records_total = Counter(
    "backup_records_total",
    "Records written by backup imports",
    ["kind"],
)
backup_payload_bytes = Histogram(
    "backup_payload_bytes",
    "Size of backup payloads produced or consumed",
    ["operation"],
    buckets=(1_024, 16_384, 131_072, 1_048_576, 8_388_608, 67_108_864),
)
operation_latency_seconds = Histogram(
    "operation_latency_seconds",
    "Operation latency in seconds",
    ["operation"],
)


@contextmanager
def track_performance(operation: str):
    start = time.time()
    try:
        yield
    finally:
        try:
            operation_latency_seconds.labels(operation=operation).observe(time.time() - start)
        except Exception:
            # avoid breaking app on label mistakes
            pass


def record_operation(operation: str, success: bool, size_bytes: int | None = None) -> None:
    """Count one engine operation (export/import/sync/restore) and its payload size."""
    try:
        backup_operations_total.labels(
            operation=operation, status="ok" if success else "error"
        ).inc()
        if size_bytes is not None and size_bytes >= 0:
            backup_payload_bytes.labels(operation=operation).observe(float(size_bytes))
    except Exception:
        # Never break business flow on metrics issues
        pass


def track_import_counts(snippets: int, tags: int, folders: int, errors: int) -> None:
    """Record an import's aggregate outcome (counts only, never record content)."""
    try:
        emit_event(
            "business_metric",
            metric="backup_import",
            snippets=int(snippets),
            tags=int(tags),
            folders=int(folders),
            errors=int(errors),
        )
        for kind, value in (("snippet", snippets), ("tag", tags), ("folder", folders)):
            if value:
                backup_records_total.labels(kind=kind).inc(int(value))
    except Exception:
        pass


def metrics_endpoint_bytes() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
