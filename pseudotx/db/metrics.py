from ..metrics.registry import (
    BATCH_LATENCY_SECONDS,
    BATCH_TOTAL,
    COMPENSATION_TOTAL,
    MARKER_FAILURE_TOTAL,
    OPERATION_TOTAL,
    ROLLBACK_TOTAL,
)


def observe_batch(status: str, latency_s: float) -> None:
    BATCH_TOTAL.labels(status=status).inc()
    BATCH_LATENCY_SECONDS.labels(status=status).observe(latency_s)


def observe_operation(collection: str, kind: str, status: str) -> None:
    OPERATION_TOTAL.labels(collection=collection, kind=kind, status=status).inc()


def observe_compensation(collection: str, status: str) -> None:
    COMPENSATION_TOTAL.labels(collection=collection, status=status).inc()


def observe_rollback(status: str) -> None:
    ROLLBACK_TOTAL.labels(status=status).inc()


def observe_marker_failure(marker: str) -> None:
    MARKER_FAILURE_TOTAL.labels(marker=marker).inc()
