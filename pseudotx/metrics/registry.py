from prometheus_client import Counter, Histogram

BATCH_TOTAL = Counter(
    "pseudotx_batch_total",
    "Operation batches executed by the coordinator",
    ["status"],
)

BATCH_LATENCY_SECONDS = Histogram(
    "pseudotx_batch_latency_seconds",
    "Wall time of one coordinator execute() call",
    ["status"],
)

OPERATION_TOTAL = Counter(
    "pseudotx_operation_total",
    "Forward writes attempted inside a batch",
    ["collection", "kind", "status"],
)

COMPENSATION_TOTAL = Counter(
    "pseudotx_compensation_total",
    "Compensating restores replayed during rollback",
    ["collection", "status"],
)

ROLLBACK_TOTAL = Counter(
    "pseudotx_rollback_total",
    "Rollbacks by outcome",
    ["status"],
)

MARKER_FAILURE_TOTAL = Counter(
    "pseudotx_marker_failure_total",
    "Begin/commit/rollback markers that raised",
    ["marker"],
)
