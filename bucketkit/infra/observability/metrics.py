from __future__ import annotations

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: the operation name, never bucket or key.
REQUESTS = Counter(
    "storage_requests_total",
    "Total object storage requests",
    ["operation", "status"],
)

LATENCY = Histogram(
    "storage_request_duration_seconds",
    "Object storage request latency in seconds",
    ["operation"],
)


def observe_request(
    operation: str, status: int | str, elapsed: float, *, enabled: bool = True
) -> None:
    if not enabled:
        return
    REQUESTS.labels(operation=operation, status=str(status)).inc()
    LATENCY.labels(operation=operation).observe(elapsed)
