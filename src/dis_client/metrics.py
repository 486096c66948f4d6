"""
Client metrics, registered in the Prometheus global REGISTRY on import.

The ``stream`` label takes the caller's stream names as-is, so it has one
series per stream written to. That is fine for a fixed set of streams; callers
that create streams dynamically should expect the series count to grow with them.
"""

from prometheus_client import Counter, Histogram


# --- put-records ---

PUT_RECORDS_TOTAL = Counter(
    "dis_put_records_total",
    "Total number of put-records calls by final outcome",
    ["stream", "outcome"],
)

RECORDS_FAILED_TOTAL = Counter(
    "dis_records_failed_total",
    "Records still failed after the last retry",
    ["stream"],
)

RETRY_ATTEMPTS_TOTAL = Counter(
    "dis_put_records_retries_total",
    "Retry attempts made for partially failed batches",
    ["stream"],
)

BACKOFF_SLEEP_SECONDS = Histogram(
    "dis_backoff_sleep_seconds",
    "Backoff sleep before a put-records retry",
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

# --- transport ---

REQUEST_LATENCY_MS = Histogram(
    "dis_request_latency_ms",
    "DIS request latency in milliseconds",
    ["operation"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)


class MetricsRegistry:
    """Centralized metrics registry for client components."""

    put_records_total = PUT_RECORDS_TOTAL
    records_failed_total = RECORDS_FAILED_TOTAL
    retry_attempts_total = RETRY_ATTEMPTS_TOTAL
    backoff_sleep_seconds = BACKOFF_SLEEP_SECONDS
    request_latency_ms = REQUEST_LATENCY_MS


# Singleton instance
metrics_registry = MetricsRegistry()
