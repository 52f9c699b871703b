"""
Prometheus metrics.

The counters cover failures that are deliberately absorbed (audit log writes,
cache operations) and limiter rejections; the histogram times HTTP requests.
"""

from prometheus_client import Counter, Histogram


SYNC_LOG_WRITE_FAILURES = Counter(
    "authorstack_sync_log_write_failures_total",
    "Sync log entries that could not be written",
    ["platform"],
)

CACHE_ERRORS = Counter(
    "authorstack_cache_errors_total",
    "Cache operations that failed and were treated as misses",
    ["operation"],
)

RATE_LIMIT_REJECTIONS = Counter(
    "authorstack_rate_limit_rejections_total",
    "Operations rejected by a rate limiter",
    ["scope"],
)

REQUEST_LATENCY = Histogram(
    "authorstack_http_request_duration_seconds",
    "HTTP request latency by route template",
    ["method", "route", "status"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 15.0, 60.0),
)
