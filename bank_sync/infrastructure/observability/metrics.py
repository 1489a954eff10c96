"""Prometheus metrics for monitoring sync outcomes, aggregator health, and notifications"""

from prometheus_client import Counter, Histogram, Gauge

from bank_sync.domain.models import ErrorKind, SyncOutcome, SyncStatus

# Sync metrics
sync_counter = Counter(
    "bank_sync_refresh_total",
    "Total refresh calls by outcome",
    ["status", "strategy"],  # synced | skipped | ignored | ... / full | incremental | none
)

recurring_suggestions_gauge = Gauge(
    "bank_sync_recurring_suggestions",
    "Recurring suggestions emitted by the latest sync",
)

# Aggregator API metrics
aggregator_latency_histogram = Histogram(
    "aggregator_call_latency_seconds",
    "Aggregator API response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

aggregator_failure_counter = Counter(
    "aggregator_failures_total",
    "Failed aggregator calls by error kind",
    ["kind"],
)

# Cache health
cache_failure_counter = Counter(
    "bank_sync_cache_failures_total",
    "Cache operations that failed and were degraded",
    ["operation"],  # read | write | decode
)

# Connection health
connection_transition_counter = Counter(
    "bank_connection_transitions_total",
    "Connection state transitions by target state",
    ["state"],
)

# Change notifications
notification_signal_counter = Counter(
    "bank_change_notifications_total",
    "Change notifications received",
)

notification_refresh_counter = Counter(
    "bank_change_notification_refreshes_total",
    "Refreshes triggered after the debounce window",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_sync_outcome(outcome: SyncOutcome) -> None:
    """Record refresh outcome and, for completed syncs, the suggestion count"""
    strategy = outcome.strategy.value if outcome.strategy else "none"
    sync_counter.labels(status=outcome.status.value, strategy=strategy).inc()

    if outcome.error_kind is not None and outcome.error_kind != ErrorKind.CACHE_WRITE_FAILED:
        aggregator_failure_counter.labels(kind=outcome.error_kind.value).inc()

    if outcome.status == SyncStatus.SYNCED:
        recurring_suggestions_gauge.set(outcome.suggestion_count)
