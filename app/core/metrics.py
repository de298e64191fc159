"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behavior import and update them.  HTTP metrics are fed by
MetricsMiddleware, engine metrics by the services.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Engine metrics
# ---------------------------------------------------------------------------

PROGRESS_UPDATES = Counter(
    "progress_updates_total",
    "Material progress events by outcome",
    ["material_type", "result"],  # result: recorded|skipped
)

ELIGIBILITY_CHECKS = Counter(
    "eligibility_checks_total",
    "Exam eligibility evaluations by outcome",
    ["result"],  # eligible|ineligible
)

EXAM_SUBMISSIONS = Counter(
    "exam_submissions_total",
    "Graded exam submissions",
    ["passed"],  # "true"|"false"
)

EXAM_PERCENTAGE = Histogram(
    "exam_percentage",
    "Distribution of graded exam percentages",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates minted",
)

CERTIFICATE_NUMBER_RETRIES = Counter(
    "certificate_number_retries_total",
    "Certificate inserts retried after a number collision",
)

SIDE_EFFECT_FAILURES = Counter(
    "side_effect_failures_total",
    "Best-effort side effects that failed and were swallowed",
    ["effect"],  # eligibility_recheck|notification
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Cache get operations by result",
    ["operation"],  # hit|miss
)

QUEUE_DEPTH = Gauge(
    "task_queue_depth",
    "Number of tasks waiting in a queue",
    ["queue_name"],
)
