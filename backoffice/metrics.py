from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

BILLING_SYNC_OUTCOMES = Counter(
    "billing_sync_outcomes_total",
    "Billing provider sync attempts by outcome",
    ["operation", "outcome"],
)
PROMO_REDEMPTIONS = Counter(
    "promo_redemptions_total",
    "Promo code applications by outcome",
    ["type", "outcome"],
)
TIMELINE_SOURCE_FETCH = Histogram(
    "timeline_source_fetch_seconds",
    "Time spent fetching one customer timeline source",
    ["source"],
)


def observe_billing_sync(operation: str, outcome: str) -> None:
    BILLING_SYNC_OUTCOMES.labels(operation=operation, outcome=outcome).inc()


def observe_promo_redemption(promo_type: str, outcome: str) -> None:
    PROMO_REDEMPTIONS.labels(type=promo_type, outcome=outcome).inc()
