import time

from prometheus_client import Counter, Histogram, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "s2n_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "s2n_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

SCHEMA_VIOLATIONS_TOTAL = get_or_create_metric(
    "s2n_schema_violations_total",
    "Model replies rejected by the response schema",
    Counter,
    labelnames=["endpoint"],
)

FOCUS_VERDICTS_TOTAL = get_or_create_metric(
    "s2n_focus_verdicts_total",
    "Focus Check verdicts",
    Counter,
    labelnames=["verdict"],
)


def observe_request(endpoint: str, status: int, started: float) -> None:
    REQUESTS_TOTAL.labels(endpoint=endpoint, status=str(status)).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - started)
