import logging

from prometheus_client import Counter, Histogram, start_http_server

log = logging.getLogger(__name__)

start_prometheus = start_http_server


__all__ = [
    "Counter",
    "Histogram",
    "start_prometheus",
    "inc_counter",
    "WEBHOOK_DELIVERIES_COUNTER",
    "STATUS_PUBLISHED_COUNTER",
]


WEBHOOK_DELIVERIES_COUNTER = Counter(
    "foureyes_webhook_deliveries",
    "Number of webhook deliveries received, by event and outcome",
    ["event", "outcome"],
)

STATUS_PUBLISHED_COUNTER = Counter(
    "foureyes_status_published",
    "Number of four-eyes commit statuses published, by state",
    ["state"],
)


def inc_counter(counter: Counter, labels: dict | None = None) -> None:
    try:
        if labels:
            counter.labels(**labels).inc()
        else:
            counter.inc()
    except Exception as e:
        log.warning(f"Error incrementing counter {counter._name}: {e}")
