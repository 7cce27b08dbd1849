"""Prometheus metrics for the dispatcher and publisher.

Metrics include:

- Admission counter by subscription and result
- Handler execution time histogram
- Publish counter by topic

Examples:
    Recording an admission::

        from idempotent_pubsub.observability.metrics import record_admission

        record_admission(subscription="quote_approved", result="completed")
"""

from prometheus_client import Counter, Histogram

# Labels: subscription, result (completed, short_circuit, invalid_subscription,
# invalid_event_data, missing_handler, handler_failed)
admissions_total = Counter(
    "pubsub_admissions_total",
    "Total number of envelopes admitted by the dispatcher",
    ["subscription", "result"],
)

handler_duration_seconds = Histogram(
    "pubsub_handler_duration_seconds",
    "Handler execution time in seconds",
    ["subscription"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

publish_total = Counter(
    "pubsub_publish_total",
    "Total number of events published",
    ["topic"],
)


def record_admission(subscription: str, result: str) -> None:
    """Record one admission outcome.

    Args:
        subscription: Resolved subscription name ("" when unresolvable,
            "<unregistered>" when no channel is registered for it).
        result: Result label.
    """
    admissions_total.labels(subscription=subscription, result=result).inc()


def record_handler_duration(subscription: str, seconds: float) -> None:
    """Record how long a handler invocation took."""
    handler_duration_seconds.labels(subscription=subscription).observe(seconds)


def record_publish(topic: str) -> None:
    publish_total.labels(topic=topic).inc()
