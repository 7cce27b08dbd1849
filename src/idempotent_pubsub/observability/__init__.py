"""Observability utilities for the dispatcher.

This package provides:
- Structured logging via structlog
- Prometheus metrics for admissions, handler timings and publishes
"""

from idempotent_pubsub.observability.logging import (
    configure_logging,
    configure_logging_from_config,
    get_logger,
)
from idempotent_pubsub.observability.metrics import (
    record_admission,
    record_handler_duration,
    record_publish,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_config",
    "get_logger",
    "record_admission",
    "record_handler_duration",
    "record_publish",
]
