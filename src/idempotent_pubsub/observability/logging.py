"""Structured logging configuration for the dispatcher.

Logs are emitted through structlog with dotted event names and bound
context (subscription, message id, dedup key), which keeps configuration
errors such as a missing handler distinguishable from data errors in a log
aggregator.

Examples:
    Configure logging once at startup::

        from idempotent_pubsub.config import PubSubConfig
        from idempotent_pubsub.observability.logging import configure_logging_from_config

        configure_logging_from_config(PubSubConfig.from_env())

    Output (JSON)::

        {
            "event": "admission.handler_failed",
            "subscription": "quote_approved",
            "message_id": "2070443601311540",
            "reason": "crm unavailable",
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "level": "warning"
        }
"""

import logging
import sys
from typing import IO, TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from idempotent_pubsub.config import PubSubConfig

# Shared by the JSON and console renderers, applied in order
LOG_PROCESSORS: tuple[Any, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.strip().upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


def _renderer(json_output: bool) -> Any:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Route structlog events to ``stream`` (stdout by default).

    Client libraries that log through the standard library (the Pub/Sub
    client among them) are held to the same threshold via the root logger.

    Args:
        level: Level name, case-insensitive.
        json_output: One JSON object per line when True, colored console
            lines otherwise.
        stream: Text stream to write to.

    Raises:
        ValueError: If ``level`` is not a logging level name.
    """
    threshold = _level_number(level)
    logging.getLogger().setLevel(threshold)

    structlog.configure(
        processors=[*LOG_PROCESSORS, _renderer(json_output)],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_config(config: "PubSubConfig", stream: IO[str] | None = None) -> None:
    """Apply ``config.log_level`` and ``config.json_logs``."""
    configure_logging(level=config.log_level, json_output=config.json_logs, stream=stream)


def get_logger(name: str) -> Any:
    """Return the structlog logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
