"""Configuration module for the idempotent Pub/Sub dispatcher.

This module provides the PubSubConfig class controlling deployment policy,
publisher settings and logging for the dispatcher.

Example:
    Basic usage with defaults:

        >>> config = PubSubConfig()
        >>> config.ack_missing_handler
        False

    Custom configuration:

        >>> config = PubSubConfig(
        ...     project_id="acme-prod",
        ...     ack_missing_handler=True,
        ...     log_level="debug",
        ... )
        >>> config.log_level
        'DEBUG'

    Loading from environment:

        >>> import os
        >>> os.environ['PUBSUB_PROJECT_ID'] = 'acme-prod'
        >>> os.environ['PUBSUB_ACK_MISSING_HANDLER'] = 'true'
        >>> config = PubSubConfig.from_env()
"""

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


class PubSubConfig(BaseModel):
    """Configuration for the dispatcher and publisher.

    Attributes:
        project_id: Cloud project id used by the publisher to build topic
            paths. Required only when publishing.
        ack_missing_handler: Deployment policy for deliveries to subscriptions
            without a registered channel. When True they are acknowledged
            (treated as non-retryable). Default is False.
        warn_in_memory_ledger: Log a warning when the in-memory ledger is
            constructed, since it only suits single-instance deployments.
        log_level: Log level name. Normalized to uppercase.
        json_logs: Emit JSON logs (True) or console logs (False).
        max_failure_reason_length: Failure reasons longer than this are
            truncated before being stored in the ledger. Between 64 and 65536.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    project_id: str | None = Field(
        default=None,
        description="Cloud project id for publishing",
    )
    ack_missing_handler: bool = Field(
        default=False,
        description="Acknowledge deliveries for unregistered subscriptions",
    )
    warn_in_memory_ledger: bool = Field(
        default=True,
        description="Warn when the single-instance in-memory ledger is used",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level name",
    )
    json_logs: bool = Field(
        default=True,
        description="Emit JSON logs instead of console output",
    )
    max_failure_reason_length: int = Field(
        default=2048,
        description="Maximum stored length of a failure reason (64-65536)",
    )

    model_config = {"frozen": True}

    @field_validator("project_id")
    @classmethod
    def validate_project_id(cls, v: str | None) -> str | None:
        """Reject empty or slash-containing project ids.

        Raises:
            ValueError: If the project id is blank or contains "/".
        """
        if v is None:
            return v
        v = v.strip()
        if not v or "/" in v:
            raise ValueError(f"project_id must be a non-empty id without '/', got {v!r}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Normalize and validate the log level name.

        Raises:
            ValueError: If the level is not a standard logging level name.

        Example:
            >>> PubSubConfig(log_level="warning").log_level
            'WARNING'
        """
        if not isinstance(v, str):
            raise ValueError("log_level must be a string")
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @field_validator("max_failure_reason_length")
    @classmethod
    def validate_max_failure_reason_length(cls, v: int) -> int:
        if not (64 <= v <= 65536):
            raise ValueError(f"max_failure_reason_length must be between 64 and 65536, got {v}")
        return v

    @classmethod
    def from_env(cls, prefix: str = "PUBSUB_") -> "PubSubConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``PUBSUB_PROJECT_ID``. Boolean variables accept 1/0, true/false,
        yes/no and on/off.

        Args:
            prefix: Prefix for environment variable names. Default is "PUBSUB_".

        Returns:
            PubSubConfig instance populated from environment variables.

        Raises:
            ValueError: If a boolean or integer variable cannot be parsed.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "project_id": str,
            "ack_missing_handler": bool,
            "warn_in_memory_ledger": bool,
            "log_level": str,
            "json_logs": bool,
            "max_failure_reason_length": int,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is None:
                continue
            if field_type is bool:
                config_dict[field_name] = _parse_bool(env_var, env_value)
            elif field_type is int:
                config_dict[field_name] = int(env_value)
            else:
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "PubSubConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_STRINGS:
        return True
    if normalized in _FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")
