"""Core type definitions and models for the idempotent Pub/Sub dispatcher.

This module provides the data structures shared by the dispatcher, the
event ledger and caller code: the push envelope delivered by the
transport, the validated message handed to handlers, the ledger record
tracking per-message processing history, and the classified admission
failure returned to the transport-facing caller.

Examples:
    Parsing a push delivery::

        from idempotent_pubsub.models import Envelope

        envelope = Envelope.from_push(
            {
                "subscription": "projects/acme-prod/subscriptions/quote_approved",
                "message": {
                    "messageId": "2070443601311540",
                    "data": "eyJpZCI6IDEyfQ==",
                },
            }
        )
        envelope.message_id  # "2070443601311540"

    Returning an outcome from a handler::

        from idempotent_pubsub.models import HandlerResult

        async def handler(record, subscription, message):
            if not await crm.is_available():
                return HandlerResult.FAILED_TO_PROCESS, "crm unavailable"
            await crm.create_ticket(message.data)
            return HandlerResult.SUCCESS
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

PayloadT = TypeVar("PayloadT")


class EventStatus(str, Enum):
    """Outcome of one admission/processing cycle in a ledger record.

    Attributes:
        IN_PROGRESS: Message was admitted and handed to processing.
        COMPLETED: Handler reported success. Terminal.
        FAILED: Validation or handler failed. Retryable on redelivery.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class HandlerResult(str, Enum):
    """Outcome a message handler reports back to the dispatcher."""

    SUCCESS = "success"
    FAILED_TO_PROCESS = "failed_to_process"


class SubscriptionError(str, Enum):
    """Classified admission errors surfaced to the transport-facing caller.

    Attributes:
        INVALID_SUBSCRIPTION: Subscription address is malformed.
        INVALID_EVENT_DATA: Payload failed to decode or validate.
        MISSING_HANDLER_FOR_SUBSCRIPTION: No channel registered for the
            resolved subscription name.
        HANDLER_FAILED_TO_PROCESS_MESSAGE: Handler reported failure or raised.
    """

    INVALID_SUBSCRIPTION = "invalid_subscription"
    INVALID_EVENT_DATA = "invalid_event_data"
    MISSING_HANDLER_FOR_SUBSCRIPTION = "missing_handler_for_subscription"
    HANDLER_FAILED_TO_PROCESS_MESSAGE = "handler_failed_to_process_message"


class PushMessage(BaseModel):
    """The ``message`` object of a Pub/Sub push delivery.

    Both the camelCase keys sent by Pub/Sub push and the snake_case field
    names are accepted.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message_id: str = Field(
        ...,
        alias="messageId",
        min_length=1,
        description="Transport-assigned id, repeated across redeliveries",
        examples=["2070443601311540"],
    )
    data: str = Field(
        default="",
        description="Base64-encoded JSON payload",
        examples=["eyJpZCI6IDEyfQ=="],
    )
    attributes: dict[str, str] = Field(
        default_factory=dict,
        description="Transport message attributes",
    )
    publish_time: datetime | None = Field(
        default=None,
        alias="publishTime",
        description="When the transport accepted the message",
    )


class Envelope(BaseModel):
    """A transport delivery that has not yet been resolved or validated.

    At this point nothing is known about whether the subscription is
    recognizable or whether the payload conforms to the channel's schema.
    Envelopes are immutable.

    Attributes:
        subscription_address: Full subscription path, e.g.
            ``projects/<project-id>/subscriptions/<name>``.
        message: The delivered message.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subscription_address: str = Field(
        ...,
        alias="subscription",
        description="Transport addressing string for the subscription",
        examples=["projects/acme-prod/subscriptions/quote_approved"],
    )
    message: PushMessage

    @property
    def message_id(self) -> str:
        """Transport-assigned message id."""
        return self.message.message_id

    @property
    def encoded_payload(self) -> str:
        """Base64-encoded payload as delivered."""
        return self.message.data

    @classmethod
    def from_push(cls, body: dict[str, Any] | str | bytes) -> "Envelope":
        """Parse a push request body into an envelope.

        Args:
            body: The decoded JSON body, or the raw JSON text.

        Returns:
            The parsed envelope.

        Raises:
            pydantic.ValidationError: If the body does not have the push shape.
        """
        if isinstance(body, (str, bytes)):
            return cls.model_validate_json(body)
        return cls.model_validate(body)


class Message(BaseModel, Generic[PayloadT]):
    """A delivered message whose payload passed channel validation.

    Attributes:
        message_id: Transport-assigned message id.
        data: The validated payload returned by the channel's validator.
        attributes: Transport message attributes.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    message_id: str
    data: PayloadT
    attributes: dict[str, str] = Field(default_factory=dict)


class LedgerRecord(BaseModel):
    """Per-message processing history kept by the event ledger.

    Records are keyed by a dedup key derived from ``(message_id,
    subscription)``. ``attempt_history`` is append-only and never contains
    an entry after ``completed``.

    Attributes:
        dedup_key: Identity of the record, immutable once created.
        message_id: Transport message id.
        subscription: Resolved subscription name.
        created_at: Time of first admission.
        last_attempt_at: Time of the most recent admission.
        attempt_history: Ordered outcomes, one per admission/processing cycle.
        last_failure_reason: Diagnostic of the most recent failure that
            carried a reason, kept across later attempts.
        raw_payload: Encoded payload as first seen.
    """

    dedup_key: str = Field(..., min_length=1)
    message_id: str = Field(..., min_length=1)
    subscription: str = Field(..., min_length=1)
    created_at: datetime
    last_attempt_at: datetime
    attempt_history: list[EventStatus] = Field(..., min_length=1)
    last_failure_reason: str | None = None
    raw_payload: str = ""

    @model_validator(mode="after")
    def validate_history_and_timestamps(self) -> "LedgerRecord":
        """Reject records that break the ledger invariants.

        Raises:
            ValueError: If an entry follows ``completed`` in the history, or
                if ``last_attempt_at`` precedes ``created_at``.
        """
        if EventStatus.COMPLETED in self.attempt_history[:-1]:
            raise ValueError("attempt_history must not contain entries after 'completed'")
        if self.last_attempt_at < self.created_at:
            raise ValueError("last_attempt_at must not be earlier than created_at")
        return self

    @property
    def status(self) -> EventStatus:
        """Most recently appended outcome."""
        return self.attempt_history[-1]

    @property
    def is_completed(self) -> bool:
        return self.status == EventStatus.COMPLETED

    @property
    def failure_count(self) -> int:
        return sum(1 for s in self.attempt_history if s == EventStatus.FAILED)


class AdmissionFailure(BaseModel):
    """Classified result of an admission that must not be acknowledged.

    ``Dispatcher.admit`` returns ``None`` on success (including the
    idempotent short-circuit) and an ``AdmissionFailure`` otherwise.

    Attributes:
        error: The error classification.
        reason: Diagnostic message suitable for logs.
    """

    model_config = ConfigDict(frozen=True)

    error: SubscriptionError
    reason: str

    @property
    def retryable(self) -> bool:
        """Whether redelivering the same envelope could ever succeed.

        A malformed subscription address will not change on redelivery.
        Every other kind can be fixed by a deploy or clears by itself.
        """
        return self.error != SubscriptionError.INVALID_SUBSCRIPTION
