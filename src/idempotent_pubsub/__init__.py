"""
Idempotent dispatch layer for Pub/Sub push deliveries.

This package converts at-least-once message delivery into effectively-once
handler execution: duplicate deliveries of a completed message are
acknowledged without invoking the handler again, while failures are
recorded and surfaced so the transport redelivers them.
"""

from idempotent_pubsub.codec import decode_payload, encode_payload
from idempotent_pubsub.config import PubSubConfig
from idempotent_pubsub.core.dispatcher import Dispatcher
from idempotent_pubsub.exceptions import DecodeError, PubSubError, StorageError
from idempotent_pubsub.ledger import EventLedger, InMemoryEventLedger, build_dedup_key
from idempotent_pubsub.models import (
    AdmissionFailure,
    Envelope,
    EventStatus,
    HandlerResult,
    LedgerRecord,
    Message,
    PushMessage,
    SubscriptionError,
)
from idempotent_pubsub.publisher import InMemoryPublisher, PubSubPublisher, Publisher
from idempotent_pubsub.registry import Channel, ChannelRegistry, model_validator_for
from idempotent_pubsub.subscription import resolve_subscription

__version__ = "0.1.0"

__all__ = [
    "AdmissionFailure",
    "Channel",
    "ChannelRegistry",
    "DecodeError",
    "Dispatcher",
    "Envelope",
    "EventLedger",
    "EventStatus",
    "HandlerResult",
    "InMemoryEventLedger",
    "InMemoryPublisher",
    "LedgerRecord",
    "Message",
    "PubSubConfig",
    "PubSubError",
    "PubSubPublisher",
    "Publisher",
    "PushMessage",
    "StorageError",
    "SubscriptionError",
    "__version__",
    "build_dedup_key",
    "decode_payload",
    "encode_payload",
    "model_validator_for",
    "resolve_subscription",
]
