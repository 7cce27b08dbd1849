"""Admission state machine for Pub/Sub deliveries.

This module turns at-least-once deliveries into effectively-once handler
execution. Per dedup key, the state derived from the ledger's attempt
history moves through:

    Unseen -> in_progress -> completed (terminal)
                          -> failed -> in_progress on the next delivery

The dispatcher handles:
- Subscription resolution
- Idempotent short-circuit of already completed messages
- Recording the attempt before any caller code runs
- Payload decoding and channel validation
- Handler invocation inside a failure boundary
- Outcome recording and error classification

Examples:
    Wiring a push endpoint::

        from idempotent_pubsub import Dispatcher, Envelope

        dispatcher = Dispatcher(channels={"quote_approved": quote_channel})

        async def push(body: dict) -> int:
            failure = await dispatcher.admit(Envelope.from_push(body))
            return 204 if dispatcher.should_acknowledge(failure) else 500
"""

import inspect
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from idempotent_pubsub.codec import decode_payload
from idempotent_pubsub.config import PubSubConfig
from idempotent_pubsub.exceptions import DecodeError
from idempotent_pubsub.ledger.base import EventLedger
from idempotent_pubsub.ledger.memory import InMemoryEventLedger
from idempotent_pubsub.models import (
    AdmissionFailure,
    Envelope,
    EventStatus,
    HandlerResult,
    LedgerRecord,
    Message,
    SubscriptionError,
)
from idempotent_pubsub.observability.logging import get_logger
from idempotent_pubsub.observability.metrics import record_admission, record_handler_duration
from idempotent_pubsub.registry import Channel, ChannelRegistry, MessageHandler, run_validator
from idempotent_pubsub.subscription import resolve_subscription

logger = get_logger(__name__)

# Metric label for resolved subscriptions that have no registered channel
UNREGISTERED_SUBSCRIPTION = "<unregistered>"


class Dispatcher:
    """Idempotent dispatcher from subscription deliveries to channel handlers.

    The channel table and config are fixed at construction. The ledger is
    the only shared mutable state, so one dispatcher may serve any number
    of concurrent admissions.

    Attributes:
        channels: Read-only channel registry.
        ledger: Event ledger consulted and updated on every admission.
        config: Configuration object.
    """

    def __init__(
        self,
        channels: ChannelRegistry | Mapping[str, Channel] | Iterable[tuple[str, Channel]],
        ledger: EventLedger | None = None,
        config: PubSubConfig | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            channels: Channel registrations keyed by subscription name.
            ledger: Event ledger. Defaults to a new InMemoryEventLedger.
            config: Configuration object. Defaults to PubSubConfig().
        """
        self.config = config or PubSubConfig()
        if isinstance(channels, ChannelRegistry):
            self.channels = channels
        else:
            self.channels = ChannelRegistry(channels)
        if ledger is None:
            ledger = InMemoryEventLedger(warn=self.config.warn_in_memory_ledger)
        self.ledger = ledger

    async def admit(self, envelope: Envelope) -> AdmissionFailure | None:
        """Run one admission of a delivered envelope.

        Flow:
            1. Resolve the subscription name
            2. Short-circuit if the ledger shows the message completed
            3. Record the attempt
            4. Look up the channel
            5. Decode and validate the payload
            6. Invoke the handler
            7. Record the outcome

        Args:
            envelope: The delivered envelope.

        Returns:
            None when the delivery should be acknowledged (processed now or
            already completed), otherwise the classified failure.

        Raises:
            StorageError: If the ledger backend fails. The admission state is
                unknown and the delivery must not be acknowledged.
        """
        subscription = resolve_subscription(envelope.subscription_address)
        if subscription is None:
            logger.warning(
                "admission.invalid_subscription",
                subscription_address=envelope.subscription_address,
                message_id=envelope.message_id,
            )
            record_admission(subscription="", result="invalid_subscription")
            return AdmissionFailure(
                error=SubscriptionError.INVALID_SUBSCRIPTION,
                reason=(
                    f'Subscription "{envelope.subscription_address}" doesn\'t follow the '
                    '"projects/<PROJECT_ID>/subscriptions/<SUBSCRIPTION_NAME>" pattern'
                ),
            )

        log = logger.bind(subscription=subscription, message_id=envelope.message_id)

        key = self.ledger.build_key(envelope.message_id, subscription)
        prior = await self.ledger.get(key)

        if prior is not None and prior.is_completed:
            log.info("admission.short_circuit", dedup_key=key)
            record_admission(subscription=subscription, result="short_circuit")
            return None

        record = await self.ledger.record_attempt(envelope, subscription, prior)

        channel = self.channels.get(subscription)
        if channel is None:
            log.warning("admission.missing_handler", dedup_key=key)
            record_admission(subscription=UNREGISTERED_SUBSCRIPTION, result="missing_handler")
            return AdmissionFailure(
                error=SubscriptionError.MISSING_HANDLER_FOR_SUBSCRIPTION,
                reason=f'Subscription "{subscription}" doesn\'t have a corresponding handler',
            )

        try:
            data = decode_payload(envelope.encoded_payload)
        except DecodeError as e:
            return await self._reject_event_data(record, subscription, e.message, log)

        validation = run_validator(channel.validator, data)
        if not validation.ok:
            return await self._reject_event_data(
                record, subscription, validation.reason or "validation failed", log
            )

        message: Message[Any] = Message(
            message_id=envelope.message_id,
            data=validation.payload,
            attributes=envelope.message.attributes,
        )

        result, failure_reason = await self._invoke_handler(
            channel.handler, record, subscription, message, log
        )

        if result == HandlerResult.SUCCESS:
            await self.ledger.record_outcome(record, EventStatus.COMPLETED)
            log.info("admission.completed", dedup_key=key)
            record_admission(subscription=subscription, result="completed")
            return None

        stored_reason = self._truncate(failure_reason) if failure_reason else None
        await self.ledger.record_outcome(record, EventStatus.FAILED, stored_reason)
        log.warning("admission.handler_failed", dedup_key=key, reason=stored_reason)
        record_admission(subscription=subscription, result="handler_failed")

        reason = f'Handler for subscription "{subscription}" failed to process successfully.'
        if stored_reason:
            reason = f"{reason} Failure reason: {stored_reason}"
        return AdmissionFailure(
            error=SubscriptionError.HANDLER_FAILED_TO_PROCESS_MESSAGE,
            reason=reason,
        )

    def should_acknowledge(self, failure: AdmissionFailure | None) -> bool:
        """Map an admission result to the transport acknowledgment signal.

        Success always acknowledges. A missing handler acknowledges only when
        the deployment opted in with ``ack_missing_handler``; every other
        failure is left unacknowledged so the transport redelivers.
        """
        if failure is None:
            return True
        if failure.error == SubscriptionError.MISSING_HANDLER_FOR_SUBSCRIPTION:
            return self.config.ack_missing_handler
        return False

    async def _reject_event_data(
        self,
        record: LedgerRecord,
        subscription: str,
        detail: str,
        log: Any,
    ) -> AdmissionFailure:
        reason = self._truncate(
            f'Data for subscription "{subscription}" did not pass validation: {detail}'
        )
        await self.ledger.record_outcome(record, EventStatus.FAILED, reason)
        log.warning("admission.invalid_event_data", dedup_key=record.dedup_key, reason=reason)
        record_admission(subscription=subscription, result="invalid_event_data")
        return AdmissionFailure(error=SubscriptionError.INVALID_EVENT_DATA, reason=reason)

    async def _invoke_handler(
        self,
        handler: MessageHandler,
        record: LedgerRecord,
        subscription: str,
        message: Message[Any],
        log: Any,
    ) -> tuple[HandlerResult, str | None]:
        """Call the handler and normalize whatever it returns or raises."""
        start_time = time.perf_counter()
        try:
            returned = handler(record, subscription, message)
            if inspect.isawaitable(returned):
                returned = await returned
        except Exception as e:
            log.error("admission.handler_raised", error_type=type(e).__name__, exc_info=True)
            return (
                HandlerResult.FAILED_TO_PROCESS,
                f"uncaught exception within handler - {type(e).__name__}: {e}",
            )
        finally:
            record_handler_duration(subscription, time.perf_counter() - start_time)

        return _normalize_handler_result(returned)

    def _truncate(self, reason: str) -> str:
        limit = self.config.max_failure_reason_length
        if len(reason) <= limit:
            return reason
        return reason[: limit - 3] + "..."


def _normalize_handler_result(returned: Any) -> tuple[HandlerResult, str | None]:
    if isinstance(returned, HandlerResult):
        return returned, None

    if (
        isinstance(returned, Sequence)
        and not isinstance(returned, (str, bytes))
        and len(returned) in (1, 2)
        and isinstance(returned[0], HandlerResult)
    ):
        reason = returned[1] if len(returned) == 2 else None
        if reason is not None and not isinstance(reason, str):
            reason = str(reason)
        return returned[0], reason

    return (
        HandlerResult.FAILED_TO_PROCESS,
        f"handler returned an unsupported value: {returned!r:.200}",
    )
