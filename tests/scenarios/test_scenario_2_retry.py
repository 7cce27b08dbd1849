"""Scenario 2: Retry Progression

This module tests how failed deliveries are retried:
- Each failing admission appends exactly one failed entry
- lastAttemptAt advances between attempts separated in time
- The handler runs once per admission, with no internal retry loop
- A later success completes the record and stops further handler calls
- The last failure reason survives later attempts
"""

import asyncio

import pytest

from idempotent_pubsub import (
    Channel,
    Dispatcher,
    EventStatus,
    HandlerResult,
    InMemoryEventLedger,
    SubscriptionError,
)


class FlakyHandler:
    """Fails ``failures`` times, then succeeds."""

    def __init__(self, failures: int, reason: str | None = "crm unavailable") -> None:
        self.failures = failures
        self.reason = reason
        self.calls = 0

    async def __call__(self, record, subscription, message):
        self.calls += 1
        if self.calls <= self.failures:
            if self.reason is None:
                return HandlerResult.FAILED_TO_PROCESS
            return HandlerResult.FAILED_TO_PROCESS, self.reason
        return HandlerResult.SUCCESS


def _dispatcher(handler) -> Dispatcher:
    return Dispatcher(
        channels={"quote_approved": Channel(validator=lambda d: d, handler=handler)},
        ledger=InMemoryEventLedger(warn=False),
    )


@pytest.mark.asyncio
async def test_failing_message_retried(envelope_factory, quote_data):
    handler = FlakyHandler(failures=100)
    dispatcher = _dispatcher(handler)
    envelope = envelope_factory("quote_approved", quote_data)
    key = dispatcher.ledger.build_key(envelope.message_id, "quote_approved")

    first = await dispatcher.admit(envelope)
    first_record = await dispatcher.ledger.get(key)

    await asyncio.sleep(0.025)

    second = await dispatcher.admit(envelope)
    second_record = await dispatcher.ledger.get(key)

    assert first.error == SubscriptionError.HANDLER_FAILED_TO_PROCESS_MESSAGE
    assert second.error == SubscriptionError.HANDLER_FAILED_TO_PROCESS_MESSAGE
    assert not dispatcher.should_acknowledge(first)
    assert second_record.last_attempt_at > first_record.last_attempt_at
    assert second_record.created_at == first_record.created_at
    assert handler.calls == 2
    assert second_record.attempt_history == [
        EventStatus.IN_PROGRESS,
        EventStatus.FAILED,
        EventStatus.FAILED,
    ]


@pytest.mark.asyncio
async def test_history_grows_one_entry_per_admission(envelope_factory, quote_data):
    handler = FlakyHandler(failures=100)
    dispatcher = _dispatcher(handler)
    envelope = envelope_factory("quote_approved", quote_data)
    key = dispatcher.ledger.build_key(envelope.message_id, "quote_approved")

    for attempt in range(1, 6):
        await dispatcher.admit(envelope)
        record = await dispatcher.ledger.get(key)
        assert record.failure_count == attempt
        assert len(record.attempt_history) == attempt + 1

    assert handler.calls == 5


@pytest.mark.asyncio
async def test_eventual_success(envelope_factory, quote_data):
    handler = FlakyHandler(failures=2)
    dispatcher = _dispatcher(handler)
    envelope = envelope_factory("quote_approved", quote_data)
    key = dispatcher.ledger.build_key(envelope.message_id, "quote_approved")

    results = [await dispatcher.admit(envelope) for _ in range(5)]

    assert [r is None for r in results] == [False, False, True, True, True]
    assert handler.calls == 3
    record = await dispatcher.ledger.get(key)
    assert record.attempt_history == [
        EventStatus.IN_PROGRESS,
        EventStatus.FAILED,
        EventStatus.FAILED,
        EventStatus.COMPLETED,
    ]
    assert record.last_failure_reason == "crm unavailable"


@pytest.mark.asyncio
async def test_reason_kept_when_later_failure_has_none(envelope_factory, quote_data):
    class Handler:
        calls = 0

        async def __call__(self, record, subscription, message):
            self.calls += 1
            if self.calls == 1:
                return HandlerResult.FAILED_TO_PROCESS, "rate limited"
            return HandlerResult.FAILED_TO_PROCESS

    dispatcher = _dispatcher(Handler())
    envelope = envelope_factory("quote_approved", quote_data)

    await dispatcher.admit(envelope)
    second = await dispatcher.admit(envelope)

    record = await dispatcher.ledger.get(
        dispatcher.ledger.build_key(envelope.message_id, "quote_approved")
    )
    assert record.last_failure_reason == "rate limited"
    assert "Failure reason" not in second.reason
