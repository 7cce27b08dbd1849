"""In-memory event ledger with asyncio concurrency control.

This module provides the reference implementation of the EventLedger
contract, storing records in a Python dictionary.

The InMemoryEventLedger is suitable for:
    - Single-instance deployments
    - Development and testing

Multi-instance deployments must supply a ledger backed by a shared,
durable, transactional store.

Concurrency:
    - Each dedup key has its own asyncio.Lock
    - A global lock protects the _locks dictionary
    - Locks are held only for the read-modify-write of a single record,
      never across handler execution
    - Records are copied on the way in and out, so callers cannot mutate
      ledger state behind its back

Examples:
    Basic usage::

        from idempotent_pubsub.ledger.memory import InMemoryEventLedger

        ledger = InMemoryEventLedger()
        record = await ledger.record_attempt(envelope, "quote_approved")
        await ledger.record_outcome(record, EventStatus.COMPLETED)
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

from idempotent_pubsub.ledger.base import EventLedger, build_dedup_key
from idempotent_pubsub.models import Envelope, EventStatus, LedgerRecord
from idempotent_pubsub.observability.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryEventLedger(EventLedger):
    """In-memory event ledger with per-key asyncio.Lock.

    Attributes:
        _store: Dictionary mapping dedup keys to LedgerRecord objects.
        _locks: Dictionary mapping dedup keys to asyncio.Lock objects.
        _global_lock: Lock protecting the _locks dictionary.
        _clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        warn: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize an empty ledger.

        Args:
            warn: Log a warning that this ledger only suits single-instance
                deployments.
            clock: Time source for created_at / last_attempt_at.
        """
        self._store: dict[str, LedgerRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()
        self._clock = clock

        if warn:
            logger.warning(
                "ledger.in_memory_warning",
                message=(
                    "Using InMemoryEventLedger, which is only suitable for "
                    "single-instance applications"
                ),
            )

    def build_key(self, message_id: str, subscription: str) -> str:
        return build_dedup_key(message_id, subscription)

    async def get(self, key: str) -> LedgerRecord | None:
        """Retrieve a copy of the record stored under ``key``."""
        record = self._store.get(key)
        if record is None:
            return None
        return record.model_copy(deep=True)

    async def record_attempt(
        self,
        envelope: Envelope,
        subscription: str,
        prior: LedgerRecord | None = None,
    ) -> LedgerRecord:
        """Create the record for a fresh key or refresh last_attempt_at.

        Creation happens under the key's lock after re-checking the store,
        so concurrent admissions of a fresh key produce exactly one record.
        ``prior`` is accepted for contract compatibility; the stored record
        always takes precedence over it.

        Args:
            envelope: The delivered envelope.
            subscription: Resolved subscription name.
            prior: Record previously read by the caller, if any.

        Returns:
            A copy of the current record.
        """
        key = self.build_key(envelope.message_id, subscription)
        lock = await self._lock_for(key)

        async with lock:
            now = self._clock()
            existing = self._store.get(key)

            if existing is None:
                record = LedgerRecord(
                    dedup_key=key,
                    message_id=envelope.message_id,
                    subscription=subscription,
                    created_at=now,
                    last_attempt_at=now,
                    attempt_history=[EventStatus.IN_PROGRESS],
                    raw_payload=envelope.encoded_payload,
                )
                logger.debug("ledger.record_created", dedup_key=key)
            else:
                record = existing.model_copy(
                    update={"last_attempt_at": max(now, existing.last_attempt_at)},
                    deep=True,
                )

            self._store[key] = record
            return record.model_copy(deep=True)

    async def record_outcome(
        self,
        record: LedgerRecord,
        outcome: EventStatus,
        failure_reason: str | None = None,
    ) -> None:
        """Append ``outcome`` to the stored record's history.

        The outcome is appended to the stored record rather than to the
        caller's copy, so concurrent admissions never drop each other's
        entries. Once a record is completed it is terminal: later outcomes
        are logged and ignored.

        Args:
            record: The record returned by record_attempt().
            outcome: The outcome to append.
            failure_reason: Diagnostic stored when outcome is FAILED.
        """
        key = record.dedup_key
        lock = await self._lock_for(key)

        async with lock:
            current = self._store.get(key, record)

            if current.is_completed:
                logger.warning(
                    "ledger.outcome_after_completed",
                    dedup_key=key,
                    outcome=outcome.value,
                )
                return

            reason = current.last_failure_reason
            if outcome == EventStatus.FAILED and failure_reason:
                reason = failure_reason

            self._store[key] = current.model_copy(
                update={
                    "attempt_history": [*current.attempt_history, outcome],
                    "last_failure_reason": reason,
                },
                deep=True,
            )

    def __len__(self) -> int:
        return len(self._store)

    async def _lock_for(self, key: str) -> asyncio.Lock:
        async with self._global_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock
