"""Event ledger protocol for the idempotent Pub/Sub dispatcher.

The event ledger is the durable record of per-message processing history.
The dispatcher consults it before doing any work and writes to it before
and after invoking caller code. It is the only shared mutable resource in
the system.

Examples:
    Implementing a ledger on a transactional store::

        from idempotent_pubsub.ledger.base import EventLedger, build_dedup_key

        class PostgresEventLedger(EventLedger):
            def build_key(self, message_id: str, subscription: str) -> str:
                return build_dedup_key(message_id, subscription)

            async def get(self, key: str) -> LedgerRecord | None:
                row = await self.pool.fetchrow(SELECT_RECORD, key)
                return None if row is None else LedgerRecord.model_validate(dict(row))

            async def record_attempt(self, envelope, subscription, prior=None):
                # INSERT ... ON CONFLICT (dedup_key) DO UPDATE
                #     SET last_attempt_at = GREATEST(last_attempt_at, now())
                # RETURNING *
                ...

Contract Requirements:
    All EventLedger implementations MUST guarantee:

    1. **Atomic creation**: record_attempt() must create the record for a
       fresh key with a single conditional insert (or equivalent). When N
       concurrent calls race on the same fresh key, exactly one creates the
       record and all N observe the same record afterwards.

    2. **Append-only history**: attempt_history only grows, and only through
       record_outcome(). Nothing is appended after ``completed``.

    3. **Monotonic timestamps**: created_at never changes and
       last_attempt_at never moves backwards.

    4. **Read-only get**: get() never mutates state.

    5. **Error translation**: backend failures raise StorageError. The
       dispatcher lets StorageError propagate to the caller, who must not
       acknowledge the delivery.

    The contract does not require mutual exclusion across the whole
    admission. Callers needing strict single-flight handler execution per
    key must layer a lease or lock on top of the ledger.
"""

from typing import Protocol, runtime_checkable

from idempotent_pubsub.models import Envelope, EventStatus, LedgerRecord


def build_dedup_key(message_id: str, subscription: str) -> str:
    """Derive the dedup key for a message delivered on a subscription.

    The subscription is part of the key so the same transport message id
    arriving on two subscriptions is processed once per subscription.
    Subscription names never contain "/", so the key is unambiguous.

    Examples:
        >>> build_dedup_key("2070443601311540", "quote_approved")
        'quote_approved/2070443601311540'
    """
    return f"{subscription}/{message_id}"


@runtime_checkable
class EventLedger(Protocol):
    """Protocol defining the event ledger contract.

    All methods except build_key are async and must be safe to call
    concurrently from multiple admission tasks.
    """

    def build_key(self, message_id: str, subscription: str) -> str:
        """Derive the dedup key used by this ledger.

        Implementations should delegate to build_dedup_key unless they need
        a storage-specific encoding.
        """
        ...

    async def get(self, key: str) -> LedgerRecord | None:
        """Retrieve a ledger record by dedup key.

        Args:
            key: The dedup key.

        Returns:
            The record if found, None otherwise.

        Raises:
            StorageError: If the backend is unavailable.
        """
        ...

    async def record_attempt(
        self,
        envelope: Envelope,
        subscription: str,
        prior: LedgerRecord | None = None,
    ) -> LedgerRecord:
        """Mark that the message is being admitted for processing.

        Creates the record with ``attempt_history == [in_progress]`` when
        none exists, atomically per key. Otherwise refreshes
        last_attempt_at and returns the updated record without touching
        attempt_history.

        Args:
            envelope: The delivered envelope.
            subscription: Resolved subscription name.
            prior: The record the caller read with get(), if any. A hint
                only; the stored record is authoritative.

        Returns:
            The current record.

        Raises:
            StorageError: If the backend is unavailable.
        """
        ...

    async def record_outcome(
        self,
        record: LedgerRecord,
        outcome: EventStatus,
        failure_reason: str | None = None,
    ) -> None:
        """Append an outcome to the record's attempt history.

        Updates last_failure_reason when outcome is ``failed`` and a reason
        is supplied.

        Args:
            record: The record returned by record_attempt().
            outcome: The outcome to append.
            failure_reason: Optional diagnostic for failed outcomes.

        Raises:
            StorageError: If the backend is unavailable.
        """
        ...
