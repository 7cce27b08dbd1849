"""Event ledger implementations.

All ledgers implement the EventLedger protocol defined in base.py.

Available Ledgers:
    - InMemoryEventLedger: In-memory ledger for tests and single-instance use
"""

from idempotent_pubsub.ledger.base import EventLedger, build_dedup_key
from idempotent_pubsub.ledger.memory import InMemoryEventLedger

__all__ = [
    "EventLedger",
    "InMemoryEventLedger",
    "build_dedup_key",
]
