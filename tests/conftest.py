"""
Pytest configuration and shared fixtures for idempotent_pubsub tests.
"""

import itertools
from collections.abc import Callable
from typing import Any

import pytest

from idempotent_pubsub.codec import encode_payload
from idempotent_pubsub.ledger.memory import InMemoryEventLedger
from idempotent_pubsub.models import Envelope, PushMessage
from idempotent_pubsub.subscription import subscription_path

TEST_PROJECT_ID = "dummy-project-id-123123"

_message_ids = itertools.count(100000000000000)


def make_envelope(
    subscription: str,
    data: Any,
    message_id: str | None = None,
    project_id: str = TEST_PROJECT_ID,
) -> Envelope:
    """Build a push envelope carrying ``data`` as base64 JSON."""
    if message_id is None:
        # Pub/Sub message ids are 15-16 digit integer strings
        message_id = str(next(_message_ids))
    return Envelope(
        subscription_address=subscription_path(project_id, subscription),
        message=PushMessage(message_id=message_id, data=encode_payload(data)),
    )


@pytest.fixture
def ledger() -> InMemoryEventLedger:
    """Create a fresh in-memory ledger for each test."""
    return InMemoryEventLedger(warn=False)


@pytest.fixture
def envelope_factory() -> Callable[..., Envelope]:
    """Provide the envelope builder as a fixture."""
    return make_envelope


@pytest.fixture
def quote_data() -> dict[str, Any]:
    return {"id": 12, "client_name": "giorgio"}
