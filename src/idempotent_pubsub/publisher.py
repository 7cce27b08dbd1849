"""Outbound event publishing.

Publishing is a thin pass-through to the transport: values are JSON
encoded and sent to a topic. Failures (unknown topic, unreachable
transport, unserializable value) propagate to the caller unmodified; there
is no retry wrapping at this layer.

Examples:
    Publishing to Cloud Pub/Sub::

        from idempotent_pubsub.config import PubSubConfig
        from idempotent_pubsub.publisher import PubSubPublisher

        publisher = PubSubPublisher.from_config(PubSubConfig.from_env())
        message_id = await publisher.publish("quote_approved", {"id": 12})

    Recording publishes in tests::

        from idempotent_pubsub.publisher import InMemoryPublisher

        publisher = InMemoryPublisher()
        await publisher.publish("quote_approved", {"id": 12})
        assert publisher.published == [("quote_approved", {"id": 12})]
"""

import asyncio
import json
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from google.cloud import pubsub_v1

from idempotent_pubsub.codec import encode_payload
from idempotent_pubsub.config import PubSubConfig
from idempotent_pubsub.core.dispatcher import Dispatcher
from idempotent_pubsub.exceptions import PubSubError
from idempotent_pubsub.models import AdmissionFailure, Envelope, PushMessage
from idempotent_pubsub.observability.logging import get_logger
from idempotent_pubsub.observability.metrics import record_publish
from idempotent_pubsub.subscription import subscription_path

logger = get_logger(__name__)


@runtime_checkable
class Publisher(Protocol):
    """Anything that can forward an outbound event to the transport."""

    async def publish(self, topic: str, data: Any) -> str:
        """Publish a JSON-serializable value to ``topic``.

        Returns:
            The transport-assigned message id.
        """
        ...


class PubSubPublisher(Publisher):
    """Publisher backed by ``google.cloud.pubsub_v1.PublisherClient``.

    The client is created on first use so that constructing the publisher
    does not resolve credentials. Credentials come from Application
    Default Credentials.

    Attributes:
        project_id: Project that owns the topics.
    """

    def __init__(self, project_id: str, client: Any | None = None) -> None:
        """Initialize the publisher.

        Args:
            project_id: Project that owns the topics.
            client: Pre-built PublisherClient (or compatible object).
        """
        self.project_id = project_id
        self._client = client

    @classmethod
    def from_config(cls, config: PubSubConfig, client: Any | None = None) -> "PubSubPublisher":
        """Create a publisher for ``config.project_id``.

        Raises:
            PubSubError: If the configuration has no project id.
        """
        if config.project_id is None:
            raise PubSubError(
                "project_id must be configured to publish (set PUBSUB_PROJECT_ID)"
            )
        return cls(project_id=config.project_id, client=client)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = pubsub_v1.PublisherClient()
        return self._client

    async def publish(self, topic: str, data: Any) -> str:
        """Publish ``data`` as JSON to ``projects/<project_id>/topics/<topic>``.

        Args:
            topic: Topic name.
            data: JSON-serializable value.

        Returns:
            The message id assigned by Pub/Sub.

        Raises:
            TypeError: If ``data`` is not JSON-serializable.
            google.api_core.exceptions.GoogleAPICallError: If the topic does
                not exist or the service is unreachable.
        """
        body = json.dumps(data).encode("utf-8")
        client = self._get_client()
        topic_path = client.topic_path(self.project_id, topic)

        future = client.publish(topic_path, body)
        message_id = await asyncio.wrap_future(future)

        record_publish(topic)
        logger.debug("publish.sent", topic=topic, message_id=message_id)
        return message_id


class InMemoryPublisher(Publisher):
    """Publisher that records published events, for tests and local runs.

    When a dispatcher and a topic-to-subscriptions table are supplied, each
    publish is also delivered to the dispatcher as a push envelope for
    every subscription bound to the topic.

    Attributes:
        published: ``(topic, data)`` pairs in publish order.
        admissions: ``(subscription, result)`` pairs for loop-back deliveries.
    """

    def __init__(
        self,
        dispatcher: Dispatcher | None = None,
        subscriptions: Mapping[str, Sequence[str]] | None = None,
        project_id: str = "local-project",
    ) -> None:
        self.published: list[tuple[str, Any]] = []
        self.admissions: list[tuple[str, AdmissionFailure | None]] = []
        self._dispatcher = dispatcher
        self._subscriptions = dict(subscriptions or {})
        self._project_id = project_id
        self._next_id = 1

    async def publish(self, topic: str, data: Any) -> str:
        encoded = encode_payload(data)
        message_id = str(self._next_id)
        self._next_id += 1
        self.published.append((topic, data))
        record_publish(topic)

        if self._dispatcher is not None:
            for name in self._subscriptions.get(topic, ()):
                envelope = Envelope(
                    subscription_address=subscription_path(self._project_id, name),
                    message=PushMessage(message_id=message_id, data=encoded),
                )
                result = await self._dispatcher.admit(envelope)
                self.admissions.append((name, result))

        return message_id

    def clear(self) -> None:
        self.published.clear()
        self.admissions.clear()
