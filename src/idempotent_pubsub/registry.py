"""Channel registration and validator invocation.

A channel pairs a validator with a handler for one subscription name.
Channels are supplied once, when the dispatcher is constructed, and are
read-only afterwards, so several independently configured dispatchers can
live in one process.

Validators are caller code. They signal "no match" by returning None and
may also raise; ``run_validator`` turns both into the same failed outcome
so a misbehaving validator cannot break the admission pipeline.

Examples:
    Registering channels::

        from pydantic import BaseModel

        from idempotent_pubsub.registry import Channel, ChannelRegistry, model_validator_for

        class Quote(BaseModel):
            id: int
            client_name: str

        registry = ChannelRegistry(
            {
                "quote_approved": Channel(
                    validator=model_validator_for(Quote),
                    handler=handle_quote_approved,
                ),
            }
        )
"""

from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict

from idempotent_pubsub.codec import JSON
from idempotent_pubsub.models import HandlerResult, LedgerRecord, Message
from idempotent_pubsub.observability.logging import get_logger

logger = get_logger(__name__)

Validator: TypeAlias = Callable[[JSON], Any]
HandlerReturn: TypeAlias = (
    HandlerResult | tuple[HandlerResult, str | None] | list[HandlerResult | str | None]
)
MessageHandler: TypeAlias = Callable[
    [LedgerRecord, str, Message[Any]],
    Awaitable[HandlerReturn] | HandlerReturn,
]


class Channel(BaseModel):
    """Validator and handler registered for one subscription name.

    Attributes:
        validator: Maps raw decoded JSON to a typed payload, or returns None
            when the data does not match. May raise.
        handler: Processes a validated message. Called with the ledger
            record, the subscription name and the ``Message``. Returns a
            ``HandlerResult`` or a ``(HandlerResult, reason)`` pair as a tuple
            or list, either directly or from a coroutine.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    validator: Validator
    handler: MessageHandler


class ValidationOutcome:
    """Result of running a channel validator.

    Attributes:
        ok: True if the validator produced a payload.
        payload: The validated payload (None when not ok).
        reason: Why validation failed (None when ok).
    """

    def __init__(self, ok: bool, payload: Any = None, reason: str | None = None) -> None:
        self.ok = ok
        self.payload = payload
        self.reason = reason


def run_validator(validator: Validator, data: JSON) -> ValidationOutcome:
    """Invoke a validator inside a failure boundary.

    Args:
        validator: The channel's validator.
        data: Decoded JSON payload.

    Returns:
        A successful outcome carrying the payload, or a failed outcome with a
        reason if the validator returned None or raised.
    """
    try:
        payload = validator(data)
    except Exception as e:
        return ValidationOutcome(
            ok=False,
            reason=f"validator raised {type(e).__name__}: {e}",
        )

    if payload is None:
        return ValidationOutcome(ok=False, reason="validator rejected the payload")
    return ValidationOutcome(ok=True, payload=payload)


def model_validator_for(model: type[BaseModel]) -> Validator:
    """Build a validator from a pydantic model class.

    The returned validator raises ``pydantic.ValidationError`` on data that
    does not fit the model, which ``run_validator`` reports as a failure.

    Args:
        model: The pydantic model describing the channel's payload.

    Returns:
        A validator returning model instances.
    """

    def validate(data: JSON) -> BaseModel:
        return model.model_validate(data)

    validate.__name__ = f"validate_{model.__name__}"
    return validate


class ChannelRegistry(Mapping[str, Channel]):
    """Read-only mapping from subscription name to ``Channel``.

    Accepts either a mapping or an iterable of ``(name, channel)`` pairs.
    When a name appears more than once in the pairs, the last registration
    wins and a warning is logged, since duplicates are a caller error.
    """

    def __init__(
        self,
        channels: Mapping[str, Channel] | Iterable[tuple[str, Channel]] = (),
    ) -> None:
        pairs = channels.items() if isinstance(channels, Mapping) else channels
        table: dict[str, Channel] = {}
        for name, channel in pairs:
            if name in table:
                logger.warning("registry.duplicate_channel", subscription=name)
            table[name] = channel
        self._channels = MappingProxyType(table)

    def __getitem__(self, name: str) -> Channel:
        return self._channels[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._channels)

    def __len__(self) -> int:
        return len(self._channels)

    def validate(self, name: str, data: JSON) -> ValidationOutcome:
        """Validate decoded data against the channel registered for ``name``.

        Raises:
            KeyError: If no channel is registered under ``name``.
        """
        return run_validator(self._channels[name].validator, data)
