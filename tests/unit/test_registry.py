"""Unit tests for channel registration and validator invocation."""

import pytest
from pydantic import BaseModel, ValidationError

from idempotent_pubsub.models import HandlerResult
from idempotent_pubsub.registry import (
    Channel,
    ChannelRegistry,
    model_validator_for,
    run_validator,
)


class Quote(BaseModel):
    id: int
    client_name: str


async def ok_handler(record, subscription, message):
    return HandlerResult.SUCCESS


def identity(data):
    return data


class TestRunValidator:
    def test_returns_payload(self):
        outcome = run_validator(identity, {"id": 1})
        assert outcome.ok is True
        assert outcome.payload == {"id": 1}
        assert outcome.reason is None

    def test_none_is_rejection(self):
        outcome = run_validator(lambda data: None, {"id": 1})
        assert outcome.ok is False
        assert outcome.payload is None
        assert outcome.reason == "validator rejected the payload"

    @pytest.mark.parametrize("falsy", [0, "", [], {}, False])
    def test_falsy_payloads_are_accepted(self, falsy):
        outcome = run_validator(identity, falsy)
        assert outcome.ok is True
        assert outcome.payload == falsy

    def test_raising_validator_is_isolated(self):
        def explode(data):
            raise KeyError("client_name")

        outcome = run_validator(explode, {"id": 1})
        assert outcome.ok is False
        assert "KeyError" in outcome.reason
        assert "client_name" in outcome.reason


class TestModelValidatorFor:
    def test_valid_data(self):
        validate = model_validator_for(Quote)
        quote = validate({"id": 12, "client_name": "giorgio"})
        assert quote == Quote(id=12, client_name="giorgio")

    def test_invalid_data_raises(self):
        validate = model_validator_for(Quote)
        with pytest.raises(ValidationError):
            validate({"id": "not a number"})

    def test_invalid_data_through_boundary(self):
        outcome = run_validator(model_validator_for(Quote), {"id": "x"})
        assert outcome.ok is False
        assert "ValidationError" in outcome.reason

    def test_named_after_model(self):
        assert model_validator_for(Quote).__name__ == "validate_Quote"


class TestChannel:
    def test_rejects_non_callables(self):
        with pytest.raises(ValidationError):
            Channel(validator="not callable", handler=ok_handler)

    def test_is_frozen(self):
        channel = Channel(validator=identity, handler=ok_handler)
        with pytest.raises(ValidationError):
            channel.handler = ok_handler


class TestChannelRegistry:
    def test_from_mapping(self):
        channel = Channel(validator=identity, handler=ok_handler)
        registry = ChannelRegistry({"quote_approved": channel})

        assert registry["quote_approved"] is channel
        assert registry.get("missing") is None
        assert list(registry) == ["quote_approved"]
        assert len(registry) == 1
        assert "quote_approved" in registry

    def test_from_pairs_last_registration_wins(self):
        first = Channel(validator=identity, handler=ok_handler)
        second = Channel(validator=lambda data: None, handler=ok_handler)

        registry = ChannelRegistry([("orders", first), ("orders", second)])

        assert registry["orders"] is second
        assert len(registry) == 1

    def test_is_read_only(self):
        registry = ChannelRegistry({})
        with pytest.raises(TypeError):
            registry["new"] = Channel(validator=identity, handler=ok_handler)  # type: ignore[index]

    def test_caller_mapping_changes_do_not_leak(self):
        table = {"orders": Channel(validator=identity, handler=ok_handler)}
        registry = ChannelRegistry(table)
        table["refunds"] = Channel(validator=identity, handler=ok_handler)
        assert "refunds" not in registry

    def test_validate_uses_channel_validator(self):
        registry = ChannelRegistry(
            {"quotes": Channel(validator=model_validator_for(Quote), handler=ok_handler)}
        )
        assert registry.validate("quotes", {"id": 1, "client_name": "a"}).ok is True
        assert registry.validate("quotes", {"id": 1}).ok is False

    def test_validate_unknown_channel(self):
        with pytest.raises(KeyError):
            ChannelRegistry({}).validate("missing", {})

    def test_empty_registry(self):
        assert len(ChannelRegistry()) == 0
