"""Unit and property tests for subscription address resolution."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from idempotent_pubsub.subscription import resolve_subscription, subscription_path

project_id_strategy = st.from_regex(r"[a-z][a-z0-9-]{0,29}", fullmatch=True)
name_strategy = st.text(
    alphabet=st.characters(
        categories=("Ll", "Lu", "Nd"),
        include_characters="-_.~+%",
    ),
    min_size=1,
    max_size=255,
)


class TestResolveSubscription:
    @pytest.mark.parametrize(
        "address, expected",
        [
            ("projects/myproject/subscriptions/mysubscription", "mysubscription"),
            (
                "projects/dummy-project-id-123123/subscriptions/quote_approved__ticket_message",
                "quote_approved__ticket_message",
            ),
            ("projects/a/subscriptions/b", "b"),
        ],
    )
    def test_valid_addresses(self, address, expected):
        assert resolve_subscription(address) == expected

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "mysubscription",
            "projects/myproject/subscriptions/",
            "projects//subscriptions/mysubscription",
            "projects/myproject/topics/mysubscription",
            "project/myproject/subscriptions/mysubscription",
            "/projects/myproject/subscriptions/mysubscription",
            "projects/myproject/subscriptions/a/b",
            "projects/MyProject/subscriptions/mysubscription",
            "projects/1project/subscriptions/mysubscription",
            "subscriptions/mysubscription",
        ],
    )
    def test_invalid_addresses(self, address):
        assert resolve_subscription(address) is None

    @given(project_id=project_id_strategy, name=name_strategy)
    def test_resolves_built_paths(self, project_id: str, name: str) -> None:
        assert resolve_subscription(subscription_path(project_id, name)) == name

    @given(address=st.text(max_size=100))
    def test_never_raises(self, address: str) -> None:
        result = resolve_subscription(address)
        assert result is None or (result and "/" not in result)


class TestSubscriptionPath:
    def test_builds_path(self):
        assert subscription_path("acme", "orders") == "projects/acme/subscriptions/orders"
