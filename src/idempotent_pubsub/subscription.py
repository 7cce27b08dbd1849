"""Subscription address resolution.

Pub/Sub identifies subscriptions by their full resource path,
``projects/<project-id>/subscriptions/<name>``. Channels are registered by
``<name>`` only.
"""

import re

# Project ids start with a letter and contain lowercase letters, digits and
# hyphens. Subscription names never contain "/".
SUBSCRIPTION_PATTERN = re.compile(r"projects/([a-z][a-z0-9-]*)/subscriptions/([^/]+)")


def resolve_subscription(address: str) -> str | None:
    """Extract the subscription name from a subscription path.

    Args:
        address: Transport addressing string.

    Returns:
        The subscription name, or None if the address does not have the
        ``projects/<project-id>/subscriptions/<name>`` shape.

    Examples:
        >>> resolve_subscription("projects/acme-prod/subscriptions/quote_approved")
        'quote_approved'
        >>> resolve_subscription("subscriptions/quote_approved") is None
        True
    """
    match = SUBSCRIPTION_PATTERN.fullmatch(address)
    if match is None:
        return None
    return match.group(2)


def subscription_path(project_id: str, name: str) -> str:
    """Build the full path for a subscription name.

    Args:
        project_id: Cloud project id.
        name: Subscription name.

    Returns:
        ``projects/<project_id>/subscriptions/<name>``
    """
    return f"projects/{project_id}/subscriptions/{name}"
