"""Core admission logic.

This package contains the dispatcher state machine that sits between the
transport and the channel handlers. It is transport-agnostic: any caller
that can build an ``Envelope`` and map the result to an acknowledgment
can drive it.
"""

from idempotent_pubsub.core.dispatcher import Dispatcher

__all__ = ["Dispatcher"]
