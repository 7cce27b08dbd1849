"""Conformance test scenarios for the idempotent Pub/Sub dispatcher.

This package contains end-to-end scenario tests that drive the dispatcher
with push envelopes and an in-memory ledger. Each scenario tests a
specific aspect of delivery handling.
"""
