"""Custom exceptions for the idempotent Pub/Sub dispatcher.

Most failures inside an admission are not raised at all: they are folded
into a classified ``AdmissionFailure`` returned by ``Dispatcher.admit``.
The exceptions defined here cover the cases that do escape:

- ``DecodeError`` is raised by the envelope codec and caught by the
  dispatcher, which reports it as ``invalid_event_data``.
- ``StorageError`` is raised by ledger implementations when the backing
  store is unreachable. The dispatcher lets it propagate, because the
  admission state is unknown and the caller must not acknowledge.

Examples:
    Handling a ledger outage in a push endpoint::

        from idempotent_pubsub.exceptions import StorageError

        try:
            failure = await dispatcher.admit(envelope)
        except StorageError as e:
            logger.error("ledger.unavailable", error=str(e))
            return Response(status_code=503)
"""


class PubSubError(Exception):
    """Base exception for all errors raised by this package.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class DecodeError(PubSubError):
    """The encoded payload of an envelope could not be decoded.

    Raised when the payload is not valid base64, is not UTF-8 text, or is
    not syntactically valid JSON.

    Attributes:
        message: Human-readable error description.
        payload: The offending encoded payload (possibly truncated).
    """

    def __init__(self, message: str, payload: str = "") -> None:
        """Initialize the decode error.

        Args:
            message: Human-readable error description.
            payload: The encoded payload that failed to decode.
        """
        super().__init__(message)
        self.payload = payload


class StorageError(PubSubError):
    """Event ledger backend operation failed.

    Ledger implementations backed by a database or cache should translate
    backend-specific exceptions into this one. It is the only failure that
    propagates out of ``Dispatcher.admit``.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.

    Examples:
        Raising a storage error from a custom ledger::

            try:
                row = await conn.fetchrow(query, key)
            except asyncpg.PostgresError as e:
                raise StorageError(
                    message=f"Failed to read ledger record {key}: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause
