"""Envelope payload codec.

Pub/Sub carries message data as base64 text. Payloads handled by this
package are JSON documents, so decoding yields the usual parsed-JSON tree:
scalars (number, string, boolean, null), lists, and string-keyed dicts.

Both functions are pure.
"""

import base64
import binascii
import json
from typing import Any, TypeAlias

from idempotent_pubsub.exceptions import DecodeError

JSONScalar: TypeAlias = int | float | str | bool | None
JSON: TypeAlias = JSONScalar | list[Any] | dict[str, Any]

# Payload prefix kept in DecodeError for diagnostics
_PAYLOAD_PREVIEW_CHARS = 200


def decode_payload(encoded: str) -> JSON:
    """Decode a base64-encoded JSON payload.

    Args:
        encoded: Base64 text as delivered by the transport.

    Returns:
        The parsed JSON value.

    Raises:
        DecodeError: If the text is not valid base64, the bytes are not
            UTF-8, or the text is not valid JSON. JSON nested deeper than
            the interpreter's recursion limit is rejected the same way.

    Examples:
        >>> decode_payload("eyJpZCI6IDEyfQ==")
        {'id': 12}
    """
    preview = encoded[:_PAYLOAD_PREVIEW_CHARS]
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Payload is not valid base64: {e}", payload=preview) from e

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Payload is not UTF-8 text: {e}", payload=preview) from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Payload is not valid JSON: {e}", payload=preview) from e
    except RecursionError as e:
        raise DecodeError("Payload JSON is nested too deeply", payload=preview) from e


def encode_payload(value: Any) -> str:
    """Encode a JSON-serializable value the way publishers put it on the wire.

    Args:
        value: Any value ``json.dumps`` accepts.

    Returns:
        Base64 text of the UTF-8 JSON encoding.

    Raises:
        TypeError: If the value is not JSON-serializable.
    """
    return base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
