"""
JSON encoder/decoder for wire format communication.

Every frame is a single JSON object. Decoding enforces a payload size
limit and rejects anything that is not an object.
"""

import json
from typing import Any


class DecodeError(Exception):
    """Error raised when a frame cannot be decoded into a message."""


# Size limit to prevent resource exhaustion from malicious payloads.
MAX_PAYLOAD_LEN = 64 * 1024  # 64KB per frame


def encode(data: dict[str, Any]) -> str:
    """
    Encode a dict to a compact JSON string.
    """
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode(data: str | bytes) -> dict[str, Any]:
    """
    Decode a JSON frame to a dict.

    Raises DecodeError if data is invalid, not an object, or exceeds the size limit.
    """
    if len(data) > MAX_PAYLOAD_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_PAYLOAD_LEN})")
    try:
        result = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"failed to decode JSON data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected object, got {type(result).__name__}")

    return result
