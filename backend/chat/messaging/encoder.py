"""MessagePack framing for the WebSocket protocol.

Every frame is a map; decode enforces size limits before unpacking.
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Raised when a frame cannot be decoded into a message map."""


# SDP offers run to a few KB; anything far beyond that is not a real client.
MAX_BUFFER_LEN = 64 * 1024
MAX_STR_LEN = 32 * 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 256
MAX_MAP_LEN = 64
MAX_EXT_LEN = 1024


def encode(data: dict[str, Any]) -> bytes:
    return msgpack.packb(data)


def decode(data: bytes) -> dict[str, Any]:
    """Decode a frame into a dict.

    Raises DecodeError if the payload is oversized, malformed, or not a map.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected map, got {type(result).__name__}")

    return result
