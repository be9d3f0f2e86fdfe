"""SSH wire encoding (RFC 4251 section 5) and the signature envelope."""

from __future__ import annotations

import struct

from kms_sshca.errors import EncodingError


def pack_uint32(value: int) -> bytes:
    return struct.pack(">I", value)


def pack_uint64(value: int) -> bytes:
    return struct.pack(">Q", value)


def pack_string(value: bytes | str) -> bytes:
    """Length-prefixed string. ``str`` values are UTF-8 encoded."""
    if isinstance(value, str):
        value = value.encode("utf-8")
    return pack_uint32(len(value)) + value


def pack_mpint(value: int) -> bytes:
    """Two's complement big-endian integer, as a length-prefixed string."""
    if value == 0:
        return pack_string(b"")
    length = (value.bit_length() + 8) // 8
    return pack_string(value.to_bytes(length, "big", signed=True))


def pack_name_list(names: list[str] | tuple[str, ...]) -> bytes:
    """Concatenated strings wrapped in an outer string (certificate principals)."""
    return pack_string(b"".join(pack_string(name) for name in names))


def read_string(data: bytes, offset: int = 0) -> tuple[bytes, int]:
    """Read one length-prefixed string at *offset*.

    Returns the string and the offset just past it. Raises ``EncodingError``
    if the buffer is too short.
    """
    if len(data) - offset < 4:
        raise EncodingError("truncated SSH string length")
    (length,) = struct.unpack_from(">I", data, offset)
    start = offset + 4
    end = start + length
    if end > len(data):
        raise EncodingError("truncated SSH string body")
    return data[start:end], end


def encode_signature(algorithm_name: str, raw_signature: bytes) -> bytes:
    """Wrap a raw signature in the SSH signature envelope.

    The result is ``string algorithm_name || string raw_signature``, exactly
    ``8 + len(algorithm_name.encode("utf-8")) + len(raw_signature)`` bytes
    long. The signature itself is not checked.
    """
    return pack_string(algorithm_name) + pack_string(raw_signature)


def decode_signature(blob: bytes) -> tuple[str, bytes]:
    """Inverse of ``encode_signature``. Rejects trailing data."""
    name, offset = read_string(blob)
    signature, offset = read_string(blob, offset)
    if offset != len(blob):
        raise EncodingError("trailing bytes after SSH signature")
    try:
        return name.decode("utf-8"), signature
    except UnicodeDecodeError as e:
        raise EncodingError(f"signature algorithm name is not UTF-8: {e}") from e
