"""Binary canonical serialization for the values that cross the transaction boundary.

Fixed-width little-endian integers, ULEB128 sequence lengths, raw 32-byte
addresses, structs as the concatenation of their fields.
"""
from __future__ import annotations

from collections.abc import Iterable

_UINT_WIDTHS = (8, 16, 32, 64, 128, 256)


def uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError("uleb128 length must be non-negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_uint(value: int, bits: int) -> bytes:
    if bits not in _UINT_WIDTHS:
        raise ValueError(f"Unsupported integer width: u{bits}")
    return value.to_bytes(bits // 8, "little")


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def encode_bytes(value: bytes) -> bytes:
    return uleb128(len(value)) + value


def encode_sequence(items: Iterable[bytes]) -> bytes:
    encoded = list(items)
    return uleb128(len(encoded)) + b"".join(encoded)


def read_uleb128(data: bytes, offset: int = 0) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise ValueError("Truncated uleb128 length")
        byte = data[offset]
        offset += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, offset
        shift += 7


def decode_uint(data: bytes, bits: int) -> int:
    if len(data) != bits // 8:
        raise ValueError(f"Expected {bits // 8} bytes for u{bits}, found {len(data)}")
    return int.from_bytes(data, "little")


def decode_bool(data: bytes) -> bool:
    if data not in (b"\x00", b"\x01"):
        raise ValueError("Invalid bool encoding")
    return data == b"\x01"


def decode_bytes(data: bytes) -> bytes:
    length, offset = read_uleb128(data)
    if len(data) - offset != length:
        raise ValueError("Byte vector length does not match its prefix")
    return data[offset:]
