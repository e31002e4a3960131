"""Plain values of the base value language and their canonical serialization."""
from __future__ import annotations

from dataclasses import dataclass

from chainscript.bcs import encode_bool, encode_sequence, encode_uint
from chainscript.types import Address

UINT_WIDTHS = (8, 16, 32, 64, 128, 256)


@dataclass(frozen=True, slots=True)
class MoveBool:
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True, slots=True)
class MoveUInt:
    bits: int
    value: int

    def __post_init__(self) -> None:
        if self.bits not in UINT_WIDTHS:
            raise ValueError(f"Unsupported integer width: u{self.bits}")
        if not 0 <= self.value < (1 << self.bits):
            raise ValueError(f"{self.value} does not fit in u{self.bits}")

    def __str__(self) -> str:
        return f"{self.value}u{self.bits}"


@dataclass(frozen=True, slots=True)
class MoveAddress:
    value: Address

    def __str__(self) -> str:
        return f"@{self.value.short()}"


@dataclass(frozen=True, slots=True)
class MoveVector:
    elements: tuple[MoveValue, ...]

    def __str__(self) -> str:
        return "vector[" + ", ".join(str(item) for item in self.elements) + "]"


@dataclass(frozen=True, slots=True)
class MoveStruct:
    fields: tuple[MoveValue, ...]

    def __str__(self) -> str:
        return "struct(" + ", ".join(str(item) for item in self.fields) + ")"


MoveValue = MoveBool | MoveUInt | MoveAddress | MoveVector | MoveStruct


def byte_vector(data: bytes) -> MoveVector:
    return MoveVector(tuple(MoveUInt(8, byte) for byte in data))


def simple_serialize(value: MoveValue) -> bytes:
    if isinstance(value, MoveBool):
        return encode_bool(value.value)
    if isinstance(value, MoveUInt):
        return encode_uint(value.value, value.bits)
    if isinstance(value, MoveAddress):
        return value.value.value
    if isinstance(value, MoveVector):
        return encode_sequence(simple_serialize(item) for item in value.elements)
    if isinstance(value, MoveStruct):
        return b"".join(simple_serialize(item) for item in value.fields)
    raise TypeError(f"Not a Move value: {value!r}")


__all__ = [
    "MoveAddress",
    "MoveBool",
    "MoveStruct",
    "MoveUInt",
    "MoveValue",
    "MoveVector",
    "UINT_WIDTHS",
    "byte_vector",
    "simple_serialize",
]
