from __future__ import annotations

import pytest

from chainscript.errors import ScriptError
from chainscript.types import Address
from chainscript.values.lexer import tokenize
from chainscript.values.move_value import (
    MoveAddress,
    MoveBool,
    MoveStruct,
    MoveUInt,
    MoveVector,
    byte_vector,
    simple_serialize,
)
from chainscript.values.parser import parse_u64, parse_u256
from chainscript.values.symbolic import PlainValue, parse_symbolic_value

_NAMES = {"alice": Address.from_int(0xA11CE)}


def _plain(text: str) -> object:
    value = parse_symbolic_value(text, _NAMES.get)
    assert isinstance(value, PlainValue)
    return value.value


def test_tokenize_classifies_typed_and_untyped_numbers() -> None:
    kinds = [kind for kind, _lexeme in tokenize("vector[1u8, 0x2a]") if kind != "WHITESPACE"]
    assert kinds == ["IDENT", "LBRACKET", "NUMBER_TYPED", "COMMA", "NUMBER", "RBRACKET"]


def test_untyped_numbers_default_to_u64() -> None:
    assert _plain("42") == MoveUInt(64, 42)
    assert _plain("0x2a") == MoveUInt(64, 42)
    assert _plain("1_000") == MoveUInt(64, 1000)


@pytest.mark.parametrize(
    ("text", "bits", "value"),
    [("7u8", 8, 7), ("65535u16", 16, 65535), ("0xffu32", 32, 255), ("1u128", 128, 1), ("3u256", 256, 3)],
)
def test_typed_numbers_keep_their_width(text: str, bits: int, value: int) -> None:
    assert _plain(text) == MoveUInt(bits, value)


def test_booleans_addresses_and_strings() -> None:
    assert _plain("true") == MoveBool(True)
    assert _plain("false") == MoveBool(False)
    assert _plain("@alice") == MoveAddress(Address.from_int(0xA11CE))
    assert _plain("@0x5") == MoveAddress(Address.from_int(5))
    assert _plain('b"hi"') == byte_vector(b"hi")
    assert _plain('b"a\\x00\\n"') == byte_vector(b"a\x00\n")
    assert _plain('x"beef"') == byte_vector(b"\xbe\xef")


def test_vectors_and_structs_nest() -> None:
    value = _plain("vector[struct(1u8, true), struct(2u8, false)]")
    assert value == MoveVector(
        (
            MoveStruct((MoveUInt(8, 1), MoveBool(True))),
            MoveStruct((MoveUInt(8, 2), MoveBool(False))),
        )
    )
    assert _plain("vector[]") == MoveVector(())


def test_simple_serialize_uses_little_endian_and_uleb_lengths() -> None:
    assert simple_serialize(MoveUInt(16, 0x0102)) == b"\x02\x01"
    assert simple_serialize(MoveBool(True)) == b"\x01"
    assert simple_serialize(byte_vector(b"ab")) == b"\x02ab"
    assert simple_serialize(MoveStruct((MoveUInt(8, 1), MoveUInt(8, 2)))) == b"\x01\x02"
    assert simple_serialize(MoveAddress(Address.from_int(1))) == bytes(31) + b"\x01"


@pytest.mark.parametrize(
    "text",
    [
        "256u8",
        "18446744073709551616",
        "vector[1u8,",
        "1u8 2u8",
        "@nobody",
        'x"abc"',
        'b"\\xzz"',
        'b"\\x"',
        'b"\\x4"',
        "struct(1",
        "?",
    ],
)
def test_malformed_literals_are_script_errors(text: str) -> None:
    with pytest.raises(ScriptError):
        parse_symbolic_value(text, _NAMES.get)


def test_integer_helpers_enforce_ranges() -> None:
    assert parse_u64("18446744073709551615") == (1 << 64) - 1
    assert parse_u256(hex((1 << 256) - 1)) == (1 << 256) - 1
    with pytest.raises(ScriptError):
        parse_u64("18446744073709551616")
    with pytest.raises(ScriptError):
        parse_u256(hex(1 << 256))
    with pytest.raises(ScriptError):
        parse_u64("-1")
    with pytest.raises(ScriptError):
        parse_u64("")


def test_move_uint_rejects_out_of_range_values() -> None:
    with pytest.raises(ValueError):
        MoveUInt(8, 256)
    with pytest.raises(ValueError):
        MoveUInt(12, 1)


def test_bad_hex_escape_names_the_literal() -> None:
    with pytest.raises(ScriptError, match="Invalid \\\\x escape") as excinfo:
        parse_symbolic_value('b"\\xzz"', _NAMES.get)

    assert excinfo.value.text == 'b"\\xzz"'
    assert excinfo.value.expected == "two hex digits"
