"""Recursive-descent parser for the base value grammar.

Parsing happens in two phases. ``parse`` turns text into a ``ParsedValue`` tree
without any scenario knowledge; ``into_concrete_value`` later binds named
addresses and lets a ``ValueExtension`` decide how vectors and structs of its
own values are assembled. Extensions hook into the first phase through
``ValueExtension.parse_value``, which sees the token stream before the base
grammar does.
"""
from __future__ import annotations

import string
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from chainscript.constants import U64_MAX, U256_MAX
from chainscript.errors import ScriptError
from chainscript.types import Address
from chainscript.values.lexer import Token, ValueToken, tokenize
from chainscript.values.move_value import (
    UINT_WIDTHS,
    MoveAddress,
    MoveBool,
    MoveUInt,
    MoveValue,
    byte_vector,
)

C = TypeVar("C")

AddressMapping = Callable[[str], Address | None]


@dataclass(frozen=True, slots=True)
class ParsedBool:
    value: bool


@dataclass(frozen=True, slots=True)
class ParsedNumber:
    value: int
    bits: int | None = None


@dataclass(frozen=True, slots=True)
class ParsedAddress:
    literal: str


@dataclass(frozen=True, slots=True)
class ParsedBytes:
    data: bytes


@dataclass(frozen=True, slots=True)
class ParsedVector:
    elements: tuple[ParsedValue, ...]


@dataclass(frozen=True, slots=True)
class ParsedStruct:
    fields: tuple[ParsedValue, ...]


@dataclass(frozen=True, slots=True)
class ParsedExtra:
    value: Any


ParsedValue = ParsedBool | ParsedNumber | ParsedAddress | ParsedBytes | ParsedVector | ParsedStruct | ParsedExtra


class Parser:
    def __init__(self, text: str, tokens: list[Token] | None = None) -> None:
        self.text = text
        raw = tokenize(text) if tokens is None else tokens
        self._tokens = [token for token in raw if token[0] != "WHITESPACE"]
        self._position = 0

    def peek(self) -> Token | None:
        if self._position >= len(self._tokens):
            return None
        return self._tokens[self._position]

    def peek_tok(self) -> ValueToken | None:
        token = self.peek()
        return None if token is None else token[0]

    def advance(self, expected: ValueToken) -> str:
        token = self.peek()
        if token is None:
            raise ScriptError("Unexpected end of input", text=self.text, expected=expected)
        kind, lexeme = token
        if kind != expected:
            raise ScriptError(f"Unexpected token {lexeme!r}", text=self.text, expected=expected)
        self._position += 1
        return lexeme

    def at_end(self) -> bool:
        return self._position >= len(self._tokens)


class ValueExtension(Protocol[C]):
    def parse_value(self, parser: Parser) -> Any | None: ...

    def move_value_into_concrete(self, value: MoveValue) -> C: ...

    def concrete_vector(self, elements: list[C]) -> C: ...

    def concrete_struct(self, fields: list[C]) -> C: ...

    def into_concrete_value(self, extra: Any) -> C: ...


def _parse_integer(text: str) -> int:
    cleaned = text.replace("_", "")
    if not cleaned or cleaned[0] in "+-":
        raise ScriptError("Invalid number literal", text=text, expected="an unsigned integer")
    try:
        if cleaned.lower().startswith("0x"):
            return int(cleaned[2:], 16)
        return int(cleaned, 10)
    except ValueError as exc:
        raise ScriptError("Invalid number literal", text=text, expected="an integer") from exc


def parse_u256(text: str) -> int:
    value = _parse_integer(text)
    if value > U256_MAX:
        raise ScriptError("Number does not fit in u256", text=text, expected="u256")
    return value


def parse_u64(text: str) -> int:
    value = _parse_integer(text)
    if value > U64_MAX:
        raise ScriptError("Number does not fit in u64", text=text, expected="u64")
    return value


def _parse_typed_number(text: str) -> ParsedNumber:
    for bits in sorted(UINT_WIDTHS, reverse=True):
        suffix = f"u{bits}"
        if text.endswith(suffix):
            value = _parse_integer(text[: -len(suffix)])
            if value >= 1 << bits:
                raise ScriptError(f"Number does not fit in {suffix}", text=text, expected=suffix)
            return ParsedNumber(value=value, bits=bits)
    raise ScriptError("Unknown integer suffix", text=text, expected="u8..u256")


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"'}


def _parse_byte_string(lexeme: str) -> bytes:
    body = lexeme[2:-1]
    out = bytearray()
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            out.extend(char.encode("utf-8"))
            index += 1
            continue
        escape = body[index + 1]
        if escape == "x":
            digits = body[index + 2 : index + 4]
            if len(digits) != 2 or any(digit not in string.hexdigits for digit in digits):
                raise ScriptError("Invalid \\x escape", text=lexeme, expected="two hex digits")
            out.append(int(digits, 16))
            index += 4
            continue
        if escape not in _ESCAPES:
            raise ScriptError(f"Unknown escape \\{escape}", text=lexeme, expected="a byte string")
        out.extend(_ESCAPES[escape].encode("utf-8"))
        index += 2
    return bytes(out)


def _parse_hex_string(lexeme: str) -> bytes:
    body = lexeme[2:-1]
    if len(body) % 2:
        raise ScriptError("Odd number of hex digits", text=lexeme, expected="a hex string")
    return bytes.fromhex(body)


def _parse_sequence(
    parser: Parser,
    extension: ValueExtension[Any],
    close: ValueToken,
) -> tuple[ParsedValue, ...]:
    items: list[ParsedValue] = []
    while parser.peek_tok() != close:
        items.append(parse_value(parser, extension))
        if parser.peek_tok() == close:
            break
        parser.advance("COMMA")
    parser.advance(close)
    return tuple(items)


def parse_value(parser: Parser, extension: ValueExtension[Any]) -> ParsedValue:
    extra = extension.parse_value(parser)
    if extra is not None:
        return ParsedExtra(extra)

    token = parser.peek()
    if token is None:
        raise ScriptError("Unexpected end of input", text=parser.text, expected="a value")
    kind, lexeme = token

    if kind in ("TRUE", "FALSE"):
        parser.advance(kind)
        return ParsedBool(kind == "TRUE")
    if kind == "NUMBER":
        parser.advance(kind)
        return ParsedNumber(parse_u256(lexeme))
    if kind == "NUMBER_TYPED":
        parser.advance(kind)
        return _parse_typed_number(lexeme)
    if kind == "BYTE_STRING":
        parser.advance(kind)
        return ParsedBytes(_parse_byte_string(lexeme))
    if kind == "HEX_STRING":
        parser.advance(kind)
        return ParsedBytes(_parse_hex_string(lexeme))
    if kind == "AT_SIGN":
        parser.advance("AT_SIGN")
        next_kind = parser.peek_tok()
        if next_kind == "NUMBER":
            return ParsedAddress(parser.advance("NUMBER"))
        return ParsedAddress(parser.advance("IDENT"))
    if kind == "IDENT" and lexeme == "vector":
        parser.advance("IDENT")
        parser.advance("LBRACKET")
        return ParsedVector(_parse_sequence(parser, extension, "RBRACKET"))
    if kind == "IDENT" and lexeme == "struct":
        parser.advance("IDENT")
        parser.advance("LPAREN")
        return ParsedStruct(_parse_sequence(parser, extension, "RPAREN"))

    raise ScriptError(f"Unexpected token {lexeme!r}", text=parser.text, expected="a value")


def parse(text: str, extension: ValueExtension[Any]) -> ParsedValue:
    parser = Parser(text)
    value = parse_value(parser, extension)
    if not parser.at_end():
        trailing = parser.peek()
        assert trailing is not None
        raise ScriptError(f"Unexpected trailing token {trailing[1]!r}", text=text, expected="end of value")
    return value


def _resolve_address(literal: str, mapping: AddressMapping) -> Address:
    if literal[0].isdigit():
        return Address.from_int(parse_u256(literal))
    address = mapping(literal)
    if address is None:
        raise ScriptError(f"Unbound named address '{literal}'", text=f"@{literal}")
    return address


def into_concrete_value(parsed: ParsedValue, mapping: AddressMapping, extension: ValueExtension[C]) -> C:
    if isinstance(parsed, ParsedBool):
        return extension.move_value_into_concrete(MoveBool(parsed.value))
    if isinstance(parsed, ParsedNumber):
        if parsed.bits is None:
            # Untyped numbers default to u64.
            if parsed.value > U64_MAX:
                raise ScriptError("Untyped number does not fit in u64", text=str(parsed.value), expected="u64")
            return extension.move_value_into_concrete(MoveUInt(64, parsed.value))
        return extension.move_value_into_concrete(MoveUInt(parsed.bits, parsed.value))
    if isinstance(parsed, ParsedAddress):
        return extension.move_value_into_concrete(MoveAddress(_resolve_address(parsed.literal, mapping)))
    if isinstance(parsed, ParsedBytes):
        return extension.move_value_into_concrete(byte_vector(parsed.data))
    if isinstance(parsed, ParsedVector):
        elements = [into_concrete_value(item, mapping, extension) for item in parsed.elements]
        return extension.concrete_vector(elements)
    if isinstance(parsed, ParsedStruct):
        fields = [into_concrete_value(item, mapping, extension) for item in parsed.fields]
        return extension.concrete_struct(fields)
    if isinstance(parsed, ParsedExtra):
        return extension.into_concrete_value(parsed.value)
    raise TypeError(f"Not a parsed value: {parsed!r}")


__all__ = [
    "AddressMapping",
    "ParsedAddress",
    "ParsedBool",
    "ParsedBytes",
    "ParsedExtra",
    "ParsedNumber",
    "ParsedStruct",
    "ParsedValue",
    "ParsedVector",
    "Parser",
    "ValueExtension",
    "into_concrete_value",
    "parse",
    "parse_u256",
    "parse_u64",
    "parse_value",
]
