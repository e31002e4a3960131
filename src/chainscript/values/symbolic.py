"""Object, receiving and digest references layered on top of the base value grammar.

Scripts name on-chain objects through handles:

* ``object(I, J)``: the ``J``-th object created by task ``I`` (an enumerated handle);
* ``object(N)``: the object at the fixed address ``N`` (a known handle);
* either form followed by ``@ V`` pins version ``V``;
* ``receiving(...)`` takes the same forms but is consumed in receive mode;
* ``digest(NAME)`` is the content digest of a package staged as ``NAME``.

The only thing telling an enumerated handle from a known one is the comma after
the first literal, so ``object(5)`` and ``object(5, 0)`` name different objects.
"""
from __future__ import annotations

from dataclasses import dataclass

from chainscript.constants import U64_MAX
from chainscript.errors import ScriptError, ValueKindError
from chainscript.types import ADDRESS_LENGTH, Address, EnumeratedHandle, Handle, KnownHandle
from chainscript.values.move_value import MoveStruct, MoveValue, MoveVector
from chainscript.values.parser import (
    AddressMapping,
    Parser,
    ParsedValue,
    into_concrete_value,
    parse,
    parse_u64,
    parse_u256,
)


@dataclass(frozen=True, slots=True)
class PlainValue:
    value: MoveValue

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class ObjectValue:
    handle: Handle
    version: int | None = None

    def __str__(self) -> str:
        return _render_reference("object", self.handle, self.version)


@dataclass(frozen=True, slots=True)
class ObjVecValue:
    elements: tuple[ObjectValue, ...]

    def __str__(self) -> str:
        return "vector[" + ", ".join(str(item) for item in self.elements) + "]"


@dataclass(frozen=True, slots=True)
class ReceivingValue:
    handle: Handle
    version: int | None = None

    def __str__(self) -> str:
        return _render_reference("receiving", self.handle, self.version)


@dataclass(frozen=True, slots=True)
class DigestValue:
    package: str

    def __str__(self) -> str:
        return f"digest({self.package})"


SymbolicValue = PlainValue | ObjectValue | ObjVecValue | ReceivingValue | DigestValue


def _render_reference(keyword: str, handle: Handle, version: int | None) -> str:
    rendered = f"{keyword}({handle})"
    if version is not None:
        rendered += f"@{version}"
    return rendered


def _kind_name(value: SymbolicValue) -> str:
    if isinstance(value, PlainValue):
        return "plain value"
    if isinstance(value, ObjectValue):
        return "object reference"
    if isinstance(value, ObjVecValue):
        return "object vector"
    if isinstance(value, ReceivingValue):
        return "receiving reference"
    return "package digest"


def as_plain(value: SymbolicValue) -> MoveValue:
    if isinstance(value, PlainValue):
        return value.value
    raise ValueKindError(
        f"unexpected nested {_kind_name(value)} in args",
        text=str(value),
        expected="a plain value",
    )


def as_object(value: SymbolicValue) -> ObjectValue:
    if isinstance(value, ObjectValue):
        return value
    raise ValueKindError(
        f"unexpected nested {_kind_name(value)} in args",
        text=str(value),
        expected="an object reference",
    )


def _handle_from_number(value: int) -> KnownHandle:
    # The literal is a u256; its little-endian bytes, reversed, are the address.
    address_bytes = bytes(reversed(value.to_bytes(ADDRESS_LENGTH, "little")))
    return KnownHandle(Address(address_bytes))


def _parse_handle(parser: Parser) -> Handle:
    first = parser.advance("NUMBER")
    value = parse_u256(first)
    if parser.peek_tok() != "COMMA":
        return _handle_from_number(value)
    parser.advance("COMMA")
    second = parser.advance("NUMBER")
    index = parse_u64(second)
    if value > U64_MAX:
        raise ScriptError("Object ID too large", text=parser.text, expected="a u64 task number")
    return EnumeratedHandle(task=value, index=index)


def _parse_reference(parser: Parser, keyword: str) -> tuple[Handle, int | None]:
    ident = parser.advance("IDENT")
    if ident != keyword:
        raise ScriptError(f"Expected '{keyword}'", text=parser.text, expected=keyword)
    parser.advance("LPAREN")
    handle = _parse_handle(parser)
    parser.advance("RPAREN")
    version: int | None = None
    if parser.peek_tok() == "AT_SIGN":
        parser.advance("AT_SIGN")
        version = parse_u64(parser.advance("NUMBER"))
    return handle, version


def _parse_digest(parser: Parser) -> DigestValue:
    parser.advance("IDENT")
    parser.advance("LPAREN")
    package = parser.advance("IDENT")
    parser.advance("RPAREN")
    return DigestValue(package)


class ReferenceExtension:
    """Plugs the three reference forms into the base grammar."""

    def parse_value(self, parser: Parser) -> SymbolicValue | None:
        token = parser.peek()
        if token is None or token[0] != "IDENT":
            return None
        keyword = token[1]
        if keyword == "object":
            handle, version = _parse_reference(parser, "object")
            return ObjectValue(handle, version)
        if keyword == "receiving":
            handle, version = _parse_reference(parser, "receiving")
            return ReceivingValue(handle, version)
        if keyword == "digest":
            return _parse_digest(parser)
        return None

    def move_value_into_concrete(self, value: MoveValue) -> SymbolicValue:
        return PlainValue(value)

    def concrete_vector(self, elements: list[SymbolicValue]) -> SymbolicValue:
        # Decided by the first element alone; every later element must agree.
        if elements and isinstance(elements[0], ObjectValue):
            return ObjVecValue(tuple(as_object(item) for item in elements))
        return PlainValue(MoveVector(tuple(as_plain(item) for item in elements)))

    def concrete_struct(self, fields: list[SymbolicValue]) -> SymbolicValue:
        return PlainValue(MoveStruct(tuple(as_plain(item) for item in fields)))

    def into_concrete_value(self, extra: SymbolicValue) -> SymbolicValue:
        return extra


EXTENSION = ReferenceExtension()


def parse_symbolic(text: str) -> ParsedValue:
    return parse(text, EXTENSION)


def concretize(parsed: ParsedValue, mapping: AddressMapping) -> SymbolicValue:
    return into_concrete_value(parsed, mapping, EXTENSION)


def parse_symbolic_value(text: str, mapping: AddressMapping | None = None) -> SymbolicValue:
    return concretize(parse_symbolic(text), mapping or (lambda _name: None))


def parse_handle_literal(text: str) -> Handle:
    """Parse the bare ``I,J`` or ``N`` handle form used by verb arguments."""
    first, sep, second = text.partition(",")
    if sep:
        return EnumeratedHandle(task=parse_u64(first.strip()), index=parse_u64(second.strip()))
    return _handle_from_number(parse_u256(text.strip()))


__all__ = [
    "EXTENSION",
    "DigestValue",
    "ObjVecValue",
    "ObjectValue",
    "PlainValue",
    "ReceivingValue",
    "ReferenceExtension",
    "SymbolicValue",
    "as_object",
    "as_plain",
    "concretize",
    "parse_handle_literal",
    "parse_symbolic",
    "parse_symbolic_value",
]
