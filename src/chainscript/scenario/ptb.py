"""Parser for ``//>`` programmable-transaction command lines.

Accepted forms (an optional ``N:`` label and trailing ``;`` are ignored)::

    TransferObjects([Result(0), Input(1)], Input(2))
    SplitCoins(Gas, [Input(0), Input(1)])
    MergeCoins(Gas, [Input(3)])
    MakeMoveVec<u64>([Input(0), Input(1)])
    Publish(pkg, [std, sui])
    0x2::object_basics::create(Input(0), Input(1))
"""
from __future__ import annotations

import re
from collections.abc import Callable

from chainscript.errors import ScriptError
from chainscript.scenario.state import StagedPackage
from chainscript.transaction import (
    Argument,
    Command,
    GasCoin,
    Input,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResult,
    Publish,
    Result,
    SplitCoins,
    TransferObjects,
)
from chainscript.types import Address
from chainscript.values.parser import AddressMapping, parse_u256, parse_u64

_TOKEN = re.compile(
    r"\s*(?:(?P<number>0x[0-9a-fA-F][0-9a-fA-F_]*|[0-9][0-9_]*)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<symbol>::|[()\[\],:;<>]))"
)

StagedLookup = Callable[[str], StagedPackage | None]


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    position = 0
    stripped = text.rstrip()
    while position < len(stripped):
        match = _TOKEN.match(stripped, position)
        if match is None or match.end() == position:
            raise ScriptError("Unexpected character in command", text=stripped[position:])
        kind = match.lastgroup
        assert kind is not None
        tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _CommandParser:
    def __init__(self, text: str, mapping: AddressMapping, staged: StagedLookup) -> None:
        self.text = text
        self._tokens = _tokenize(text)
        self._position = 0
        self._mapping = mapping
        self._staged = staged

    def _peek(self, offset: int = 0) -> tuple[str, str] | None:
        index = self._position + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _next(self) -> tuple[str, str]:
        token = self._peek()
        if token is None:
            raise ScriptError("Unexpected end of command", text=self.text)
        self._position += 1
        return token

    def _expect(self, value: str) -> None:
        _kind, found = self._next()
        if found != value:
            raise ScriptError(f"Unexpected '{found}' in command", text=self.text, expected=f"'{value}'")

    def _accept(self, value: str) -> bool:
        token = self._peek()
        if token is not None and token[1] == value:
            self._position += 1
            return True
        return False

    def _ident(self) -> str:
        kind, value = self._next()
        if kind != "ident":
            raise ScriptError(f"Unexpected '{value}' in command", text=self.text, expected="an identifier")
        return value

    def _u16_index(self) -> int:
        kind, value = self._next()
        if kind != "number":
            raise ScriptError(f"Unexpected '{value}' in command", text=self.text, expected="an index")
        index = parse_u64(value)
        if index > 0xFFFF:
            raise ScriptError("Index does not fit in u16", text=value, expected="u16")
        return index

    def parse(self) -> Command:
        label, colon = self._peek(), self._peek(1)
        if label is not None and colon is not None and label[0] == "number" and colon[1] == ":":
            self._position += 2
        command = self._command()
        self._accept(";")
        trailing = self._peek()
        if trailing is not None:
            raise ScriptError(f"Trailing input '{trailing[1]}' after command", text=self.text)
        return command

    def _command(self) -> Command:
        kind, head = self._peek() or ("", "")
        follower = self._peek(1)
        if kind == "ident" and (follower is None or follower[1] != "::"):
            self._position += 1
            if head == "TransferObjects":
                self._expect("(")
                objects = self._argument_list()
                self._expect(",")
                address = self._argument()
                self._expect(")")
                return TransferObjects(objects, address)
            if head == "SplitCoins":
                self._expect("(")
                coin = self._argument()
                self._expect(",")
                amounts = self._argument_list()
                self._expect(")")
                return SplitCoins(coin, amounts)
            if head == "MergeCoins":
                self._expect("(")
                destination = self._argument()
                self._expect(",")
                sources = self._argument_list()
                self._expect(")")
                return MergeCoins(destination, sources)
            if head == "MakeMoveVec":
                type_tags = self._type_arguments()
                if len(type_tags) > 1:
                    raise ScriptError("MakeMoveVec takes at most one type argument", text=self.text)
                self._expect("(")
                elements = self._argument_list()
                self._expect(")")
                return MakeMoveVec(type_tags[0] if type_tags else None, elements)
            if head == "Publish":
                return self._publish()
            raise ScriptError(f"Unknown command '{head}'", text=self.text)
        return self._move_call()

    def _publish(self) -> Publish:
        self._expect("(")
        name = self._ident()
        dependencies: list[Address] = []
        if self._accept(","):
            self._expect("[")
            while not self._accept("]"):
                dependencies.append(self._address(self._next()[1]))
                if not self._accept(","):
                    self._expect("]")
                    break
        self._expect(")")
        staged = self._staged(name)
        if staged is None:
            raise ScriptError(f"Unbound staged package '{name}'", text=self.text)
        deps = tuple(dict.fromkeys([*staged.dependencies, *dependencies]))
        return Publish(tuple(sorted(staged.modules.items())), deps)

    def _move_call(self) -> MoveCall:
        _kind, package = self._next()
        self._expect("::")
        module = self._ident()
        self._expect("::")
        function = self._ident()
        type_arguments = self._type_arguments()
        self._expect("(")
        arguments: list[Argument] = []
        while not self._accept(")"):
            arguments.append(self._argument())
            if not self._accept(","):
                self._expect(")")
                break
        return MoveCall(self._address(package), module, function, tuple(arguments), type_arguments)

    def _address(self, literal: str) -> Address:
        if literal[:1].isdigit():
            return Address.from_int(parse_u256(literal))
        address = self._mapping(literal)
        if address is None:
            raise ScriptError(f"Unbound named address '{literal}'", text=self.text)
        return address

    def _type_arguments(self) -> tuple[str, ...]:
        if not self._accept("<"):
            return ()
        tags: list[str] = []
        current: list[str] = []
        depth = 0
        while True:
            _kind, value = self._next()
            if value == ">" and depth == 0:
                break
            if value == "," and depth == 0:
                tags.append("".join(current))
                current = []
                continue
            if value == "<":
                depth += 1
            elif value == ">":
                depth -= 1
            current.append(value)
        if current:
            tags.append("".join(current))
        return tuple(tags)

    def _argument_list(self) -> tuple[Argument, ...]:
        self._expect("[")
        items: list[Argument] = []
        while not self._accept("]"):
            items.append(self._argument())
            if not self._accept(","):
                self._expect("]")
                break
        return tuple(items)

    def _argument(self) -> Argument:
        name = self._ident()
        if name == "Gas":
            return GasCoin()
        if name in {"Input", "Result"}:
            self._expect("(")
            index = self._u16_index()
            self._expect(")")
            return Input(index) if name == "Input" else Result(index)
        if name == "NestedResult":
            self._expect("(")
            index = self._u16_index()
            self._expect(",")
            result_index = self._u16_index()
            self._expect(")")
            return NestedResult(index, result_index)
        raise ScriptError(
            f"Unknown argument '{name}'",
            text=self.text,
            expected="Gas | Input(i) | Result(i) | NestedResult(i, j)",
        )


def parse_ptb_command(text: str, *, mapping: AddressMapping, staged: StagedLookup) -> Command:
    return _CommandParser(text, mapping, staged).parse()


__all__ = ["parse_ptb_command"]
