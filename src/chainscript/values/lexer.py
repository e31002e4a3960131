from __future__ import annotations

import re
from typing import Literal

from chainscript.errors import ScriptError

ValueToken = Literal[
    "WHITESPACE",
    "BYTE_STRING",
    "HEX_STRING",
    "NUMBER_TYPED",
    "NUMBER",
    "TRUE",
    "FALSE",
    "IDENT",
    "COLON_COLON",
    "AT_SIGN",
    "LBRACKET",
    "RBRACKET",
    "LPAREN",
    "RPAREN",
    "COMMA",
]

Token = tuple[ValueToken, str]

_INTEGER = r"(?:0x[0-9a-fA-F][0-9a-fA-F_]*|[0-9][0-9_]*)"
_SUFFIX = r"(?:u8|u16|u32|u64|u128|u256)"

# Order matters: byte and hex strings start with an identifier character, and a
# typed number is a number followed by an identifier-like suffix.
_TOKEN_PATTERN = re.compile(
    "|".join(
        [
            r"(?P<WHITESPACE>\s+)",
            r'(?P<BYTE_STRING>b"(?:[^"\\]|\\.)*")',
            r'(?P<HEX_STRING>x"[0-9a-fA-F]*")',
            rf"(?P<NUMBER_TYPED>{_INTEGER}{_SUFFIX})(?![A-Za-z0-9_])",
            rf"(?P<NUMBER>{_INTEGER})(?![A-Za-z_])",
            r"(?P<IDENT>[A-Za-z_][A-Za-z0-9_]*)",
            r"(?P<COLON_COLON>::)",
            r"(?P<AT_SIGN>@)",
            r"(?P<LBRACKET>\[)",
            r"(?P<RBRACKET>\])",
            r"(?P<LPAREN>\()",
            r"(?P<RPAREN>\))",
            r"(?P<COMMA>,)",
        ]
    )
)

_KEYWORDS: dict[str, ValueToken] = {"true": "TRUE", "false": "FALSE"}


def tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise ScriptError(
                f"Unexpected character {text[position]!r} at offset {position}",
                text=text,
                expected="a value token",
            )
        kind = match.lastgroup
        assert kind is not None
        lexeme = match.group(kind)
        if kind == "IDENT":
            kind = _KEYWORDS.get(lexeme, "IDENT")
        tokens.append((kind, lexeme))  # type: ignore[arg-type]
        position = match.end()
    return tokens


__all__ = ["Token", "ValueToken", "tokenize"]
