from __future__ import annotations

from chainscript.values.move_value import (
    MoveAddress,
    MoveBool,
    MoveStruct,
    MoveUInt,
    MoveValue,
    MoveVector,
    simple_serialize,
)
from chainscript.values.resolver import into_argument, into_call_arg
from chainscript.values.symbolic import (
    DigestValue,
    ObjectValue,
    ObjVecValue,
    PlainValue,
    ReceivingValue,
    SymbolicValue,
    as_object,
    as_plain,
    parse_handle_literal,
    parse_symbolic,
    parse_symbolic_value,
)

__all__ = [
    "DigestValue",
    "MoveAddress",
    "MoveBool",
    "MoveStruct",
    "MoveUInt",
    "MoveValue",
    "MoveVector",
    "ObjVecValue",
    "ObjectValue",
    "PlainValue",
    "ReceivingValue",
    "SymbolicValue",
    "as_object",
    "as_plain",
    "into_argument",
    "into_call_arg",
    "parse_handle_literal",
    "parse_symbolic",
    "parse_symbolic_value",
    "simple_serialize",
]
