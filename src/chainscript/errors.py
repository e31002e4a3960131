"""Failure taxonomy shared by the value language, the resolver and the backends.

Every raised error carries a stable ``code`` so scenario output and baselines
stay comparable across releases. ``ExecutionFailure`` is the one failure that is
never raised: backends return it next to the committed effects of the
transaction it aborted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

ERROR_CODE_SCRIPT = "SCRIPT_ERROR"
ERROR_CODE_VALUE_KIND = "VALUE_KIND_MISMATCH"
ERROR_CODE_UNKNOWN_OBJECT = "UNKNOWN_OBJECT"
ERROR_CODE_OBJECT_LOAD = "OBJECT_LOAD_FAILED"
ERROR_CODE_UNBOUND_STAGED_PACKAGE = "UNBOUND_STAGED_PACKAGE"
ERROR_CODE_OBJ_VEC_INPUT = "OBJ_VEC_INPUT"
ERROR_CODE_INVARIANT = "INVARIANT_VIOLATION"
ERROR_CODE_NOT_SUPPORTED = "NOT_SUPPORTED"
ERROR_CODE_BACKEND = "BACKEND_ERROR"
ERROR_CODE_TRANSACTION_REJECTED = "TRANSACTION_REJECTED"


class ChainscriptError(Exception):
    code = "CHAINSCRIPT_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class ScriptError(ChainscriptError, ValueError):
    """A malformed script: bad literal, bad verb arguments, bad command line."""

    code = ERROR_CODE_SCRIPT

    def __init__(self, message: str, *, text: str | None = None, expected: str | None = None) -> None:
        super().__init__(message)
        self.text = text
        self.expected = expected

    def __str__(self) -> str:
        message = super().__str__()
        if self.text is not None:
            message = f"{message} (in {self.text!r})"
        if self.expected is not None:
            message = f"{message}; expected {self.expected}"
        return message


class ValueKindError(ScriptError):
    """A reference value used where only a plain value is legal, or the reverse."""

    code = ERROR_CODE_VALUE_KIND


class ResolutionError(ChainscriptError, LookupError):
    pass


class UnknownObjectError(ResolutionError):
    code = ERROR_CODE_UNKNOWN_OBJECT

    def __init__(self, handle: object) -> None:
        super().__init__(f"INVALID TEST. Unknown object, object({handle})")
        self.handle = handle


class ObjectLoadError(ResolutionError):
    code = ERROR_CODE_OBJECT_LOAD

    def __init__(self, object_id: object, version: int | None = None) -> None:
        super().__init__(f"INVALID TEST. Could not load object argument {object_id}")
        self.object_id = object_id
        self.version = version


class UnboundStagedPackageError(ResolutionError):
    code = ERROR_CODE_UNBOUND_STAGED_PACKAGE

    def __init__(self, name: str) -> None:
        super().__init__(f"Unbound staged package '{name}'")
        self.name = name


class ObjVecInputError(ResolutionError):
    code = ERROR_CODE_OBJ_VEC_INPUT

    def __init__(self) -> None:
        super().__init__("obj vec is not supported as an input")


class InvariantViolation(ChainscriptError, AssertionError):
    """The parser, resolver or ledger itself is wrong; never the script."""

    code = ERROR_CODE_INVARIANT


class OperationNotSupported(NotImplementedError):
    """A backend deliberately lacks a capability.

    Not a ``ChainscriptError``: drivers branch on it, they do not treat it as a
    defect.
    """

    code = ERROR_CODE_NOT_SUPPORTED

    def __init__(self, operation: str, mode: str) -> None:
        super().__init__(f"{operation} not supported in {mode} mode")
        self.operation = operation
        self.mode = mode


class BackendError(ChainscriptError, RuntimeError):
    code = ERROR_CODE_BACKEND


class TransactionRejected(ChainscriptError):
    """Input validation failed before execution; nothing was committed."""

    code = ERROR_CODE_TRANSACTION_REJECTED

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(f"{reason}: {message}")
        self.reason = reason


@dataclass(slots=True, frozen=True)
class ExecutionFailure:
    kind: str
    message: str
    command: int | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        if self.command is None:
            return self.kind
        return f"{self.kind} in command {self.command}"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }
        if self.command is not None:
            payload["command"] = self.command
        return payload


__all__ = [
    "ERROR_CODE_BACKEND",
    "ERROR_CODE_INVARIANT",
    "ERROR_CODE_NOT_SUPPORTED",
    "ERROR_CODE_OBJECT_LOAD",
    "ERROR_CODE_OBJ_VEC_INPUT",
    "ERROR_CODE_SCRIPT",
    "ERROR_CODE_TRANSACTION_REJECTED",
    "ERROR_CODE_UNBOUND_STAGED_PACKAGE",
    "ERROR_CODE_UNKNOWN_OBJECT",
    "ERROR_CODE_VALUE_KIND",
    "BackendError",
    "ChainscriptError",
    "ExecutionFailure",
    "InvariantViolation",
    "ObjVecInputError",
    "ObjectLoadError",
    "OperationNotSupported",
    "ResolutionError",
    "ScriptError",
    "TransactionRejected",
    "UnboundStagedPackageError",
    "UnknownObjectError",
    "ValueKindError",
]
