from __future__ import annotations

from chainscript.errors import (
    ERROR_CODE_NOT_SUPPORTED,
    ERROR_CODE_OBJECT_LOAD,
    ERROR_CODE_SCRIPT,
    ERROR_CODE_UNKNOWN_OBJECT,
    ChainscriptError,
    ExecutionFailure,
    InvariantViolation,
    ObjectLoadError,
    OperationNotSupported,
    ResolutionError,
    ScriptError,
    TransactionRejected,
    UnboundStagedPackageError,
    UnknownObjectError,
    ValueKindError,
)
from chainscript.types import Address, EnumeratedHandle


def test_error_codes_are_stable() -> None:
    assert ERROR_CODE_SCRIPT == "SCRIPT_ERROR"
    assert ERROR_CODE_UNKNOWN_OBJECT == "UNKNOWN_OBJECT"
    assert ERROR_CODE_OBJECT_LOAD == "OBJECT_LOAD_FAILED"
    assert ERROR_CODE_NOT_SUPPORTED == "NOT_SUPPORTED"


def test_script_error_message_carries_text_and_expectation() -> None:
    error = ScriptError("Number does not fit in u8", text="256u8", expected="u8")

    assert str(error) == "Number does not fit in u8 (in '256u8'); expected u8"
    assert error.to_dict() == {"code": "SCRIPT_ERROR", "message": str(error)}
    assert isinstance(error, ValueError)


def test_value_kind_error_is_a_script_error() -> None:
    error = ValueKindError("unexpected nested object reference in args")
    assert isinstance(error, ScriptError)
    assert error.code == "VALUE_KIND_MISMATCH"


def test_resolution_failures_name_the_offending_value() -> None:
    handle = EnumeratedHandle(task=3, index=1)
    unknown = UnknownObjectError(handle)
    load = ObjectLoadError(Address.from_int(7), version=4)
    unbound = UnboundStagedPackageError("foo")

    assert "object(3,1)" in str(unknown)
    assert unknown.handle == handle
    assert str(Address.from_int(7)) in str(load)
    assert load.version == 4
    assert str(unbound) == "Unbound staged package 'foo'"
    for error in (unknown, load, unbound):
        assert isinstance(error, ResolutionError)
        assert isinstance(error, ChainscriptError)


def test_operation_not_supported_is_not_a_chainscript_error() -> None:
    error = OperationNotSupported("advance_epoch", "validator")

    assert str(error) == "advance_epoch not supported in validator mode"
    assert error.operation == "advance_epoch"
    assert not isinstance(error, ChainscriptError)
    assert isinstance(error, NotImplementedError)


def test_invariant_violation_and_rejection_are_distinct() -> None:
    rejected = TransactionRejected("ObjectLockConflict", "object is locked")

    assert rejected.reason == "ObjectLockConflict"
    assert str(rejected) == "ObjectLockConflict: object is locked"
    assert not isinstance(rejected, InvariantViolation)


def test_execution_failure_describes_command_position() -> None:
    failure = ExecutionFailure(kind="MoveAbort", message="aborted", command=2)
    summary = ExecutionFailure(kind="InsufficientGas", message="out of gas")

    assert failure.describe() == "MoveAbort in command 2"
    assert summary.describe() == "InsufficientGas"
    assert failure.to_dict()["command"] == 2
    assert "command" not in summary.to_dict()
