"""End-to-end scenarios through the script runner on both backends."""
from __future__ import annotations

import pytest

from chainscript.config import RunnerConfig
from chainscript.scenario.runner import parse_module_sources, run_script

CREATE_AND_VIEW = """\
//# init --accounts A B
//# programmable --sender A --inputs 10 @B
//> 0x2::object_basics::create(Input(0), Input(1))
//# view-object 1,0
"""

EXPECTED_CREATE_AND_VIEW = """\
processed 3 tasks

task 0 'init'. lines 1-1:
A: object(0,0)
B: object(0,1)

task 1 'programmable'. lines 2-3:
created: object(1,0)
mutated: object(0,0)
gas summary: gas_used: 1100000

task 2 'view-object'. lines 4-4:
Owner: Account Address ( B )
Version: 2
Contents: 0x2::object_basics::Object {id: object(1,0), value: 10}
"""


def _run(source: str, backend: str = "simulator") -> str:
    return run_script(source, RunnerConfig(backend=backend)).output


@pytest.mark.parametrize("backend", ["simulator", "validator"])
def test_create_and_view_transcript_is_identical_on_both_backends(backend: str) -> None:
    assert _run(CREATE_AND_VIEW, backend) == EXPECTED_CREATE_AND_VIEW


def test_transcripts_are_deterministic() -> None:
    assert _run(CREATE_AND_VIEW) == _run(CREATE_AND_VIEW)


def test_move_abort_is_reported_with_charged_gas() -> None:
    output = _run(
        """\
//# init --accounts A
//# programmable --sender A --inputs 7
//> 0x2::object_basics::abort_with(Input(0))
"""
    )

    assert "mutated: object(0,0)\ngas summary: gas_used: 1100000\n" in output
    assert "Error: Transaction Effects Status: MoveAbort in command 0" in output
    assert "Execution Error: aborted in object_basics with code 7" in output


def test_events_are_rendered_and_queryable_by_task() -> None:
    output = _run(
        """\
//# init --accounts A
//# programmable --sender A --inputs 5
//> 0x2::object_basics::emit(Input(0))
//# view-events --task 1
"""
    )

    assert output.count("events: 0x2::object_basics::NewValueEvent {new_value: 5}") == 2


def test_transfer_object_moves_ownership() -> None:
    output = _run(
        """\
//# init --accounts A B
//# programmable --sender A --inputs 10 @B
//> 0x2::object_basics::create(Input(0), Input(1))
//# transfer-object 1,0 --sender B --recipient A
//# view-object 1,0
"""
    )

    assert "task 2 'transfer-object'. lines 4-4:\nmutated: object(0,1), object(1,0)" in output
    assert "Owner: Account Address ( A )\nVersion: 3" in output


def test_shared_objects_can_be_mutated_by_anyone() -> None:
    output = _run(
        """\
//# init --accounts A
//# programmable --inputs 1
//> 0: 0x2::object_basics::new(Input(0));
//> 1: 0x2::object_basics::share(Result(0));
//# programmable --sender A --inputs object(1,0) 42
//> 0x2::object_basics::set_value(Input(0), Input(1))
//# view-object 1,0
"""
    )

    assert "mutated: object(0,0), object(1,0)" in output
    assert "Owner: Shared( 2 )" in output
    assert "value: 42}" in output


def test_dev_inspect_reports_without_committing() -> None:
    output = _run(
        """\
//# init --accounts A
//# programmable --sender A --dev-inspect --inputs 3
//> 0x2::object_basics::emit(Input(0))
//# view-events
"""
    )

    assert "events: 0x2::object_basics::NewValueEvent {new_value: 3}" in output
    assert "Error: No transaction has been executed yet" in output


def test_simulator_controls_checkpoints_epochs_and_the_clock() -> None:
    output = _run(
        """\
//# init --accounts A
//# create-checkpoint
//# advance-epoch
//# advance-clock --duration-ns 1000000000
//# view-object 0x6
//# request-gas --address A --amount 500
//# view-object 5,0
"""
    )

    assert "task 1 'create-checkpoint'. lines 2-2:\nCheckpoint created: 1" in output
    assert "task 2 'advance-epoch'. lines 3-3:\nEpoch advanced: 1" in output
    assert "task 3 'advance-clock'" not in output
    assert "timestamp_ms: 1000" in output
    assert "task 5 'request-gas'. lines 6-6:\ncreated: object(5,0)" in output
    assert "Owner: Account Address ( A )" in output
    assert "balance: 500" in output


def test_validator_reports_unsupported_operations_and_continues() -> None:
    output = _run(
        """\
//# init --accounts A
//# create-checkpoint
//# advance-epoch
//# view-object 0,0
""",
        backend="validator",
    )

    assert output.startswith("processed 4 tasks\n")
    assert "Error: create_checkpoint not supported in validator mode" in output
    assert "Error: advance_epoch not supported in validator mode" in output
    assert "Owner: Account Address ( A )" in output


def test_init_simulator_flag_overrides_the_configured_backend() -> None:
    output = _run("//# init --accounts A --simulator\n//# create-checkpoint\n", backend="validator")
    assert "Checkpoint created: 1" in output


def test_unknown_object_stops_the_scenario() -> None:
    output = _run(
        """\
//# init --accounts A
//# view-object 9,9
//# create-checkpoint
"""
    )

    assert output == (
        "processed 2 tasks\n\n"
        "task 0 'init'. lines 1-1:\nA: object(0,0)\n\n"
        "task 1 'view-object'. lines 2-2:\nError: INVALID TEST. Unknown object, object(9,9)\n"
    )


def test_publish_and_call_by_named_address() -> None:
    output = _run(
        """\
//# init --accounts A
//# stage-package counter
module counter::m {
}
//# publish counter --sender A
//# set-address pkg object(2,0)
//# view-object 2,0
"""
    )

    assert "task 2 'publish'" in output
    assert "created: object(2,0)" in output
    assert "::{m}" in output


@pytest.mark.parametrize("backend", ["simulator", "validator"])
def test_run_calls_a_function_with_resolved_arguments(backend: str) -> None:
    output = _run(
        """\
//# init --accounts A B
//# run 0x2::object_basics::create --sender A --args 10 @B
//# view-object 1,0
""",
        backend,
    )

    assert "task 1 'run'. lines 2-2:\ncreated: object(1,0)\nmutated: object(0,0)\ngas summary: gas_used: 1100000\n" in output
    assert "Owner: Account Address ( B )" in output
    assert "value: 10}" in output


def test_run_resolves_named_addresses_and_can_summarize() -> None:
    output = _run(
        """\
//# init --accounts A
//# run sui::object_basics::emit --sender A --args 4
//# run 0x2::object_basics::create --sender A --args 1 --args @A --summarize
//# run 0x2::object_basics::missing --sender A
"""
    )

    assert "events: 0x2::object_basics::NewValueEvent {new_value: 4}" in output
    assert "task 2 'run'. lines 3-3:\ncreated: 1\nmutated: 1\n" in output
    assert "Error: Transaction Effects Status: FunctionNotFound in command 0" in output


def test_consensus_commit_prologue_moves_the_clock_forward_only() -> None:
    output = _run(
        """\
//# init --accounts A
//# consensus-commit-prologue --timestamp-ms 4000
//# view-object 0x6
//# consensus-commit-prologue --timestamp-ms 10
//# view-object 0x6
"""
    )

    assert "task 1 'consensus-commit-prologue'" not in output
    assert "timestamp_ms: 4000" in output
    assert "Error: Timestamp 10 is earlier than the clock; expected at least 4000" in output
    assert output.startswith("processed 4 tasks\n")


def test_validator_does_not_support_consensus_commit_prologue() -> None:
    output = _run("//# init --accounts A\n//# consensus-commit-prologue --timestamp-ms 4000\n", backend="validator")
    assert "Error: consensus_commit_prologue not supported in validator mode" in output


UPGRADE_SCRIPT = """\
//# init --accounts A
//# publish p --sender A --upgradeable
module p::m {
}
//# view-object 1,1
//# upgrade --package p --upgrade-capability 1,1 --sender A
module p::m {
}
module p::n {
}
//# view-object 3,0
//# view-object 1,1
"""


@pytest.mark.parametrize("backend", ["simulator", "validator"])
def test_upgradeable_publish_then_upgrade(backend: str) -> None:
    output = _run(UPGRADE_SCRIPT, backend)

    assert "task 1 'publish'. lines 2-4:\ncreated: object(1,0), object(1,1)\n" in output
    assert "Contents: 0x2::package::UpgradeCap {id: object(1,1), package: object(1,0), version: 1, policy: 0}" in output
    assert "task 3 'upgrade'. lines 6-10:\ncreated: object(3,0)\nmutated: object(0,0), object(1,1)\n" in output
    assert "task 4 'view-object'. lines 11-11:\nobject(3,0)::{m, n}" in output
    assert "package: object(3,0), version: 2, policy: 0}" in output


def test_upgrade_policy_violations_are_execution_failures() -> None:
    output = _run(UPGRADE_SCRIPT.replace("--sender A\nmodule p::m", "--sender A --policy dep_only\nmodule p::m", 1))

    assert "Error: Transaction Effects Status: PackageUpgradeError in command 1" in output
    assert "Execution Error: policy forbids adding module(s) n" in output
    assert "Error: INVALID TEST. Unknown object, object(3,0)" in output


def test_upgrade_needs_a_published_package() -> None:
    output = _run("//# init --accounts A\n//# upgrade --package p --upgrade-capability 0,0 --sender A\nmodule p::m {\n}\n")
    assert "Error: Package 'p' has not been published" in output


def test_bad_task_arguments_become_script_errors() -> None:
    output = _run("//# init --accounts A\n//# transfer-object 0,0\n")
    assert "Error: Invalid arguments for 'transfer-object'" in output


def test_parse_module_sources_splits_blocks() -> None:
    modules = parse_module_sources("module a::one {\n}\nmodule two {\n}\n")
    assert modules == {"one": "module a::one {\n}", "two": "module two {\n}"}
