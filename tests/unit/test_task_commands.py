from __future__ import annotations

import pytest

from chainscript.errors import ScriptError
from chainscript.scenario.commands import (
    AdvanceClockCommand,
    AdvanceEpochCommand,
    ConsensusCommitPrologueCommand,
    CreateCheckpointCommand,
    InitCommand,
    ProgrammableCommand,
    PublishCommand,
    RequestGasCommand,
    RunCommand,
    StagePackageCommand,
    TransferObjectCommand,
    UpgradeCommand,
    ViewCheckpointCommand,
    ViewEventsCommand,
    ViewObjectCommand,
    parse_task_command,
)
from chainscript.scenario.tasks import parse_tasks, split_command
from chainscript.types import Address, EnumeratedHandle, KnownHandle

SCRIPT = """\
// leading comments are ignored
//# init --accounts A B

//# programmable --sender A --inputs 10 @B
//> 0: 0x2::object_basics::create(Input(0), Input(1));

//# stage-package pkg
module pkg::m {
}

//# view-object 1,0
"""


def test_parse_tasks_tracks_lines_commands_and_bodies() -> None:
    tasks = parse_tasks(SCRIPT)

    assert [task.verb for task in tasks] == ["init", "programmable", "stage-package", "view-object"]
    assert [task.number for task in tasks] == [0, 1, 2, 3]
    init, programmable, stage, view = tasks
    assert init.arguments == ["--accounts", "A", "B"]
    assert (init.start_line, init.stop_line) == (2, 2)
    assert programmable.commands == [(5, "0: 0x2::object_basics::create(Input(0), Input(1));")]
    assert programmable.header == "task 1 'programmable'. lines 4-5:"
    assert stage.body_text() == "module pkg::m {\n}"
    assert (stage.start_line, stage.stop_line) == (7, 9)
    assert view.arguments == ["1,0"]


def test_command_lines_need_an_enclosing_task() -> None:
    with pytest.raises(ScriptError, match="before any task"):
        parse_tasks("//> SplitCoins(Gas, [Input(0)])\n//# init\n")


def test_empty_task_line_is_rejected() -> None:
    with pytest.raises(ScriptError, match="Missing task verb"):
        parse_tasks("//#   \n")


def test_split_command_keeps_inner_quotes() -> None:
    assert split_command("programmable --inputs b\"abc\" 'b\"a b\"'") == [
        "programmable",
        "--inputs",
        'b"abc"',
        'b"a b"',
    ]
    with pytest.raises(ScriptError, match="Malformed task command on line 3"):
        split_command("programmable --inputs 'open", line=3)


@pytest.mark.parametrize(
    ("verb", "arguments", "expected"),
    [
        ("init", ["--accounts", "A", "B", "--simulator"], InitCommand(accounts=["A", "B"], simulator=True)),
        ("init", ["--max-gas", "100", "--gas-price", "2"], InitCommand(max_gas=100, gas_price=2)),
        (
            "programmable",
            ["--sender", "A", "--dev-inspect", "--inputs", "1u8", "@B"],
            ProgrammableCommand(sender="A", dev_inspect=True, inputs=["1u8", "@B"]),
        ),
        (
            "transfer-object",
            ["2,1", "--recipient", "B", "--gas-budget", "500"],
            TransferObjectCommand(handle=EnumeratedHandle(2, 1), recipient="B", gas_budget=500),
        ),
        ("view-object", ["0x6"], ViewObjectCommand(handle=KnownHandle(Address.from_int(6)))),
        ("create-checkpoint", [], CreateCheckpointCommand(count=1)),
        ("create-checkpoint", ["3"], CreateCheckpointCommand(count=3)),
        ("view-checkpoint", [], ViewCheckpointCommand()),
        ("advance-epoch", ["2"], AdvanceEpochCommand(count=2)),
        ("advance-clock", ["--duration-ns", "1000000"], AdvanceClockCommand(duration_ns=1_000_000)),
        ("request-gas", ["--address", "A", "--amount", "99"], RequestGasCommand(address="A", amount=99)),
        ("view-events", ["--task", "1", "--limit", "2"], ViewEventsCommand(task=1, limit=2)),
        (
            "run",
            ["0x2::object_basics::create", "--args", "10", "@B", "--sender", "A", "--summarize"],
            RunCommand(target="0x2::object_basics::create", args=["10", "@B"], sender="A", summarize=True),
        ),
        (
            "consensus-commit-prologue",
            ["--timestamp-ms", "5000"],
            ConsensusCommitPrologueCommand(timestamp_ms=5_000),
        ),
        ("publish", ["pkg", "--upgradeable"], PublishCommand(name="pkg", upgradeable=True)),
        (
            "upgrade",
            ["--package", "pkg", "--upgrade-capability", "2,1", "--sender", "A", "--policy", "additive"],
            UpgradeCommand(package="pkg", upgrade_capability=EnumeratedHandle(2, 1), sender="A", policy="additive"),
        ),
    ],
)
def test_parse_task_command(verb: str, arguments: list[str], expected: object) -> None:
    assert parse_task_command(verb, arguments) == expected


@pytest.mark.parametrize(
    ("verb", "arguments", "message"),
    [
        ("explode", [], "Unknown task verb 'explode'"),
        ("transfer-object", ["1,0"], "Invalid arguments for 'transfer-object'"),
        ("programmable", ["--gas-budget", "lots"], "Invalid arguments for 'programmable'"),
        ("advance-clock", [], "Invalid arguments for 'advance-clock'"),
        ("view-checkpoint", ["extra"], "Invalid arguments for 'view-checkpoint'"),
        ("view-object", ["1,x"], "Invalid arguments for 'view-object'"),
        ("upgrade", ["--package", "pkg", "--upgrade-capability", "2,1"], "Invalid arguments for 'upgrade'"),
        (
            "upgrade",
            ["--package", "pkg", "--upgrade-capability", "2,1", "--sender", "A", "--policy", "anything"],
            "Invalid arguments for 'upgrade'",
        ),
        ("consensus-commit-prologue", [], "Invalid arguments for 'consensus-commit-prologue'"),
        ("run", [], "Invalid arguments for 'run'"),
    ],
)
def test_bad_task_commands(verb: str, arguments: list[str], message: str) -> None:
    with pytest.raises(ScriptError, match=message):
        parse_task_command(verb, arguments)


@pytest.mark.parametrize(
    ("verb", "arguments", "attribute", "expected"),
    [
        ("programmable", ["--inputs", "1", "--sender", "A", "--inputs", "2"], "inputs", ["1", "2"]),
        ("init", ["--accounts", "A", "--simulator", "--accounts", "B"], "accounts", ["A", "B"]),
        ("stage-package", ["pkg", "--dependencies", "a", "--dependencies", "b"], "dependencies", ["a", "b"]),
        ("publish", ["pkg", "--dependencies", "a", "--sender", "A", "--dependencies", "b"], "dependencies", ["a", "b"]),
        ("run", ["0x2::m::f", "--args", "1", "--sender", "A", "--args", "2"], "args", ["1", "2"]),
    ],
)
def test_repeated_list_options_accumulate(verb: str, arguments: list[str], attribute: str, expected: list[str]) -> None:
    assert getattr(parse_task_command(verb, arguments), attribute) == expected


def test_list_option_defaults_are_not_shared_between_parses() -> None:
    parse_task_command("programmable", ["--inputs", "1"])
    assert parse_task_command("programmable", []).inputs == []
