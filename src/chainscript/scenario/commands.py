"""Verb records parsed from task arguments."""
from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Any, NoReturn

from chainscript.errors import ScriptError
from chainscript.ledger.framework import UPGRADE_POLICIES
from chainscript.types import Handle
from chainscript.values.parser import parse_u64
from chainscript.values.symbolic import parse_handle_literal


@dataclass(slots=True)
class InitCommand:
    accounts: list[str] = field(default_factory=list)
    simulator: bool = False
    max_gas: int | None = None
    gas_price: int | None = None


@dataclass(slots=True)
class ProgrammableCommand:
    sender: str | None = None
    gas_budget: int | None = None
    gas_price: int | None = None
    dev_inspect: bool = False
    inputs: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RunCommand:
    target: str
    args: list[str] = field(default_factory=list)
    sender: str | None = None
    gas_budget: int | None = None
    gas_price: int | None = None
    summarize: bool = False


@dataclass(slots=True)
class TransferObjectCommand:
    handle: Handle
    recipient: str
    sender: str | None = None
    gas_budget: int | None = None


@dataclass(slots=True)
class ViewObjectCommand:
    handle: Handle


@dataclass(slots=True)
class StagePackageCommand:
    name: str
    dependencies: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PublishCommand:
    name: str
    sender: str | None = None
    gas_budget: int | None = None
    dependencies: list[str] = field(default_factory=list)
    upgradeable: bool = False


@dataclass(slots=True)
class UpgradeCommand:
    package: str
    upgrade_capability: Handle
    sender: str
    gas_budget: int | None = None
    dependencies: list[str] = field(default_factory=list)
    policy: str = "compatible"


@dataclass(slots=True)
class SetAddressCommand:
    name: str
    value: str


@dataclass(slots=True)
class CreateCheckpointCommand:
    count: int = 1


@dataclass(slots=True)
class ViewCheckpointCommand:
    pass


@dataclass(slots=True)
class AdvanceEpochCommand:
    count: int = 1


@dataclass(slots=True)
class AdvanceClockCommand:
    duration_ns: int


@dataclass(slots=True)
class ConsensusCommitPrologueCommand:
    timestamp_ms: int


@dataclass(slots=True)
class RequestGasCommand:
    address: str
    amount: int


@dataclass(slots=True)
class ViewEventsCommand:
    task: int | None = None
    limit: int | None = None


TaskCommand = (
    InitCommand
    | ProgrammableCommand
    | RunCommand
    | TransferObjectCommand
    | ViewObjectCommand
    | StagePackageCommand
    | PublishCommand
    | UpgradeCommand
    | SetAddressCommand
    | CreateCheckpointCommand
    | ViewCheckpointCommand
    | AdvanceEpochCommand
    | AdvanceClockCommand
    | ConsensusCommitPrologueCommand
    | RequestGasCommand
    | ViewEventsCommand
)


class _ScriptArgumentParser(argparse.ArgumentParser):
    """Reports bad task arguments as ``ScriptError`` instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise ScriptError(f"Invalid arguments for '{self.prog}': {message}")

    def exit(self, status: int = 0, message: str | None = None) -> NoReturn:
        raise ScriptError(f"Invalid arguments for '{self.prog}': {message or 'unexpected exit'}")


def _u64(text: str) -> int:
    try:
        return parse_u64(text)
    except ScriptError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _handle(text: str) -> Handle:
    try:
        return parse_handle_literal(text)
    except ScriptError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _parser(verb: str) -> _ScriptArgumentParser:
    return _ScriptArgumentParser(prog=verb, add_help=False, allow_abbrev=False)


def _build_parsers() -> dict[str, tuple[_ScriptArgumentParser, type[Any]]]:
    parsers: dict[str, tuple[_ScriptArgumentParser, type[Any]]] = {}

    init = _parser("init")
    init.add_argument("--accounts", nargs="+", action="extend", default=[])
    init.add_argument("--simulator", action="store_true")
    init.add_argument("--max-gas", dest="max_gas", type=_u64)
    init.add_argument("--gas-price", dest="gas_price", type=_u64)
    parsers["init"] = (init, InitCommand)

    programmable = _parser("programmable")
    programmable.add_argument("--sender")
    programmable.add_argument("--gas-budget", dest="gas_budget", type=_u64)
    programmable.add_argument("--gas-price", dest="gas_price", type=_u64)
    programmable.add_argument("--dev-inspect", dest="dev_inspect", action="store_true")
    programmable.add_argument("--inputs", nargs="+", action="extend", default=[])
    parsers["programmable"] = (programmable, ProgrammableCommand)

    run = _parser("run")
    run.add_argument("target")
    run.add_argument("--args", nargs="+", action="extend", default=[])
    run.add_argument("--sender")
    run.add_argument("--gas-budget", dest="gas_budget", type=_u64)
    run.add_argument("--gas-price", dest="gas_price", type=_u64)
    run.add_argument("--summarize", action="store_true")
    parsers["run"] = (run, RunCommand)

    transfer = _parser("transfer-object")
    transfer.add_argument("handle", type=_handle)
    transfer.add_argument("--recipient", required=True)
    transfer.add_argument("--sender")
    transfer.add_argument("--gas-budget", dest="gas_budget", type=_u64)
    parsers["transfer-object"] = (transfer, TransferObjectCommand)

    view_object = _parser("view-object")
    view_object.add_argument("handle", type=_handle)
    parsers["view-object"] = (view_object, ViewObjectCommand)

    stage = _parser("stage-package")
    stage.add_argument("name")
    stage.add_argument("--dependencies", nargs="+", action="extend", default=[])
    parsers["stage-package"] = (stage, StagePackageCommand)

    publish = _parser("publish")
    publish.add_argument("name")
    publish.add_argument("--sender")
    publish.add_argument("--gas-budget", dest="gas_budget", type=_u64)
    publish.add_argument("--dependencies", nargs="+", action="extend", default=[])
    publish.add_argument("--upgradeable", action="store_true")
    parsers["publish"] = (publish, PublishCommand)

    upgrade = _parser("upgrade")
    upgrade.add_argument("--package", required=True)
    upgrade.add_argument("--upgrade-capability", dest="upgrade_capability", type=_handle, required=True)
    upgrade.add_argument("--sender", required=True)
    upgrade.add_argument("--gas-budget", dest="gas_budget", type=_u64)
    upgrade.add_argument("--dependencies", nargs="+", action="extend", default=[])
    upgrade.add_argument("--policy", choices=tuple(UPGRADE_POLICIES), default="compatible")
    parsers["upgrade"] = (upgrade, UpgradeCommand)

    set_address = _parser("set-address")
    set_address.add_argument("name")
    set_address.add_argument("value")
    parsers["set-address"] = (set_address, SetAddressCommand)

    create_checkpoint = _parser("create-checkpoint")
    create_checkpoint.add_argument("count", nargs="?", type=_u64, default=1)
    parsers["create-checkpoint"] = (create_checkpoint, CreateCheckpointCommand)

    parsers["view-checkpoint"] = (_parser("view-checkpoint"), ViewCheckpointCommand)

    advance_epoch = _parser("advance-epoch")
    advance_epoch.add_argument("count", nargs="?", type=_u64, default=1)
    parsers["advance-epoch"] = (advance_epoch, AdvanceEpochCommand)

    advance_clock = _parser("advance-clock")
    advance_clock.add_argument("--duration-ns", dest="duration_ns", type=_u64, required=True)
    parsers["advance-clock"] = (advance_clock, AdvanceClockCommand)

    prologue = _parser("consensus-commit-prologue")
    prologue.add_argument("--timestamp-ms", dest="timestamp_ms", type=_u64, required=True)
    parsers["consensus-commit-prologue"] = (prologue, ConsensusCommitPrologueCommand)

    request_gas = _parser("request-gas")
    request_gas.add_argument("--address", required=True)
    request_gas.add_argument("--amount", type=_u64, required=True)
    parsers["request-gas"] = (request_gas, RequestGasCommand)

    view_events = _parser("view-events")
    view_events.add_argument("--task", type=_u64)
    view_events.add_argument("--limit", type=_u64)
    parsers["view-events"] = (view_events, ViewEventsCommand)

    return parsers


_PARSERS = _build_parsers()
VERBS = tuple(sorted(_PARSERS))


def parse_task_command(verb: str, arguments: list[str]) -> TaskCommand:
    entry = _PARSERS.get(verb)
    if entry is None:
        raise ScriptError(f"Unknown task verb '{verb}'", expected=" | ".join(VERBS))
    parser, record = entry
    namespace = parser.parse_args(arguments)
    return record(**vars(namespace))


__all__ = [
    "AdvanceClockCommand",
    "AdvanceEpochCommand",
    "ConsensusCommitPrologueCommand",
    "CreateCheckpointCommand",
    "InitCommand",
    "ProgrammableCommand",
    "PublishCommand",
    "RequestGasCommand",
    "RunCommand",
    "SetAddressCommand",
    "StagePackageCommand",
    "TaskCommand",
    "TransferObjectCommand",
    "UpgradeCommand",
    "VERBS",
    "ViewCheckpointCommand",
    "ViewEventsCommand",
    "ViewObjectCommand",
    "parse_task_command",
]
