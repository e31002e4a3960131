"""Runs a parsed script task by task and renders the transcript.

Script defects and unresolvable references stop the scenario and are written
into the transcript as the last task's output. Execution failures, rejected
transactions and operations the backend does not support are ordinary task
output. Invariant violations and backend errors propagate to the caller.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any

from chainscript.adapter.factory import Account, Network, build_network
from chainscript.adapter.simulator import Simulator
from chainscript.bcs import encode_bytes, encode_uint
from chainscript.config import RunnerConfig
from chainscript.constants import BACKEND_SIMULATOR, DEFAULT_EVENT_QUERY_LIMIT
from chainscript.effects import DevInspectResults, Event, TransactionEffects
from chainscript.errors import (
    ExecutionFailure,
    OperationNotSupported,
    ResolutionError,
    ScriptError,
    TransactionRejected,
    UnboundStagedPackageError,
    UnknownObjectError,
)
from chainscript.ledger.framework import UPGRADE_POLICIES
from chainscript.ledger.genesis import CLOCK_OBJECT_ID, FRAMEWORK_PACKAGE_ID, STD_PACKAGE_ID, SYSTEM_STATE_OBJECT_ID
from chainscript.ledger.natives import ReceivingTicket, RuntimeObject
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
    SetAddressCommand,
    StagePackageCommand,
    TransferObjectCommand,
    UpgradeCommand,
    ViewCheckpointCommand,
    ViewEventsCommand,
    ViewObjectCommand,
    parse_task_command,
)
from chainscript.scenario.ptb import parse_ptb_command
from chainscript.scenario.state import StagedPackage
from chainscript.scenario.tasks import TaskInput, parse_tasks
from chainscript.transaction import (
    MoveCall,
    ProgrammableTransactionBuilder,
    Publish,
    Transaction,
    TransactionData,
    TransferObjects,
    Upgrade,
    package_digest,
)
from chainscript.types import (
    Address,
    AddressOwner,
    Digest,
    EnumeratedHandle,
    Handle,
    Immutable,
    KnownHandle,
    Object,
    ObjectID,
    ObjectOwner,
    Owner,
    Shared,
)
from chainscript.values.move_value import MoveAddress
from chainscript.values.resolver import into_argument, resolve_object
from chainscript.values.symbolic import ObjectValue, PlainValue, parse_symbolic_value

_log = logging.getLogger(__name__)

STANDARD_ADDRESSES = {"std": STD_PACKAGE_ID, "sui": FRAMEWORK_PACKAGE_ID}

_MODULE_HEADER = re.compile(r"^\s*module\s+(?:(?:0x[0-9a-fA-F]+|[A-Za-z_]\w*)::)?(?P<name>[A-Za-z_]\w*)", re.MULTILINE)


@dataclass(slots=True)
class ScenarioResult:
    tasks_processed: int
    output: str
    aborted: bool = False


def parse_module_sources(source: str) -> dict[str, str]:
    """Split a body into ``module`` blocks keyed by module name."""
    headers = list(_MODULE_HEADER.finditer(source))
    if not headers:
        if source.strip():
            raise ScriptError("Package body has no module declaration", text=source.strip().splitlines()[0])
        return {}
    modules: dict[str, str] = {}
    for position, header in enumerate(headers):
        end = headers[position + 1].start() if position + 1 < len(headers) else len(source)
        name = header.group("name")
        if name in modules:
            raise ScriptError(f"Duplicate module '{name}' in package body")
        modules[name] = source[header.start():end].strip()
    return modules


class TestScenario:
    """Scenario state: handle table, named addresses and staged packages."""

    __test__ = False

    def __init__(self, network: Network, config: RunnerConfig) -> None:
        self.network = network
        self.adapter = network.adapter
        self._config = config
        self._handles: dict[EnumeratedHandle, ObjectID] = {}
        self._handle_of: dict[ObjectID, EnumeratedHandle] = {}
        self._next_index: dict[int, int] = {}
        self._named: dict[str, Address] = dict(STANDARD_ADDRESSES)
        self._staged: dict[str, StagedPackage] = {}
        self._task_digests: dict[int, Digest] = {}
        self._last_digest: Digest | None = None

        for account in network.accounts.values():
            self._named[account.name] = account.address
            self._enumerate(0, account.gas_coin)
        self._enumerate(0, network.default_account.gas_coin)

    # -- scenario state ---------------------------------------------------

    def resolve_handle(self, handle: Handle) -> ObjectID | None:
        if isinstance(handle, KnownHandle):
            return handle.object_id
        return self._handles.get(handle)

    def lookup_staged_package(self, name: str) -> StagedPackage | None:
        return self._staged.get(name)

    def get_object(self, object_id: ObjectID) -> Object | None:
        return self.adapter.get_object(object_id)

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None:
        return self.adapter.get_object_by_key(object_id, version)

    def named_address(self, name: str) -> Address | None:
        return self._named.get(name)

    def handle_for(self, object_id: ObjectID) -> EnumeratedHandle | None:
        return self._handle_of.get(object_id)

    def _enumerate(self, task: int, object_id: ObjectID) -> EnumeratedHandle:
        existing = self._handle_of.get(object_id)
        if existing is not None:
            return existing
        index = self._next_index.get(task, 0)
        self._next_index[task] = index + 1
        handle = EnumeratedHandle(task=task, index=index)
        self._handles[handle] = object_id
        self._handle_of[object_id] = handle
        return handle

    # -- rendering --------------------------------------------------------

    def _account_name(self, address: Address) -> str | None:
        if address == self.network.default_account.address:
            return "default"
        for account in self.network.accounts.values():
            if account.address == address:
                return account.name
        return None

    def render_id(self, object_id: ObjectID) -> str:
        handle = self._handle_of.get(object_id)
        if handle is not None:
            return f"object({handle})"
        return object_id.short()

    def render_address(self, address: Address) -> str:
        name = self._account_name(address)
        if name is not None:
            return name
        return self.render_id(address)

    def _render_owner(self, owner: Owner) -> str:
        if isinstance(owner, AddressOwner):
            return f"Account Address ( {self.render_address(owner.address)} )"
        if isinstance(owner, ObjectOwner):
            return f"Object ID: ( {self.render_id(owner.address)} )"
        if isinstance(owner, Shared):
            return f"Shared( {owner.initial_shared_version} )"
        if isinstance(owner, Immutable):
            return "Immutable"
        raise ScriptError(f"Unrenderable owner {owner!r}")

    def render_value(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Address):
            return self.render_address(value)
        if isinstance(value, RuntimeObject):
            return self.render_id(value.object_id)
        if isinstance(value, ReceivingTicket):
            return f"receiving({self.render_id(value.object_ref.object_id)})"
        if isinstance(value, bytes):
            return "x\"" + value.hex() + "\""
        if isinstance(value, dict):
            inner = ", ".join(f"{key}: {self.render_value(item)}" for key, item in value.items())
            return "{" + inner + "}"
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(self.render_value(item) for item in value) + "]"
        return str(value)

    def _render_ids(self, object_ids: list[ObjectID]) -> str:
        def order(object_id: ObjectID) -> tuple[int, int, int, bytes]:
            handle = self._handle_of.get(object_id)
            if handle is None:
                return (1, 0, 0, object_id.value)
            return (0, handle.task, handle.index, b"")

        return ", ".join(self.render_id(object_id) for object_id in sorted(object_ids, key=order))

    def render_event(self, event: Event) -> str:
        return f"{event.type_tag} {self.render_value(event.fields)}"

    def _render_changes(self, label: str, object_ids: list[ObjectID], summarize: bool) -> str:
        if summarize:
            return f"{label}: {len(object_ids)}"
        return f"{label}: {self._render_ids(object_ids)}"

    def render_effects(
        self, effects: TransactionEffects, failure: ExecutionFailure | None, *, summarize: bool = False
    ) -> str:
        lines: list[str] = []
        if effects.created:
            lines.append(self._render_changes("created", [ref.object_id for ref, _owner in effects.created], summarize))
        if effects.mutated:
            lines.append(self._render_changes("mutated", [ref.object_id for ref, _owner in effects.mutated], summarize))
        if effects.deleted:
            lines.append(self._render_changes("deleted", [ref.object_id for ref in effects.deleted], summarize))
        if effects.events_digest is not None:
            events = self.adapter.query_tx_events_asc(effects.transaction_digest, DEFAULT_EVENT_QUERY_LIMIT)
            lines.extend(f"events: {self.render_event(event)}" for event in events)
        lines.append(f"gas summary: gas_used: {effects.gas_used}")
        if failure is not None:
            lines.append(f"Error: Transaction Effects Status: {failure.describe()}")
            lines.append(f"Execution Error: {failure.message}")
        return "\n".join(lines)

    def _render_dev_inspect(self, results: DevInspectResults) -> str:
        lines: list[str] = []
        effects = results.effects
        if effects.created:
            lines.append(f"created: {len(effects.created)} object(s)")
        if effects.mutated:
            lines.append("mutated: " + self._render_ids([ref.object_id for ref, _owner in effects.mutated]))
        lines.extend(f"events: {self.render_event(event)}" for event in results.events)
        for index, values in enumerate(results.results):
            if values:
                lines.append(f"Result({index}): {self.render_value(values)}")
        lines.append(f"gas summary: gas_used: {effects.gas_used}")
        if results.error is not None:
            lines.append(f"Error: Dev inspect failed: {results.error}")
        return "\n".join(lines)

    def describe_accounts(self) -> str | None:
        lines = [
            f"{name}: {self.render_id(account.gas_coin)}"
            for name, account in self.network.accounts.items()
        ]
        return "\n".join(lines) if lines else None

    # -- helpers ----------------------------------------------------------

    def _account(self, name: str | None) -> Account:
        if name is None:
            return self.network.default_account
        account = self.network.account(name)
        if account is None:
            raise ScriptError(f"Unbound account '{name}'")
        return account

    def _resolve_address(self, text: str) -> Address:
        account = self.network.account(text)
        if account is not None:
            return account.address
        named = self._named.get(text)
        if named is not None:
            return named
        value = parse_symbolic_value(text, self.named_address)
        if isinstance(value, PlainValue) and isinstance(value.value, MoveAddress):
            return value.value.value
        if isinstance(value, ObjectValue):
            return resolve_object(value.handle, value.version, self).id
        raise ScriptError("Expected an account, named address or address literal", text=text)

    def _gas_data(
        self,
        kind_builder: ProgrammableTransactionBuilder,
        sender: Account,
        gas_budget: int | None,
        gas_price: int | None,
    ) -> TransactionData:
        coin = self.adapter.get_object(sender.gas_coin)
        if coin is None:
            raise ScriptError(f"Account '{sender.name}' has no gas coin")
        budget = gas_budget if gas_budget is not None else min(self._config.gas_budget, self._config.max_gas)
        return TransactionData(
            kind=kind_builder.finish(),
            sender=sender.address,
            gas_payment=[coin.compute_object_reference()],
            gas_budget=budget,
            gas_price=gas_price if gas_price is not None else self._config.gas_price,
        )

    def _record(self, task: int, effects: TransactionEffects) -> None:
        for ref, _owner in effects.created:
            self._enumerate(task, ref.object_id)
        self._task_digests[task] = effects.transaction_digest
        self._last_digest = effects.transaction_digest

    def _execute(
        self, task: TaskInput, transaction: Transaction, *, summarize: bool = False
    ) -> tuple[str, TransactionEffects | None]:
        try:
            effects, failure = self.adapter.execute_txn(transaction)
        except TransactionRejected as exc:
            return f"Error: Transaction rejected: {exc}", None
        self._record(task.number, effects)
        return self.render_effects(effects, failure, summarize=summarize), effects

    def _bind_published(self, name: str, effects: TransactionEffects) -> None:
        for ref, _owner in effects.created:
            obj = self.adapter.get_object(ref.object_id)
            if obj is not None and obj.is_package:
                self._named[name] = obj.id

    # -- task dispatch ----------------------------------------------------

    def run_task(self, task: TaskInput) -> str | None:
        command = parse_task_command(task.verb, task.arguments)
        if task.commands and not isinstance(command, ProgrammableCommand):
            raise ScriptError(f"'{task.verb}' does not take programmable commands")
        try:
            if isinstance(command, InitCommand):
                raise ScriptError("'init' must be the first task")
            if isinstance(command, ProgrammableCommand):
                return self._programmable(task, command)
            if isinstance(command, RunCommand):
                return self._run(task, command)
            if isinstance(command, TransferObjectCommand):
                return self._transfer_object(task, command)
            if isinstance(command, ViewObjectCommand):
                return self._view_object(command)
            if isinstance(command, StagePackageCommand):
                return self._stage_package(task, command)
            if isinstance(command, PublishCommand):
                return self._publish(task, command)
            if isinstance(command, UpgradeCommand):
                return self._upgrade(task, command)
            if isinstance(command, SetAddressCommand):
                return self._set_address(command)
            if isinstance(command, CreateCheckpointCommand):
                return self._create_checkpoint(command)
            if isinstance(command, ViewCheckpointCommand):
                return self._view_checkpoint()
            if isinstance(command, AdvanceEpochCommand):
                return self._advance_epoch(command)
            if isinstance(command, AdvanceClockCommand):
                return self._advance_clock(task, command)
            if isinstance(command, ConsensusCommitPrologueCommand):
                return self._consensus_commit_prologue(task, command)
            if isinstance(command, RequestGasCommand):
                return self._request_gas(task, command)
            if isinstance(command, ViewEventsCommand):
                return self._view_events(command)
        except OperationNotSupported as exc:
            return f"Error: {exc}"
        raise ScriptError(f"Unhandled task verb '{task.verb}'")

    def _programmable(self, task: TaskInput, command: ProgrammableCommand) -> str:
        sender = self._account(command.sender)
        builder = ProgrammableTransactionBuilder()
        for raw in command.inputs:
            into_argument(parse_symbolic_value(raw, self.named_address), builder, self)
        for _line, text in task.commands:
            builder.command(
                parse_ptb_command(text, mapping=self.named_address, staged=self.lookup_staged_package)
            )
        if command.dev_inspect:
            try:
                results = self.adapter.dev_inspect_transaction_block(
                    sender.address, builder.finish(), command.gas_price
                )
            except TransactionRejected as exc:
                return f"Error: Transaction rejected: {exc}"
            return self._render_dev_inspect(results)
        data = self._gas_data(builder, sender, command.gas_budget, command.gas_price)
        output, _effects = self._execute(task, Transaction(data))
        return output

    def _run(self, task: TaskInput, command: RunCommand) -> str:
        call = parse_ptb_command(f"{command.target}()", mapping=self.named_address, staged=self.lookup_staged_package)
        if not isinstance(call, MoveCall):
            raise ScriptError("Expected a function to call", text=command.target, expected="address::module::function")
        sender = self._account(command.sender)
        builder = ProgrammableTransactionBuilder()
        arguments = tuple(
            into_argument(parse_symbolic_value(raw, self.named_address), builder, self) for raw in command.args
        )
        builder.command(replace(call, arguments=arguments))
        data = self._gas_data(builder, sender, command.gas_budget, command.gas_price)
        output, _effects = self._execute(task, Transaction(data), summarize=command.summarize)
        return output

    def _transfer_object(self, task: TaskInput, command: TransferObjectCommand) -> str:
        sender = self._account(command.sender)
        recipient = self._resolve_address(command.recipient)
        builder = ProgrammableTransactionBuilder()
        obj = into_argument(ObjectValue(command.handle), builder, self)
        builder.command(TransferObjects((obj,), builder.pure(recipient.value)))
        data = self._gas_data(builder, sender, command.gas_budget, None)
        output, _effects = self._execute(task, Transaction(data))
        return output

    def _view_object(self, command: ViewObjectCommand) -> str:
        object_id = self.resolve_handle(command.handle)
        if object_id is None:
            raise UnknownObjectError(command.handle)
        obj = self.adapter.get_object(object_id)
        if obj is None:
            return f"No object at id {self.render_id(object_id)}"
        if obj.is_package:
            modules = ", ".join(sorted(obj.fields.get("modules", {})))
            return f"{self.render_id(object_id)}::{{{modules}}}"
        lines = [
            f"Owner: {self._render_owner(obj.owner)}",
            f"Version: {obj.version}",
            f"Contents: {obj.type_tag} {self.render_value({'id': object_id, **obj.fields})}",
        ]
        return "\n".join(lines)

    def _stage_package(self, task: TaskInput, command: StagePackageCommand) -> None:
        if command.name in self._staged or command.name in self._named:
            raise ScriptError(f"Package name '{command.name}' is already bound")
        modules = parse_module_sources(task.body_text())
        if not modules:
            raise ScriptError(f"'stage-package {command.name}' needs module sources in its body")
        dependencies = [self._resolve_address(name) for name in command.dependencies]
        self._staged[command.name] = StagedPackage(command.name, modules, dependencies)
        _log.debug("staged package %s with modules %s", command.name, sorted(modules))
        return None

    def _publish(self, task: TaskInput, command: PublishCommand) -> str:
        if command.name in self._named:
            raise ScriptError(f"Package name '{command.name}' is already bound")
        staged = self._staged.get(command.name)
        body = parse_module_sources(task.body_text())
        if staged is None:
            if not body:
                raise UnboundStagedPackageError(command.name)
            staged = StagedPackage(command.name, body, [])
        elif body:
            raise ScriptError(f"Package '{command.name}' is staged; publish it without a body")
        dependencies = [*staged.dependencies, *(self._resolve_address(name) for name in command.dependencies)]
        sender = self._account(command.sender)
        builder = ProgrammableTransactionBuilder()
        cap = builder.command(Publish(tuple(sorted(staged.modules.items())), tuple(dict.fromkeys(dependencies))))
        if command.upgradeable:
            builder.command(TransferObjects((cap,), builder.pure(sender.address.value)))
        else:
            builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "package", "make_immutable", (cap,)))
        data = self._gas_data(builder, sender, command.gas_budget, None)
        output, effects = self._execute(task, Transaction(data))
        if effects is not None and effects.succeeded:
            self._bind_published(command.name, effects)
            self._staged.pop(command.name, None)
        return output

    def _upgrade(self, task: TaskInput, command: UpgradeCommand) -> str:
        package_id = self._named.get(command.package)
        if package_id is None or command.package in STANDARD_ADDRESSES:
            raise ScriptError(f"Package '{command.package}' has not been published")
        modules = parse_module_sources(task.body_text())
        if not modules:
            raise ScriptError(f"'upgrade --package {command.package}' needs module sources in its body")
        module_items = tuple(sorted(modules.items()))
        dependencies = tuple(dict.fromkeys(self._resolve_address(name) for name in command.dependencies))
        sender = self._account(command.sender)
        builder = ProgrammableTransactionBuilder()
        cap = into_argument(ObjectValue(command.upgrade_capability), builder, self)
        policy = builder.pure(encode_uint(UPGRADE_POLICIES[command.policy], 64))
        digest = builder.pure(encode_bytes(package_digest(module_items, dependencies).value))
        ticket = builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "package", "authorize_upgrade", (cap, policy, digest)))
        receipt = builder.command(Upgrade(module_items, dependencies, package_id, ticket))
        builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "package", "commit_upgrade", (cap, receipt)))
        data = self._gas_data(builder, sender, command.gas_budget, None)
        output, effects = self._execute(task, Transaction(data))
        if effects is not None and effects.succeeded:
            self._bind_published(command.package, effects)
        return output

    def _set_address(self, command: SetAddressCommand) -> None:
        value = parse_symbolic_value(command.value, self.named_address)
        if isinstance(value, ObjectValue):
            address = resolve_object(value.handle, value.version, self).id
        elif isinstance(value, PlainValue) and isinstance(value.value, MoveAddress):
            address = value.value.value
        else:
            raise ScriptError("set-address expects an address or object value", text=command.value)
        self._named[command.name] = address
        return None

    def _create_checkpoint(self, command: CreateCheckpointCommand) -> str:
        lines = []
        for _ in range(command.count):
            checkpoint = self.adapter.create_checkpoint()
            lines.append(f"Checkpoint created: {checkpoint.sequence_number}")
        return "\n".join(lines)

    def _view_checkpoint(self) -> str:
        adapter = self.adapter
        if not isinstance(adapter, Simulator):
            raise OperationNotSupported("view_checkpoint", getattr(adapter, "mode", "unknown"))
        checkpoint = adapter.checkpoints.latest()
        if checkpoint is None:
            return "No checkpoint"
        summary = checkpoint.summary
        return (
            f"CheckpointSummary {{ epoch: {summary.epoch}, seq: {summary.sequence_number}, "
            f"transactions: {len(checkpoint.contents)}, "
            f"network_total_transactions: {summary.network_total_transactions}, "
            f"timestamp_ms: {summary.timestamp_ms}, end_of_epoch: {str(summary.end_of_epoch).lower()} }}"
        )

    def _advance_epoch(self, command: AdvanceEpochCommand) -> str:
        for _ in range(command.count):
            self.adapter.advance_epoch()
        state = self.adapter.get_object(SYSTEM_STATE_OBJECT_ID)
        epoch = state.fields["epoch"] if state is not None else "?"
        return f"Epoch advanced: {epoch}"

    def _advance_clock(self, task: TaskInput, command: AdvanceClockCommand) -> None:
        effects = self.adapter.advance_clock(timedelta(microseconds=command.duration_ns // 1_000))
        self._record(task.number, effects)
        return None

    def _consensus_commit_prologue(self, task: TaskInput, command: ConsensusCommitPrologueCommand) -> None:
        clock = self.adapter.get_object(CLOCK_OBJECT_ID)
        if clock is not None and command.timestamp_ms < int(clock.fields["timestamp_ms"]):
            raise ScriptError(
                f"Timestamp {command.timestamp_ms} is earlier than the clock",
                expected=f"at least {clock.fields['timestamp_ms']}",
            )
        effects = self.adapter.consensus_commit_prologue(command.timestamp_ms)
        self._record(task.number, effects)
        return None

    def _request_gas(self, task: TaskInput, command: RequestGasCommand) -> str:
        address = self._resolve_address(command.address)
        try:
            effects = self.adapter.request_gas(address, command.amount)
        except TransactionRejected as exc:
            return f"Error: Transaction rejected: {exc}"
        self._record(task.number, effects)
        return self.render_effects(effects, None)

    def _view_events(self, command: ViewEventsCommand) -> str:
        if command.task is None:
            digest = self._last_digest
            if digest is None:
                raise ScriptError("No transaction has been executed yet")
        else:
            digest = self._task_digests.get(command.task)
            if digest is None:
                raise ScriptError(f"Task {command.task} executed no transaction")
        limit = command.limit if command.limit is not None else DEFAULT_EVENT_QUERY_LIMIT
        events = self.adapter.query_tx_events_asc(digest, limit)
        if not events:
            return "No events"
        return "\n".join(f"events: {self.render_event(event)}" for event in events)


def _block(task: TaskInput, output: str) -> str:
    return f"{task.header}\n{output}"


def build_scenario(tasks: list[TaskInput], config: RunnerConfig) -> TestScenario:
    init = InitCommand()
    if tasks and tasks[0].verb == "init":
        parsed = parse_task_command(tasks[0].verb, tasks[0].arguments)
        assert isinstance(parsed, InitCommand)
        init = parsed
    backend = BACKEND_SIMULATOR if init.simulator else config.backend
    effective = config.with_overrides(
        backend=backend,
        max_gas=init.max_gas,
        gas_price=init.gas_price,
        accounts=init.accounts or None,
    )
    network = build_network(
        effective.backend,
        account_names=effective.accounts,
        seed=effective.seed,
        max_gas=effective.max_gas,
        gas_price=effective.gas_price,
        account_balance=effective.account_balance,
    )
    return TestScenario(network, effective)


def run_script(source: str, config: RunnerConfig) -> ScenarioResult:
    tasks = parse_tasks(source)
    blocks: list[str] = []
    processed = 0
    aborted = False
    try:
        scenario = build_scenario(tasks, config)
    except ValueError as exc:
        if not tasks:
            raise
        _log.info("scenario setup failed: %s", exc)
        return ScenarioResult(1, f"processed 1 tasks\n\n{_block(tasks[0], f'Error: {exc}')}\n", aborted=True)

    for task in tasks:
        processed += 1
        try:
            if task.verb == "init" and task.number == 0:
                output = scenario.describe_accounts()
            else:
                output = scenario.run_task(task)
        except (ScriptError, ResolutionError) as exc:
            _log.info("stopping scenario at task %d: %s", task.number, exc)
            blocks.append(_block(task, f"Error: {exc}"))
            aborted = True
            break
        if output:
            blocks.append(_block(task, output))
    text = "\n\n".join([f"processed {processed} tasks", *blocks]) + "\n"
    return ScenarioResult(tasks_processed=processed, output=text, aborted=aborted)


__all__ = ["STANDARD_ADDRESSES", "ScenarioResult", "TestScenario", "build_scenario", "parse_module_sources", "run_script"]
