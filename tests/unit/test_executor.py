from __future__ import annotations

import pytest

from chainscript.bcs import encode_bytes, encode_uint
from chainscript.constants import (
    BASE_COMPUTATION_UNITS,
    COMMAND_COMPUTATION_UNITS,
    DEFAULT_ACCOUNT_BALANCE,
    DEFAULT_GAS_BUDGET,
    DEFAULT_GAS_PRICE,
    DEFAULT_MAX_GAS,
)
from chainscript.errors import TransactionRejected
from chainscript.ledger.executor import (
    DELETED_DIGEST,
    ExecutionEnvironment,
    ExecutionOutcome,
    execute_transaction,
)
from chainscript.ledger.framework import E_TOO_PERMISSIVE, OBJECT_TYPE, UPGRADE_POLICIES, framework_natives
from chainscript.ledger.genesis import FRAMEWORK_PACKAGE_ID, UPGRADE_CAP_TYPE, build_genesis, genesis_coin_id
from chainscript.ledger.store import InMemoryStore
from chainscript.transaction import (
    Argument,
    GasCoin,
    ImmOrOwnedObject,
    Input,
    MoveCall,
    NestedResult,
    ObjectInput,
    ProgrammableTransaction,
    ProgrammableTransactionBuilder,
    Publish,
    Receiving,
    Result,
    SharedObject,
    SplitCoins,
    Transaction,
    TransactionData,
    TransferObjects,
    Upgrade,
    package_digest,
)
from chainscript.types import Address, AddressOwner, Immutable, Object, ObjectID, ObjectRef, Shared

SENDER = Address.from_int(0xA11CE)
OTHER = Address.from_int(0xB0B)

_ONE_COMMAND_COST = DEFAULT_GAS_PRICE * (BASE_COMPUTATION_UNITS + COMMAND_COMPUTATION_UNITS)


def _store(balance: int = DEFAULT_ACCOUNT_BALANCE) -> InMemoryStore:
    return InMemoryStore(build_genesis([(SENDER, balance), (OTHER, balance)]))


def _env() -> ExecutionEnvironment:
    return ExecutionEnvironment(epoch=0, timestamp_ms=0, natives=framework_natives(), max_gas=DEFAULT_MAX_GAS)


def _gas_ref(store: InMemoryStore, owner: Address = SENDER) -> ObjectRef:
    index = 0 if owner == SENDER else 1
    coin = store.get_object(genesis_coin_id(owner, index))
    assert coin is not None
    return coin.compute_object_reference()


def _transaction(
    store: InMemoryStore,
    kind: ProgrammableTransaction,
    *,
    sender: Address = SENDER,
    gas_budget: int = DEFAULT_GAS_BUDGET,
    gas_payment: list[ObjectRef] | None = None,
) -> Transaction:
    return Transaction(
        TransactionData(
            kind=kind,
            sender=sender,
            gas_payment=gas_payment if gas_payment is not None else [_gas_ref(store, sender)],
            gas_budget=gas_budget,
            gas_price=DEFAULT_GAS_PRICE,
        )
    )


def _call(builder: ProgrammableTransactionBuilder, function: str, *arguments: Argument) -> Argument:
    return builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "object_basics", function, tuple(arguments)))


def _u64(builder: ProgrammableTransactionBuilder, value: int) -> Argument:
    return builder.pure(encode_uint(value, 64))


def _run(store: InMemoryStore, kind: ProgrammableTransaction, **kwargs: object) -> ExecutionOutcome:
    outcome = execute_transaction(store, _transaction(store, kind, **kwargs), _env())  # type: ignore[arg-type]
    store.apply(outcome.write_set)
    return outcome


def _create(store: InMemoryStore, value: int, recipient: Address) -> ObjectID:
    builder = ProgrammableTransactionBuilder()
    _call(builder, "create", _u64(builder, value), builder.pure(recipient.value))
    outcome = _run(store, builder.finish())
    assert outcome.failure is None
    return outcome.effects.created[0][0].object_id


def _latest(store: InMemoryStore, object_id: ObjectID) -> Object:
    obj = store.get_object(object_id)
    assert obj is not None
    return obj


def test_create_commits_a_new_object_and_charges_gas() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    _call(builder, "create", _u64(builder, 10), builder.pure(OTHER.value))

    outcome = execute_transaction(store, _transaction(store, builder.finish()), _env())
    effects = outcome.effects

    assert outcome.failure is None
    assert effects.lamport_version == 2
    assert effects.gas_used == _ONE_COMMAND_COST
    [(ref, owner)] = effects.created
    assert owner == AddressOwner(OTHER)
    assert ref.version == 2
    assert [item[0].object_id for item in effects.mutated] == [genesis_coin_id(SENDER, 0)]
    # Nothing is written until the caller applies the write set.
    assert _latest(store, genesis_coin_id(SENDER, 0)).version == 1

    store.apply(outcome.write_set)
    coin = _latest(store, genesis_coin_id(SENDER, 0))
    assert coin.version == 2
    assert coin.fields["balance"] == DEFAULT_ACCOUNT_BALANCE - _ONE_COMMAND_COST
    assert _latest(store, ref.object_id).fields == {"value": 10}


def test_abort_keeps_gas_charge_and_bumps_mutable_inputs_only() -> None:
    store = _store()
    object_id = _create(store, 10, SENDER)
    before = _latest(store, object_id)

    builder = ProgrammableTransactionBuilder()
    obj = builder.obj(ImmOrOwnedObject(before.compute_object_reference()))
    _call(builder, "set_value", obj, _u64(builder, 99))
    _call(builder, "abort_with", _u64(builder, 7))
    outcome = _run(store, builder.finish())

    assert outcome.failure is not None
    assert outcome.failure.kind == "MoveAbort"
    assert outcome.failure.command == 1
    assert outcome.failure.message == "aborted in object_basics with code 7"
    assert outcome.effects.created == []
    assert outcome.effects.gas_used == DEFAULT_GAS_PRICE * (BASE_COMPUTATION_UNITS + 2 * COMMAND_COMPUTATION_UNITS)
    after = _latest(store, object_id)
    assert after.version == outcome.effects.lamport_version
    assert after.version > before.version
    assert after.fields == {"value": 10}


def test_budget_below_cost_fails_with_insufficient_gas() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    _call(builder, "create", _u64(builder, 1), builder.pure(SENDER.value))

    outcome = _run(store, builder.finish(), gas_budget=1_000)

    assert outcome.failure is not None
    assert outcome.failure.kind == "InsufficientGas"
    assert outcome.effects.created == []
    assert outcome.effects.gas_used == 1_000
    assert _latest(store, genesis_coin_id(SENDER, 0)).fields["balance"] == DEFAULT_ACCOUNT_BALANCE - 1_000


def test_object_left_without_owner_fails_the_transaction() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    _call(builder, "new", _u64(builder, 1))

    outcome = _run(store, builder.finish())

    assert outcome.failure is not None
    assert outcome.failure.kind == "UnusedValueWithoutDrop"
    assert outcome.failure.command is None


def test_shared_object_can_be_mutated_but_not_transferred() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    created = _call(builder, "new", _u64(builder, 1))
    _call(builder, "share", created)
    shared_id = _run(store, builder.finish()).effects.created[0][0].object_id
    shared = _latest(store, shared_id)
    assert shared.owner == Shared(2)

    builder = ProgrammableTransactionBuilder()
    arg = builder.obj(SharedObject(shared_id, 2, mutable=True))
    _call(builder, "set_value", arg, _u64(builder, 5))
    outcome = _run(store, builder.finish())
    assert outcome.failure is None
    assert [ref.object_id for ref in outcome.effects.shared_objects] == [shared_id]
    assert _latest(store, shared_id).fields["value"] == 5

    builder = ProgrammableTransactionBuilder()
    arg = builder.obj(SharedObject(shared_id, 2, mutable=True))
    _call(builder, "transfer", arg, builder.pure(OTHER.value))
    outcome = _run(store, builder.finish())
    assert outcome.failure is not None
    assert outcome.failure.kind == "SharedObjectOperationNotAllowed"
    assert _latest(store, shared_id).owner == Shared(2)


def test_freeze_then_immutable_object_cannot_be_mutated() -> None:
    store = _store()
    object_id = _create(store, 3, SENDER)

    builder = ProgrammableTransactionBuilder()
    _call(builder, "freeze_object", builder.obj(ImmOrOwnedObject(_latest(store, object_id).compute_object_reference())))
    assert _run(store, builder.finish()).failure is None
    assert _latest(store, object_id).owner == Immutable()

    builder = ProgrammableTransactionBuilder()
    frozen = builder.obj(ImmOrOwnedObject(_latest(store, object_id).compute_object_reference()))
    _call(builder, "set_value", frozen, _u64(builder, 4))
    outcome = _run(store, builder.finish())
    assert outcome.failure is not None
    assert outcome.failure.kind == "InvalidObjectMutation"


def test_split_coins_from_gas_and_transfer_the_parts() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    builder.command(SplitCoins(GasCoin(), (_u64(builder, 100), _u64(builder, 200))))
    builder.command(TransferObjects((NestedResult(0, 0), NestedResult(0, 1)), builder.pure(OTHER.value)))

    outcome = _run(store, builder.finish())

    assert outcome.failure is None
    balances = sorted(_latest(store, ref.object_id).fields["balance"] for ref, _owner in outcome.effects.created)
    assert balances == [100, 200]
    assert all(owner == AddressOwner(OTHER) for _ref, owner in outcome.effects.created)
    spent = 300 + DEFAULT_GAS_PRICE * (BASE_COMPUTATION_UNITS + 2 * COMMAND_COMPUTATION_UNITS)
    assert _latest(store, genesis_coin_id(SENDER, 0)).fields["balance"] == DEFAULT_ACCOUNT_BALANCE - spent


def test_multi_value_result_cannot_be_used_whole() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    builder.command(SplitCoins(GasCoin(), (_u64(builder, 100), _u64(builder, 200))))
    builder.command(TransferObjects((Result(0),), builder.pure(OTHER.value)))

    outcome = _run(store, builder.finish())

    assert outcome.failure is not None
    assert outcome.failure.kind == "InvalidResultArity"
    assert outcome.failure.command == 1


def test_delete_reports_a_tombstone() -> None:
    store = _store()
    object_id = _create(store, 3, SENDER)

    builder = ProgrammableTransactionBuilder()
    _call(builder, "delete", builder.obj(ImmOrOwnedObject(_latest(store, object_id).compute_object_reference())))
    outcome = _run(store, builder.finish())

    assert outcome.failure is None
    [tombstone] = outcome.effects.deleted
    assert tombstone.object_id == object_id
    assert tombstone.digest == DELETED_DIGEST
    assert store.get_object(object_id) is None


def test_extra_gas_coins_are_smashed_into_the_first() -> None:
    store = InMemoryStore(build_genesis([(SENDER, 1_000_000_000), (SENDER, 2_000_000_000)]))
    primary = _latest(store, genesis_coin_id(SENDER, 0))
    extra = _latest(store, genesis_coin_id(SENDER, 1))
    builder = ProgrammableTransactionBuilder()
    _call(builder, "emit", _u64(builder, 1))

    outcome = _run(
        store,
        builder.finish(),
        gas_budget=DEFAULT_GAS_BUDGET // 10,
        gas_payment=[primary.compute_object_reference(), extra.compute_object_reference()],
    )

    assert outcome.failure is None
    assert [ref.object_id for ref in outcome.effects.deleted] == [extra.id]
    assert store.get_object(extra.id) is None
    assert _latest(store, primary.id).fields["balance"] == 3_000_000_000 - _ONE_COMMAND_COST


def test_events_are_recorded_with_the_transaction() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    _call(builder, "emit", _u64(builder, 42))

    outcome = _run(store, builder.finish())
    events = store.get_transaction_events(outcome.effects.transaction_digest)

    assert outcome.effects.events_digest is not None
    assert events is not None
    [event] = events
    assert event.type_tag == "0x2::object_basics::NewValueEvent"
    assert event.fields == {"new_value": 42}
    assert event.sender == SENDER


def test_receive_takes_an_object_sent_to_another_object() -> None:
    store = _store()
    parent_id = _create(store, 1, SENDER)
    child_id = _create(store, 2, parent_id)

    builder = ProgrammableTransactionBuilder()
    parent = builder.obj(ImmOrOwnedObject(_latest(store, parent_id).compute_object_reference()))
    ticket = builder.obj(Receiving(_latest(store, child_id).compute_object_reference()))
    received = _call(builder, "receive", parent, ticket)
    builder.command(TransferObjects((received,), builder.pure(SENDER.value)))
    outcome = _run(store, builder.finish())

    assert outcome.failure is None
    assert _latest(store, child_id).owner == AddressOwner(SENDER)


def test_dev_inspect_skips_ownership_and_gas_checks() -> None:
    store = _store()
    object_id = _create(store, 10, OTHER)
    builder = ProgrammableTransactionBuilder()
    obj = builder.obj(ImmOrOwnedObject(_latest(store, object_id).compute_object_reference()))
    _call(builder, "value", obj)
    transaction = Transaction(TransactionData(kind=builder.finish(), sender=SENDER, gas_price=DEFAULT_GAS_PRICE))

    outcome = execute_transaction(store, transaction, _env(), dev_inspect=True)

    assert outcome.failure is None
    assert outcome.results == [[10]]


def _rejection(store: InMemoryStore, transaction: Transaction) -> str:
    with pytest.raises(TransactionRejected) as excinfo:
        execute_transaction(store, transaction, _env())
    return excinfo.value.reason


def test_input_checks_reject_before_execution() -> None:
    store = _store()
    foreign_id = _create(store, 1, OTHER)
    foreign_ref = _latest(store, foreign_id).compute_object_reference()

    builder = ProgrammableTransactionBuilder()
    _call(builder, "value", builder.obj(ImmOrOwnedObject(foreign_ref)))
    assert _rejection(store, _transaction(store, builder.finish())) == "IncorrectUserSignature"

    empty = ProgrammableTransactionBuilder().finish()
    assert _rejection(store, _transaction(store, empty, gas_budget=DEFAULT_MAX_GAS + 1)) == "GasBudgetTooHigh"
    assert _rejection(store, _transaction(store, empty, gas_payment=[])) == "MissingGasPayment"
    other_coin = _gas_ref(store, OTHER)
    assert _rejection(store, _transaction(store, empty, gas_payment=[other_coin])) == "InvalidGasObject"

    duplicate = ProgrammableTransaction(
        inputs=[ObjectInput(ImmOrOwnedObject(foreign_ref)), ObjectInput(ImmOrOwnedObject(foreign_ref))],
        commands=[],
    )
    assert _rejection(store, _transaction(store, duplicate, sender=OTHER)) == "DuplicateObjectRef"


def test_stale_reference_is_rejected() -> None:
    store = _store()
    object_id = _create(store, 1, SENDER)
    stale = _latest(store, object_id).compute_object_reference()

    builder = ProgrammableTransactionBuilder()
    _call(builder, "set_value", builder.obj(ImmOrOwnedObject(stale)), _u64(builder, 2))
    assert _run(store, builder.finish()).failure is None

    builder = ProgrammableTransactionBuilder()
    _call(builder, "set_value", builder.obj(ImmOrOwnedObject(stale)), Input(0))
    assert _rejection(store, _transaction(store, builder.finish())) == "ObjectVersionUnavailableForConsumption"


def test_low_gas_balance_is_rejected() -> None:
    store = _store(balance=10)
    assert _rejection(store, _transaction(store, ProgrammableTransactionBuilder().finish())) == "GasBalanceTooLow"


def test_created_object_type_comes_from_the_native() -> None:
    store = _store()
    object_id = _create(store, 8, SENDER)
    assert _latest(store, object_id).type_tag == OBJECT_TYPE


_MODULES = (("m", "module p::m {\n}"),)


def _package_call(builder: ProgrammableTransactionBuilder, function: str, *arguments: Argument) -> Argument:
    return builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "package", function, tuple(arguments)))


def _publish_upgradeable(store: InMemoryStore) -> tuple[ObjectID, ObjectID]:
    builder = ProgrammableTransactionBuilder()
    cap = builder.command(Publish(_MODULES))
    builder.command(TransferObjects((cap,), builder.pure(SENDER.value)))
    outcome = _run(store, builder.finish())
    assert outcome.failure is None
    created = [ref.object_id for ref, _owner in outcome.effects.created]
    [cap_id] = [object_id for object_id in created if _latest(store, object_id).type_tag == UPGRADE_CAP_TYPE]
    [package_id] = [object_id for object_id in created if object_id != cap_id]
    return package_id, cap_id


def _upgrade_kind(
    store: InMemoryStore,
    cap_id: ObjectID,
    package_id: ObjectID,
    modules: tuple[tuple[str, str], ...],
    *,
    policy: int = UPGRADE_POLICIES["compatible"],
    authorized_modules: tuple[tuple[str, str], ...] | None = None,
) -> ProgrammableTransaction:
    builder = ProgrammableTransactionBuilder()
    cap = builder.obj(ImmOrOwnedObject(_latest(store, cap_id).compute_object_reference()))
    digest = package_digest(authorized_modules if authorized_modules is not None else modules, ())
    ticket = _package_call(
        builder, "authorize_upgrade", cap, _u64(builder, policy), builder.pure(encode_bytes(digest.value))
    )
    receipt = builder.command(Upgrade(modules, (), package_id, ticket))
    _package_call(builder, "commit_upgrade", cap, receipt)
    return builder.finish()


def test_publish_hands_back_an_upgrade_cap_that_must_be_used() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    builder.command(Publish(_MODULES))

    outcome = _run(store, builder.finish())

    assert outcome.failure is not None
    assert outcome.failure.kind == "UnusedValueWithoutDrop"
    assert outcome.failure.command is None


def test_make_immutable_leaves_only_the_package() -> None:
    store = _store()
    builder = ProgrammableTransactionBuilder()
    cap = builder.command(Publish(_MODULES))
    _package_call(builder, "make_immutable", cap)

    outcome = _run(store, builder.finish())

    assert outcome.failure is None
    [(ref, owner)] = outcome.effects.created
    assert owner == Immutable()
    assert _latest(store, ref.object_id).fields["modules"] == {"m": "module p::m {\n}"}
    assert outcome.effects.deleted == []


def test_upgrade_publishes_a_new_version_and_advances_the_cap() -> None:
    store = _store()
    package_id, cap_id = _publish_upgradeable(store)
    upgraded_modules = (*_MODULES, ("n", "module p::n {\n}"))

    outcome = _run(store, _upgrade_kind(store, cap_id, package_id, upgraded_modules))

    assert outcome.failure is None
    [(ref, owner)] = outcome.effects.created
    assert owner == Immutable()
    upgraded = _latest(store, ref.object_id)
    assert sorted(upgraded.fields["modules"]) == ["m", "n"]
    assert upgraded.fields["package_version"] == 2
    cap = _latest(store, cap_id)
    assert cap.fields["package"] == ref.object_id
    assert cap.fields["version"] == 2
    # The original package stays where it was.
    assert sorted(_latest(store, package_id).fields["modules"]) == ["m"]


def test_upgrade_must_match_the_authorized_digest() -> None:
    store = _store()
    package_id, cap_id = _publish_upgradeable(store)
    changed = (("m", "module p::m {\n    // changed\n}"),)

    outcome = _run(store, _upgrade_kind(store, cap_id, package_id, changed, authorized_modules=_MODULES))

    assert outcome.failure is not None
    assert outcome.failure.kind == "PackageUpgradeError"
    assert _latest(store, cap_id).fields["package"] == package_id


@pytest.mark.parametrize(
    ("policy", "modules", "message"),
    [
        ("compatible", (("n", "module p::n {\n}"),), "removes module(s) m"),
        ("additive", (("m", "module p::m {\n    // changed\n}"),), "forbids changing module(s) m"),
        ("dep_only", (*_MODULES, ("n", "module p::n {\n}")), "forbids adding module(s) n"),
    ],
)
def test_upgrade_policies_limit_what_may_change(
    policy: str, modules: tuple[tuple[str, str], ...], message: str
) -> None:
    store = _store()
    package_id, cap_id = _publish_upgradeable(store)

    outcome = _run(store, _upgrade_kind(store, cap_id, package_id, modules, policy=UPGRADE_POLICIES[policy]))

    assert outcome.failure is not None
    assert outcome.failure.kind == "PackageUpgradeError"
    assert message in outcome.failure.message


def test_restricted_cap_rejects_a_more_permissive_upgrade() -> None:
    store = _store()
    package_id, cap_id = _publish_upgradeable(store)
    builder = ProgrammableTransactionBuilder()
    cap = builder.obj(ImmOrOwnedObject(_latest(store, cap_id).compute_object_reference()))
    _package_call(builder, "only_additive_upgrades", cap)
    assert _run(store, builder.finish()).failure is None
    assert _latest(store, cap_id).fields["policy"] == UPGRADE_POLICIES["additive"]

    outcome = _run(store, _upgrade_kind(store, cap_id, package_id, _MODULES))

    assert outcome.failure is not None
    assert outcome.failure.kind == "MoveAbort"
    assert outcome.failure.message == f"aborted in package with code {E_TOO_PERMISSIVE}"


def test_an_unspent_upgrade_ticket_fails_the_transaction() -> None:
    store = _store()
    package_id, cap_id = _publish_upgradeable(store)
    builder = ProgrammableTransactionBuilder()
    cap = builder.obj(ImmOrOwnedObject(_latest(store, cap_id).compute_object_reference()))
    digest = package_digest(_MODULES, ())
    _package_call(builder, "authorize_upgrade", cap, _u64(builder, 0), builder.pure(encode_bytes(digest.value)))

    outcome = _run(store, builder.finish())

    assert outcome.failure is not None
    assert outcome.failure.kind == "UnusedValueWithoutDrop"
    assert "UpgradeTicket" in outcome.failure.message
    assert _latest(store, cap_id).fields["package"] == package_id
