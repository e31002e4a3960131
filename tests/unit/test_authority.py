from __future__ import annotations

import pytest

from chainscript.bcs import encode_uint
from chainscript.constants import DEFAULT_ACCOUNT_BALANCE, DEFAULT_GAS_BUDGET, DEFAULT_GAS_PRICE, DEFAULT_MAX_GAS
from chainscript.errors import InvariantViolation, TransactionRejected
from chainscript.ledger.authority import AuthorityState
from chainscript.ledger.framework import framework_natives
from chainscript.ledger.genesis import (
    CLOCK_OBJECT_ID,
    FRAMEWORK_PACKAGE_ID,
    SYSTEM_STATE_OBJECT_ID,
    build_genesis,
    genesis_coin_id,
)
from chainscript.transaction import (
    ChangeEpoch,
    ConsensusCommitPrologue,
    MoveCall,
    ProgrammableTransactionBuilder,
    Transaction,
    TransactionData,
)
from chainscript.types import Address, Digest

SENDER = Address.from_int(0xA11CE)


def _authority() -> AuthorityState:
    genesis = build_genesis([(SENDER, DEFAULT_ACCOUNT_BALANCE)], timestamp_ms=1_000)
    return AuthorityState("test", genesis, framework_natives(), max_gas=DEFAULT_MAX_GAS)


def _emit_transaction(authority: AuthorityState, value: int, *, gas_budget: int = DEFAULT_GAS_BUDGET) -> Transaction:
    builder = ProgrammableTransactionBuilder()
    builder.command(
        MoveCall(FRAMEWORK_PACKAGE_ID, "object_basics", "emit", (builder.pure(encode_uint(value, 64)),))
    )
    coin = authority.get_object(genesis_coin_id(SENDER, 0))
    assert coin is not None
    return Transaction(
        TransactionData(
            kind=builder.finish(),
            sender=SENDER,
            gas_payment=[coin.compute_object_reference()],
            gas_budget=gas_budget,
            gas_price=DEFAULT_GAS_PRICE,
        )
    )


def test_environment_reads_the_system_objects() -> None:
    authority = _authority()

    assert authority.epoch == 0
    assert authority.timestamp_ms == 1_000
    assert authority.environment().max_gas == DEFAULT_MAX_GAS


def test_genesis_objects_are_copied_per_authority() -> None:
    genesis = build_genesis([(SENDER, DEFAULT_ACCOUNT_BALANCE)])
    left = AuthorityState("left", genesis, framework_natives(), max_gas=DEFAULT_MAX_GAS)
    right = AuthorityState("right", genesis, framework_natives(), max_gas=DEFAULT_MAX_GAS)

    coin = left.get_object(genesis_coin_id(SENDER, 0))
    assert coin is not None
    coin.fields["balance"] = 0
    other = right.get_object(genesis_coin_id(SENDER, 0))
    assert other is not None
    assert other.fields["balance"] == DEFAULT_ACCOUNT_BALANCE


def test_conflicting_transactions_cannot_lock_the_same_gas_coin() -> None:
    authority = _authority()
    first = _emit_transaction(authority, 1)
    second = _emit_transaction(authority, 2)

    certificate = authority.handle_transaction(first)
    assert certificate.signers == ("test",)
    # Signing the same transaction again is idempotent.
    authority.handle_transaction(first)
    with pytest.raises(TransactionRejected) as excinfo:
        authority.handle_transaction(second)
    assert excinfo.value.reason == "ObjectLockConflict"


def test_rejected_transactions_leave_no_locks_behind() -> None:
    authority = _authority()
    too_expensive = _emit_transaction(authority, 1, gas_budget=DEFAULT_MAX_GAS + 1)

    with pytest.raises(TransactionRejected):
        authority.handle_transaction(too_expensive)
    authority.handle_transaction(_emit_transaction(authority, 1))


def test_certificates_execute_and_index_events() -> None:
    authority = _authority()
    certificate = authority.handle_transaction(_emit_transaction(authority, 9))

    outcome = authority.execute_certificate(certificate)
    events = authority.query_tx_events(certificate.digest)

    assert outcome.failure is None
    assert [event.fields for event in events] == [{"new_value": 9}]
    assert authority.query_tx_events(certificate.digest, limit=0) == []
    assert authority.query_tx_events(Digest(bytes(32))) == []


def test_executing_a_certificate_releases_its_consumed_locks() -> None:
    authority = _authority()
    first = authority.handle_transaction(_emit_transaction(authority, 1))
    gas_ref = first.transaction.data.gas_payment[0]
    assert authority.locked_refs == {(gas_ref.object_id, gas_ref.version)}

    authority.execute_certificate(first)

    assert authority.locked_refs == set()
    second = authority.handle_transaction(_emit_transaction(authority, 2))
    coin = authority.get_object(gas_ref.object_id)
    assert coin is not None
    assert authority.locked_refs == {(coin.id, coin.version)}
    assert second.transaction.data.gas_payment[0].version == coin.version


def test_system_transactions_update_clock_and_epoch() -> None:
    authority = _authority()

    authority.execute_system_transaction(
        Transaction(TransactionData(kind=ConsensusCommitPrologue(0, 1, 5_000), sender=Address.from_int(0)))
    )
    authority.execute_system_transaction(
        Transaction(TransactionData(kind=ChangeEpoch(1, 5_000), sender=Address.from_int(0)))
    )

    assert authority.timestamp_ms == 5_000
    assert authority.epoch == 1
    clock = authority.get_object(CLOCK_OBJECT_ID)
    state = authority.get_object(SYSTEM_STATE_OBJECT_ID)
    assert clock is not None and clock.version == 2
    assert state is not None and state.version == 2


def test_only_system_transactions_skip_certification() -> None:
    authority = _authority()
    with pytest.raises(InvariantViolation):
        authority.execute_system_transaction(_emit_transaction(authority, 1))


def test_dev_inspect_does_not_commit() -> None:
    authority = _authority()
    builder = ProgrammableTransactionBuilder()
    builder.command(MoveCall(FRAMEWORK_PACKAGE_ID, "object_basics", "emit", (builder.pure(encode_uint(3, 64)),)))

    results = authority.dev_inspect(SENDER, builder.finish(), DEFAULT_GAS_PRICE)

    assert results.error is None
    assert [event.fields for event in results.events] == [{"new_value": 3}]
    assert authority.store.executed_transactions() == []
    assert authority.query_tx_events(results.effects.transaction_digest) == []
