"""A single node's ledger: storage, locking, execution and the event index."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from chainscript.constants import DEFAULT_EVENT_QUERY_LIMIT, DEV_INSPECT_GAS_BUDGET
from chainscript.effects import DevInspectResults, Event
from chainscript.errors import InvariantViolation, TransactionRejected
from chainscript.ledger.executor import ExecutionEnvironment, ExecutionOutcome, check_inputs, execute_transaction
from chainscript.ledger.genesis import CLOCK_OBJECT_ID, SYSTEM_STATE_OBJECT_ID
from chainscript.ledger.natives import NativeRegistry
from chainscript.ledger.store import InMemoryStore, WriteSet
from chainscript.transaction import (
    ImmOrOwnedObject,
    ProgrammableTransaction,
    Transaction,
    TransactionData,
)
from chainscript.types import Address, Digest, Object, ObjectID

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CertifiedTransaction:
    transaction: Transaction
    signers: tuple[str, ...]

    @property
    def digest(self) -> Digest:
        return self.transaction.digest


class AuthorityState:
    def __init__(
        self,
        name: str,
        genesis: Iterable[Object],
        natives: NativeRegistry,
        *,
        max_gas: int,
    ) -> None:
        self.name = name
        self.store = InMemoryStore([obj.copy() for obj in genesis])
        self._natives = natives
        self._max_gas = max_gas
        self._locks: dict[tuple[ObjectID, int], Digest] = {}

    # -- reads ------------------------------------------------------------

    def get_object(self, object_id: ObjectID) -> Object | None:
        return self.store.get_object(object_id)

    def get_object_by_key(self, object_id: ObjectID, version: int) -> Object | None:
        return self.store.get_object_by_key(object_id, version)

    def _system_field(self, object_id: ObjectID, name: str) -> int:
        obj = self.store.get_object(object_id)
        if obj is None:
            raise InvariantViolation(f"{self.name}: system object {object_id} is missing")
        return int(obj.fields[name])

    @property
    def locked_refs(self) -> set[tuple[ObjectID, int]]:
        return set(self._locks)

    @property
    def epoch(self) -> int:
        return self._system_field(SYSTEM_STATE_OBJECT_ID, "epoch")

    @property
    def timestamp_ms(self) -> int:
        return self._system_field(CLOCK_OBJECT_ID, "timestamp_ms")

    def environment(self) -> ExecutionEnvironment:
        return ExecutionEnvironment(
            epoch=self.epoch,
            timestamp_ms=self.timestamp_ms,
            natives=self._natives,
            max_gas=self._max_gas,
        )

    # -- transaction flow -------------------------------------------------

    def handle_transaction(self, transaction: Transaction) -> CertifiedTransaction:
        """Lock the owned inputs and sign; a conflicting lock rejects the transaction."""
        digest = transaction.digest
        data = transaction.data
        owned = list(data.gas_payment)
        if isinstance(data.kind, ProgrammableTransaction):
            check_inputs(self.store, data, self.environment())
            owned.extend(arg.object_ref for arg in data.kind.input_objects() if isinstance(arg, ImmOrOwnedObject))
        for ref in owned:
            holder = self._locks.get((ref.object_id, ref.version))
            if holder is not None and holder != digest:
                raise TransactionRejected(
                    "ObjectLockConflict",
                    f"object {ref.object_id} version {ref.version} is locked by transaction {holder}",
                )
        for ref in owned:
            self._locks[(ref.object_id, ref.version)] = digest
        return CertifiedTransaction(transaction=transaction, signers=(self.name,))

    def assign_shared_versions(self, transaction: Transaction) -> dict[ObjectID, int]:
        """Sequence the transaction: each shared input is read at its current version."""
        kind = transaction.data.kind
        if not isinstance(kind, ProgrammableTransaction):
            return {}
        assigned: dict[ObjectID, int] = {}
        for arg in kind.shared_input_objects():
            obj = self.store.get_object(arg.object_id)
            if obj is None:
                raise TransactionRejected("ObjectNotFound", f"shared object {arg.object_id} does not exist")
            assigned[arg.object_id] = obj.version
        return assigned

    def execute_certificate(
        self,
        certificate: CertifiedTransaction,
        *,
        shared_versions: Mapping[ObjectID, int] | None = None,
    ) -> ExecutionOutcome:
        transaction = certificate.transaction
        outcome = execute_transaction(self.store, transaction, self.environment(), shared_versions=shared_versions)
        self.store.apply(outcome.write_set)
        self._release_locks(outcome.write_set)
        _log.debug(
            "%s executed %s (%s)",
            self.name,
            certificate.digest,
            "success" if outcome.failure is None else outcome.failure.kind,
        )
        return outcome

    def _release_locks(self, write_set: WriteSet) -> None:
        # Versions below an object's newest write can never be consumed again.
        newest = {obj.id: obj.version for obj in write_set.written}
        newest.update((ref.object_id, ref.version) for ref in write_set.deleted)
        stale = [key for key in self._locks if key[0] in newest and key[1] < newest[key[0]]]
        for key in stale:
            del self._locks[key]

    def execute_system_transaction(self, transaction: Transaction) -> ExecutionOutcome:
        if not transaction.data.is_system():
            raise InvariantViolation("only system transactions bypass certification")
        return self.execute_certificate(CertifiedTransaction(transaction, signers=(self.name,)))

    def dev_inspect(self, sender: Address, kind: ProgrammableTransaction, gas_price: int) -> DevInspectResults:
        transaction = Transaction(
            TransactionData(kind=kind, sender=sender, gas_budget=DEV_INSPECT_GAS_BUDGET, gas_price=gas_price)
        )
        outcome = execute_transaction(self.store, transaction, self.environment(), dev_inspect=True)
        return DevInspectResults(
            effects=outcome.effects,
            events=list(outcome.write_set.events),
            results=outcome.results,
            error=None if outcome.failure is None else outcome.failure.describe(),
        )

    def query_tx_events(self, digest: Digest, limit: int = DEFAULT_EVENT_QUERY_LIMIT) -> list[Event]:
        events = self.store.get_transaction_events(digest)
        if events is None:
            return []
        return events[:limit]


__all__ = ["AuthorityState", "CertifiedTransaction"]
