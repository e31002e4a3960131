"""Checkpoints: ordered, hash-linked batches of executed transactions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from chainscript.effects import TransactionEffects
from chainscript.errors import InvariantViolation
from chainscript.types import Digest

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExecutionDigests:
    transaction: Digest
    effects: Digest

    def to_dict(self) -> dict[str, str]:
        return {"transaction": str(self.transaction), "effects": str(self.effects)}


@dataclass(frozen=True, slots=True)
class CheckpointContents:
    transactions: tuple[ExecutionDigests, ...] = ()

    def digest(self) -> Digest:
        return Digest.of_data([item.to_dict() for item in self.transactions], domain="CheckpointContents")

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True, slots=True)
class CheckpointSummary:
    epoch: int
    sequence_number: int
    network_total_transactions: int
    content_digest: Digest
    previous_digest: Digest | None
    timestamp_ms: int
    end_of_epoch: bool = False

    def digest(self) -> Digest:
        return Digest.of_data(self.to_dict(), domain="CheckpointSummary")

    def to_dict(self) -> dict[str, Any]:
        return {
            "epoch": self.epoch,
            "sequence_number": self.sequence_number,
            "network_total_transactions": self.network_total_transactions,
            "content_digest": str(self.content_digest),
            "previous_digest": None if self.previous_digest is None else str(self.previous_digest),
            "timestamp_ms": self.timestamp_ms,
            "end_of_epoch": self.end_of_epoch,
        }


@dataclass(frozen=True, slots=True)
class VerifiedCheckpoint:
    """A summary whose contents and chain link have been checked."""

    summary: CheckpointSummary
    contents: CheckpointContents

    @property
    def sequence_number(self) -> int:
        return self.summary.sequence_number

    @property
    def epoch(self) -> int:
        return self.summary.epoch

    @property
    def timestamp_ms(self) -> int:
        return self.summary.timestamp_ms

    def digest(self) -> Digest:
        return self.summary.digest()

    def to_dict(self) -> dict[str, Any]:
        payload = self.summary.to_dict()
        payload["digest"] = str(self.digest())
        payload["transactions"] = [item.to_dict() for item in self.contents.transactions]
        return payload


def verify_checkpoint(
    summary: CheckpointSummary,
    contents: CheckpointContents,
    previous: VerifiedCheckpoint | None,
) -> VerifiedCheckpoint:
    if summary.content_digest != contents.digest():
        raise InvariantViolation(f"checkpoint {summary.sequence_number} content digest mismatch")
    if previous is None:
        if summary.sequence_number != 0 or summary.previous_digest is not None:
            raise InvariantViolation(f"checkpoint {summary.sequence_number} has no predecessor")
    else:
        if summary.sequence_number != previous.sequence_number + 1:
            raise InvariantViolation(
                f"checkpoint {summary.sequence_number} does not follow {previous.sequence_number}"
            )
        if summary.previous_digest != previous.digest():
            raise InvariantViolation(f"checkpoint {summary.sequence_number} is not linked to its predecessor")
        if summary.timestamp_ms < previous.timestamp_ms:
            raise InvariantViolation(f"checkpoint {summary.sequence_number} goes back in time")
    return VerifiedCheckpoint(summary=summary, contents=contents)


@dataclass(slots=True)
class CheckpointBuilder:
    """Collects executed transactions and seals them into checkpoints."""

    checkpoints: list[VerifiedCheckpoint] = field(default_factory=list)
    _pending: list[ExecutionDigests] = field(default_factory=list)
    _total: int = 0

    def record(self, effects: TransactionEffects) -> None:
        self._pending.append(ExecutionDigests(effects.transaction_digest, effects.digest()))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def latest(self) -> VerifiedCheckpoint | None:
        return self.checkpoints[-1] if self.checkpoints else None

    def get(self, sequence_number: int) -> VerifiedCheckpoint | None:
        if 0 <= sequence_number < len(self.checkpoints):
            return self.checkpoints[sequence_number]
        return None

    def seal(self, *, epoch: int, timestamp_ms: int, end_of_epoch: bool = False) -> VerifiedCheckpoint:
        previous = self.latest()
        contents = CheckpointContents(tuple(self._pending))
        self._total += len(contents)
        summary = CheckpointSummary(
            epoch=epoch,
            sequence_number=0 if previous is None else previous.sequence_number + 1,
            network_total_transactions=self._total,
            content_digest=contents.digest(),
            previous_digest=None if previous is None else previous.digest(),
            timestamp_ms=timestamp_ms,
            end_of_epoch=end_of_epoch,
        )
        checkpoint = verify_checkpoint(summary, contents, previous)
        self.checkpoints.append(checkpoint)
        self._pending.clear()
        _log.debug("sealed checkpoint %d with %d transaction(s)", summary.sequence_number, len(contents))
        return checkpoint


__all__ = [
    "CheckpointBuilder",
    "CheckpointContents",
    "CheckpointSummary",
    "ExecutionDigests",
    "VerifiedCheckpoint",
    "verify_checkpoint",
]
