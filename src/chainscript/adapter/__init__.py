"""Execution backends behind one capability protocol."""
from __future__ import annotations

from chainscript.adapter.base import TransactionalAdapter

__all__ = ["TransactionalAdapter"]
