from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import Any

DIGEST_LENGTH = 32


def normalize_for_json(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return normalize_for_json(value.to_dict())
    if isinstance(value, Mapping):
        return {str(key): normalize_for_json(value[key]) for key in sorted(value.keys(), key=str)}
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, Sequence) and not isinstance(value, str):
        return [normalize_for_json(item) for item in value]
    if value is None or isinstance(value, (str, int, bool)):
        return value
    return str(value)


def canonical_dumps(value: Any) -> str:
    normalized = normalize_for_json(value)
    return json.dumps(normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def blake2b_256(*parts: bytes) -> bytes:
    hasher = hashlib.blake2b(digest_size=DIGEST_LENGTH)
    for part in parts:
        hasher.update(part)
    return hasher.digest()


def digest_of_data(value: Any, *, domain: str) -> bytes:
    return blake2b_256(domain.encode("ascii"), b"::", canonical_dumps(value).encode("utf-8"))
