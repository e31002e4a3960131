from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from chainscript.constants import (
    BACKEND_SIMULATOR,
    BACKENDS,
    CONFIG_FILE,
    DEFAULT_ACCOUNT_BALANCE,
    DEFAULT_GAS_BUDGET,
    DEFAULT_GAS_PRICE,
    DEFAULT_MAX_GAS,
)

ENV_BACKEND = "CHAINSCRIPT_BACKEND"
ENV_SEED = "CHAINSCRIPT_SEED"
ENV_UPDATE_BASELINE = "CHAINSCRIPT_UPDATE_BASELINE"


@dataclass(slots=True)
class RunnerConfig:
    backend: str = BACKEND_SIMULATOR
    seed: int = 0
    gas_budget: int = DEFAULT_GAS_BUDGET
    gas_price: int = DEFAULT_GAS_PRICE
    max_gas: int = DEFAULT_MAX_GAS
    account_balance: int = DEFAULT_ACCOUNT_BALANCE
    accounts: list[str] = field(default_factory=list)
    update_baseline: bool = False
    source_path: Path | None = None

    def with_overrides(self, **changes: Any) -> RunnerConfig:
        present = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **present)


def _load_yaml(path: Path) -> dict[str, Any]:
    loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file must be a mapping: {path}")
    return loaded


def _parse_int(raw: Any, *, field_name: str, minimum: int = 0) -> int:
    if isinstance(raw, bool):
        raise ValueError(f"{field_name} must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must be an integer; got: {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{field_name} must be >= {minimum}; got: {value}")
    return value


def _parse_backend(raw: Any) -> str:
    backend = str(raw).strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of {'|'.join(BACKENDS)}; got: {backend}")
    return backend


def _parse_flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_accounts(raw: Any) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("accounts must be a list")
    return [str(item) for item in raw]


def parse_config(raw: Mapping[str, Any], *, source_path: Path | None = None) -> RunnerConfig:
    unknown = set(raw) - {"backend", "seed", "gas_budget", "gas_price", "max_gas", "account_balance", "accounts"}
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(sorted(unknown))}")
    config = RunnerConfig(source_path=source_path)
    if "backend" in raw:
        config.backend = _parse_backend(raw["backend"])
    if "seed" in raw:
        config.seed = _parse_int(raw["seed"], field_name="seed")
    if "gas_budget" in raw:
        config.gas_budget = _parse_int(raw["gas_budget"], field_name="gas_budget", minimum=1)
    if "gas_price" in raw:
        config.gas_price = _parse_int(raw["gas_price"], field_name="gas_price", minimum=1)
    if "max_gas" in raw:
        config.max_gas = _parse_int(raw["max_gas"], field_name="max_gas", minimum=1)
    if "account_balance" in raw:
        config.account_balance = _parse_int(raw["account_balance"], field_name="account_balance")
    config.accounts = _parse_accounts(raw.get("accounts"))
    if config.gas_budget > config.max_gas:
        raise ValueError(f"gas_budget ({config.gas_budget}) must not exceed max_gas ({config.max_gas})")
    return config


def apply_env_overrides(config: RunnerConfig, env: Mapping[str, str] | None = None) -> RunnerConfig:
    environ = os.environ if env is None else env
    backend = environ.get(ENV_BACKEND)
    seed = environ.get(ENV_SEED)
    update = environ.get(ENV_UPDATE_BASELINE)
    return config.with_overrides(
        backend=_parse_backend(backend) if backend else None,
        seed=_parse_int(seed, field_name=ENV_SEED) if seed else None,
        update_baseline=True if update and _parse_flag(update) else None,
    )


def load_config(project_root: Path, env: Mapping[str, str] | None = None) -> RunnerConfig:
    path = project_root / CONFIG_FILE
    if path.exists():
        config = parse_config(_load_yaml(path), source_path=path)
    else:
        config = RunnerConfig()
    return apply_env_overrides(config, env)


__all__ = [
    "ENV_BACKEND",
    "ENV_SEED",
    "ENV_UPDATE_BASELINE",
    "RunnerConfig",
    "apply_env_overrides",
    "load_config",
    "parse_config",
]
