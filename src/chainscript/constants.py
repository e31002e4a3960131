from __future__ import annotations

from pathlib import Path

CONFIG_FILE = Path("chainscript.yaml")
BASELINE_SUFFIX = ".exp"
SCRIPT_GLOB = "**/*.move"

BACKEND_SIMULATOR = "simulator"
BACKEND_VALIDATOR = "validator"
BACKENDS = (BACKEND_SIMULATOR, BACKEND_VALIDATOR)

U64_MAX = (1 << 64) - 1
U256_MAX = (1 << 256) - 1

# Gas schedule for the in-memory ledger. Costs are in computation units and are
# multiplied by the transaction's gas price.
DEFAULT_GAS_PRICE = 1_000
DEFAULT_GAS_BUDGET = 5_000_000_000
DEFAULT_MAX_GAS = 50_000_000_000
DEFAULT_ACCOUNT_BALANCE = 300_000_000_000
FAUCET_BALANCE = 1 << 62
BASE_COMPUTATION_UNITS = 1_000
COMMAND_COMPUTATION_UNITS = 100
DEV_INSPECT_GAS_BUDGET = DEFAULT_MAX_GAS

DEFAULT_EVENT_QUERY_LIMIT = 256

EXIT_SUCCESS = 0
EXIT_REGRESSION = 1
EXIT_INTERNAL_ERROR = 2
