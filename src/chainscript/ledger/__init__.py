"""In-memory ledger shared by the simulator and the validator+fullnode backends."""
