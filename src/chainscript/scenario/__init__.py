"""Script tasks, verb records and the scenario driver."""
from __future__ import annotations

from chainscript.scenario.state import ScenarioState, StagedPackage, compute_package_digest

__all__ = ["ScenarioState", "StagedPackage", "compute_package_digest"]
