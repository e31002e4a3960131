from __future__ import annotations

import difflib
import glob
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from chainscript.config import RunnerConfig, load_config
from chainscript.constants import BASELINE_SUFFIX, EXIT_INTERNAL_ERROR, EXIT_REGRESSION, EXIT_SUCCESS, SCRIPT_GLOB
from chainscript.errors import ChainscriptError
from chainscript.scenario.runner import run_script

_log = logging.getLogger(__name__)

ScriptStatus = Literal["passed", "updated", "mismatch", "error"]


@dataclass(slots=True)
class ScriptOutcome:
    path: Path
    status: ScriptStatus
    diff: str = ""
    error: str | None = None


@dataclass(slots=True)
class CommandOutcome:
    exit_code: int
    processed_scripts: int
    regressions: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[ScriptOutcome] = field(default_factory=list)


def baseline_path(script: Path) -> Path:
    return script.with_suffix(BASELINE_SUFFIX)


def discover_scripts(targets: list[str], project_root: Path) -> list[Path]:
    """Expand files, directories and glob patterns into scripts in deterministic order."""
    resolved: list[Path] = []
    for target in targets:
        candidate = Path(target)
        if not candidate.is_absolute():
            candidate = project_root / candidate
        if candidate.is_dir():
            resolved.extend(path.resolve() for path in candidate.glob(SCRIPT_GLOB) if path.is_file())
            continue
        if candidate.exists():
            resolved.append(candidate.resolve())
            continue
        resolved.extend(Path(path).resolve() for path in glob.glob(str(candidate), recursive=True))
    deduped = sorted(set(resolved), key=lambda value: str(value))
    if not deduped:
        joined = ", ".join(targets)
        raise ValueError(f"No scripts matched targets: {joined}")
    return deduped


def _unified_diff(expected: str, actual: str, path: Path) -> str:
    lines = difflib.unified_diff(
        expected.splitlines(keepends=True),
        actual.splitlines(keepends=True),
        fromfile=str(baseline_path(path)),
        tofile=f"{path} (actual)",
    )
    return "".join(lines)


def run_one(path: Path, config: RunnerConfig) -> ScriptOutcome:
    try:
        source = path.read_text(encoding="utf-8")
        result = run_script(source, config)
    except (ChainscriptError, OSError) as exc:
        _log.error("script %s failed: %s", path, exc)
        return ScriptOutcome(path=path, status="error", error=str(exc))

    expected_path = baseline_path(path)
    if config.update_baseline:
        expected_path.write_text(result.output, encoding="utf-8")
        return ScriptOutcome(path=path, status="updated")
    if not expected_path.exists():
        return ScriptOutcome(
            path=path,
            status="error",
            error=f"missing baseline at {expected_path}; rerun with --update to create it",
        )
    expected = expected_path.read_text(encoding="utf-8")
    if expected == result.output:
        return ScriptOutcome(path=path, status="passed")
    return ScriptOutcome(path=path, status="mismatch", diff=_unified_diff(expected, result.output, path))


def run_scripts(
    targets: list[str],
    project_root: Path,
    *,
    update: bool = False,
    backend: str | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandOutcome:
    try:
        config = load_config(project_root, env)
        if backend is not None:
            config = config.with_overrides(backend=backend)
        if update:
            config = config.with_overrides(update_baseline=True)
        scripts = discover_scripts(targets, project_root)
    except (ValueError, OSError) as exc:
        return CommandOutcome(exit_code=EXIT_INTERNAL_ERROR, processed_scripts=0, errors=[str(exc)])

    results = [run_one(path, config) for path in scripts]
    errors = [f"{outcome.path}: {outcome.error}" for outcome in results if outcome.status == "error"]
    regressions = sum(1 for outcome in results if outcome.status == "mismatch")
    if errors:
        exit_code = EXIT_INTERNAL_ERROR
    elif regressions:
        exit_code = EXIT_REGRESSION
    else:
        exit_code = EXIT_SUCCESS
    return CommandOutcome(
        exit_code=exit_code,
        processed_scripts=len(scripts),
        regressions=regressions,
        errors=errors,
        results=results,
    )


__all__ = [
    "CommandOutcome",
    "ScriptOutcome",
    "baseline_path",
    "discover_scripts",
    "run_one",
    "run_scripts",
]
