from __future__ import annotations

import logging
from pathlib import Path

import typer

from chainscript.constants import BACKENDS, EXIT_INTERNAL_ERROR, EXIT_REGRESSION, EXIT_SUCCESS
from chainscript.engine import CommandOutcome, run_scripts
from chainscript.errors import ChainscriptError
from chainscript.types import Address
from chainscript.values.move_value import simple_serialize
from chainscript.values.symbolic import PlainValue, parse_symbolic_value

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _version_callback(value: bool) -> None:
    if value:
        from chainscript import __version__

        typer.echo(f"chainscript {__version__}")
        raise typer.Exit()


app = typer.Typer(add_completion=False, help="Run scripted transaction scenarios against a simulated ledger")


@app.callback(invoke_without_command=True)
def _main(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Print version and exit."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=_LOG_FORMAT)


def _emit_outcome(outcome: CommandOutcome) -> None:
    for result in outcome.results:
        if result.status == "mismatch":
            typer.echo(f"FAILED {result.path}")
            typer.echo(result.diff, nl=False)
        elif result.status == "updated":
            typer.echo(f"UPDATED {result.path}")
        elif result.status == "passed":
            typer.echo(f"PASSED {result.path}")

    for error in outcome.errors:
        typer.echo(f"ERROR: {error}", err=True)

    if outcome.exit_code == EXIT_REGRESSION:
        typer.echo("Tip: rerun with --update to accept the new output.", err=True)

    raise typer.Exit(outcome.exit_code)


@app.command()
def run(
    targets: list[str] = typer.Argument(..., help="Script files, directories or glob patterns"),
    project_root: Path = typer.Option(Path("."), "--project-root", help="Project root"),
    update: bool = typer.Option(False, "--update", help="Rewrite baselines instead of comparing."),
    backend: str | None = typer.Option(None, "--backend", help=f"Backend override: {' | '.join(BACKENDS)}"),
) -> None:
    """Run scripts and compare their transcripts with the .exp baselines."""
    if backend is not None and backend not in BACKENDS:
        typer.echo(f"ERROR: unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR)

    outcome = run_scripts(targets, project_root.resolve(), update=update, backend=backend)
    if outcome.exit_code == EXIT_SUCCESS:
        typer.echo(f"Processed {outcome.processed_scripts} script(s) successfully")
    _emit_outcome(outcome)


def _parse_address_binding(raw: str) -> tuple[str, Address]:
    name, sep, literal = raw.partition("=")
    if not sep or not name:
        raise ValueError(f"address binding must look like NAME=0x...; got: {raw}")
    return name, Address.from_hex(literal)


@app.command("parse-value")
def parse_value(
    literal: str = typer.Argument(..., help="Value literal, e.g. 'object(1,0)' or 'vector[1u8, 2u8]'"),
    address: list[str] | None = typer.Option(None, "--address", help="Named address binding NAME=0x..."),
) -> None:
    """Parse a symbolic value and print its kind and, for plain values, BCS bytes."""
    try:
        bindings = dict(_parse_address_binding(raw) for raw in address or [])
        value = parse_symbolic_value(literal, bindings.get)
    except (ChainscriptError, ValueError) as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(EXIT_INTERNAL_ERROR) from exc

    typer.echo(f"{type(value).__name__}: {value}")
    if isinstance(value, PlainValue):
        typer.echo(f"bcs: 0x{simple_serialize(value.value).hex()}")
    raise typer.Exit(EXIT_SUCCESS)


__all__ = ["app"]
