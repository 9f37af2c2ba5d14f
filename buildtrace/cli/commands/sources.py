"""``buildtrace sources ROOT`` — print the files a Nix evaluation reads.

Runs phase 1 only and prints one path per line, in discovery order and
without duplicates, whether or not the evaluation succeeded. Intended for
scripting a file watcher.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from buildtrace.cli.commands._formatting import failure_exit_code, make_builder, print_failure
from buildtrace.core.errors import BuildTraceError
from buildtrace.models.outcome import BuildFailure
from buildtrace.models.store import NixFile

console = Console()
err_console = Console(stderr=True)


def sources_cmd(
    root: Path = typer.Argument(
        ...,
        help="The Nix file to evaluate, e.g. shell.nix.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    cas_dir: str = typer.Option(
        None,
        "--cas",
        "-c",
        help="Directory of the content-addressable store (defaults to BUILDTRACE_CAS_PATH).",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit non-zero (and print the transcript) if the evaluation failed.",
    ),
) -> None:
    """Print every file the evaluation of ROOT read, one per line."""
    builder = make_builder(cas_dir)

    try:
        outcome = builder.instrumented_instantiation(NixFile(path=root))
    except BuildTraceError as exc:
        err_console.print(f"[bold red]Evaluation error:[/bold red] {exc}")
        raise typer.Exit(code=2)

    try:
        for source in dict.fromkeys(outcome.sources):
            console.print(str(source), markup=False, highlight=False, soft_wrap=True)
    finally:
        outcome.close()

    if strict and isinstance(outcome, BuildFailure):
        print_failure(err_console, outcome)
        raise typer.Exit(code=failure_exit_code(outcome))
