"""``buildtrace build ROOT`` — build a Nix file and show what it read.

Runs both phases (instantiate, then realize ``primary_gc_rooted``), prints
the realized path and the source files to watch. On a failed evaluation
the full transcript is printed and the command exits with the evaluator's
status.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from buildtrace.cli.commands._formatting import (
    failure_exit_code,
    make_builder,
    print_failure,
    sources_table,
)
from buildtrace.core.errors import BuildTraceError
from buildtrace.models.outcome import BuildFailure
from buildtrace.models.store import NixFile

console = Console()


def build_cmd(
    root: Path = typer.Argument(
        ...,
        help="The Nix file to build, e.g. shell.nix.",
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
    keep_root: bool = typer.Option(
        False,
        "--keep-root",
        "-k",
        help="Keep the GC root of the build result after exiting.",
    ),
) -> None:
    """Build a Nix file and list every file its evaluation read."""
    builder = make_builder(cas_dir)

    try:
        outcome = builder.run(NixFile(path=root))
    except BuildTraceError as exc:
        console.print(f"[bold red]Build error:[/bold red] {exc}")
        raise typer.Exit(code=2)

    if isinstance(outcome, BuildFailure):
        print_failure(console, outcome)
        if outcome.sources:
            console.print(sources_table(outcome.sources, title="Sources read before the failure"))
        raise typer.Exit(code=failure_exit_code(outcome))

    try:
        artifact = outcome.artifacts
        lines = [
            "[bold green]Build succeeded[/bold green]",
            "",
            f"[bold]Result:[/bold]     {artifact.path}",
            f"[bold]Derivation:[/bold] {artifact.drvs.primary_gc_rooted}",
            f"[bold]Sources:[/bold]    {len(outcome.sources)}",
        ]
        if keep_root:
            lines.append(f"[bold]GC root:[/bold]    {outcome.gc_root.promote()}")

        console.print(
            Panel(
                "\n".join(lines),
                title="[bold]buildtrace[/bold]",
                border_style="green",
                padding=(1, 2),
            )
        )
        console.print(sources_table(outcome.sources))
    finally:
        outcome.close()
