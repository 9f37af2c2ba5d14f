"""Shared rendering helpers for the buildtrace CLI commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from buildtrace.config import BuildTraceConfig
from buildtrace.core.builder import InstrumentedBuilder
from buildtrace.core.cas import ContentAddressable
from buildtrace.models.outcome import BuildFailure


def make_builder(cas_dir: str | None) -> InstrumentedBuilder:
    """Create a builder, overriding the CAS location if *cas_dir* is given."""
    cfg = BuildTraceConfig()
    cas = ContentAddressable(Path(cas_dir)) if cas_dir else None
    return InstrumentedBuilder(cas=cas, config=cfg)


def failure_exit_code(failure: BuildFailure) -> int:
    """Exit code for a failed build: the tool's own status when it is usable."""
    return failure.exit_status if failure.exit_status > 0 else 1


def sources_table(sources: list[str], title: str = "Watched sources") -> Table:
    """Tabulate source files in discovery order, skipping repeats."""
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Path", style="cyan")
    table.add_column("Exists", justify="center")

    for index, source in enumerate(dict.fromkeys(sources), start=1):
        exists = "[green]Yes[/green]" if source and Path(source).exists() else "[yellow]No[/yellow]"
        table.add_row(str(index), Text(source), exists)
    return table


def print_failure(console: Console, failure: BuildFailure) -> None:
    """Print the full stderr transcript of a failed build."""
    console.print(
        Panel(
            Text(failure.render_log()),
            title=f"[bold red]Evaluation failed (exit status {failure.exit_status})[/bold red]",
            border_style="red",
        )
    )
