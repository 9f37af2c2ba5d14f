"""Main Typer application — imports and registers all CLI commands.

Entry point: ``buildtrace`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from buildtrace.cli.commands.build import build_cmd
from buildtrace.cli.commands.sources import sources_cmd
from buildtrace.config import config

app = typer.Typer(
    name="buildtrace",
    help="buildtrace: instrumented Nix builds that report every file they touched.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="build", help="Build a Nix file and list the files it read.")(build_cmd)
app.command(name="sources", help="Instantiate a Nix file and print the files it read.")(sources_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to BUILDTRACE_LOG_LEVEL or INFO).",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
