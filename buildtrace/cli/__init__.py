"""buildtrace CLI — Typer + Rich command-line interface."""
