"""Decode the raw output streams of Nix tools."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from pydantic import ValidationError

from buildtrace.core.errors import InternalInvariantError
from buildtrace.models.store import StorePath

T = TypeVar("T")


def split_output_lines(data: bytes) -> list[bytes]:
    """Split a captured stream on newline bytes, dropping empty lines.

    Every other line is kept byte for byte, including carriage returns and
    lines holding only whitespace.
    """
    return [line for line in data.split(b"\n") if line]


def parse_output(data: bytes, parse: Callable[[bytes], T]) -> list[T]:
    """Map every non-empty line of *data* through *parse*, preserving order."""
    return [parse(line) for line in split_output_lines(data)]


def decode_store_paths(
    stdout: bytes, *, context: Sequence[bytes] = ()
) -> list[StorePath]:
    """Parse the store paths a Nix tool printed on stdout.

    Nix prints one path per line and always at least one after a successful
    run, so an empty or malformed stream is an ``InternalInvariantError``.
    *context* (usually the stderr transcript) is included in the message.
    """
    try:
        paths = parse_output(stdout, StorePath.from_line)
    except ValidationError as exc:
        raise InternalInvariantError(
            f"stdout contained something that is not a store path: {exc}\n"
            f"stdout was: {stdout!r}{format_context(context)}"
        ) from exc
    if not paths:
        raise InternalInvariantError(
            f"didn't get a store path in the output{format_context(context)}"
        )
    return paths


def format_context(context: Sequence[bytes]) -> str:
    if not context:
        return ""
    return "\nstderr was:\n" + "\n".join(
        line.decode("utf-8", "replace") for line in context
    )
