"""Fold classified stderr events into what the build evaluated.

A single left-to-right pass with no lookahead: every line is final once
classified.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from buildtrace.core.classifier import classify_line
from buildtrace.core.decoder import split_output_lines
from buildtrace.models.events import (
    DiagnosticEvent,
    OpaqueTextLine,
    PrimaryGcRootedOutputEvent,
    PrimaryOutputEvent,
    SourcePathEvent,
)
from buildtrace.models.outputs import PRIMARY, PRIMARY_GC_ROOTED, NamedOutputs
from buildtrace.models.store import VerbatimPath


class EvaluationLog(BaseModel):
    """Everything extracted from one ``nix-instantiate`` stderr stream."""

    model_config = ConfigDict(frozen=True)

    sources: list[VerbatimPath] = []
    # `None` if the attribute was never traced
    outputs: NamedOutputs = NamedOutputs(
        primary=None, primary_gc_rooted=None
    )
    log_lines: list[bytes] = []  # lines that carried no structured data
    transcript: list[bytes] = []  # every line, as emitted


def aggregate(events: Iterable[DiagnosticEvent]) -> EvaluationLog:
    """Fold *events* into an ``EvaluationLog``.

    Source paths keep their discovery order and duplicates. Each named output
    may be traced at most once; a second trace raises
    ``InternalInvariantError``.
    """
    sources: list[str] = []
    outputs: NamedOutputs = NamedOutputs.empty()
    log_lines: list[bytes] = []
    transcript: list[bytes] = []

    for event in events:
        transcript.append(event.line)
        if isinstance(event, SourcePathEvent):
            sources.append(event.path)
        elif isinstance(event, PrimaryOutputEvent):
            outputs = outputs.with_slot(PRIMARY, event.drv)
        elif isinstance(event, PrimaryGcRootedOutputEvent):
            outputs = outputs.with_slot(PRIMARY_GC_ROOTED, event.drv)
        elif isinstance(event, OpaqueTextLine):
            log_lines.append(event.line)

    return EvaluationLog(
        sources=sources,
        outputs=outputs,
        log_lines=log_lines,
        transcript=transcript,
    )


def aggregate_stderr(stderr: bytes) -> EvaluationLog:
    """Classify every line of a captured stderr stream and fold the result."""
    return aggregate(classify_line(line) for line in split_output_lines(stderr))
