"""Structured events classified from ``nix-instantiate`` stderr lines.

Each event keeps the raw line it came from, so a failing build can show
the complete transcript regardless of how the lines were classified.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict

from buildtrace.models.store import DrvFile, VerbatimPath


class EventKind(str, Enum):
    """The four kinds of diagnostic line."""

    SOURCE = "source"
    PRIMARY = "primary"
    PRIMARY_GC_ROOTED = "primary_gc_rooted"
    TEXT = "text"


class EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    line: bytes  # raw stderr line, without the trailing newline


class SourcePathEvent(EventBase):
    """A file the evaluator read or copied into the store."""

    kind: EventKind = EventKind.SOURCE
    path: VerbatimPath  # exactly as printed, possibly empty or relative


class PrimaryOutputEvent(EventBase):
    """``trace: attribute: 'primary' -> ...``"""

    kind: EventKind = EventKind.PRIMARY
    drv: DrvFile


class PrimaryGcRootedOutputEvent(EventBase):
    """``trace: attribute: 'primary_gc_rooted' -> ...``"""

    kind: EventKind = EventKind.PRIMARY_GC_ROOTED
    drv: DrvFile


class OpaqueTextLine(EventBase):
    """Any other line, possibly not valid UTF-8."""

    kind: EventKind = EventKind.TEXT


DiagnosticEvent = Union[
    SourcePathEvent, PrimaryOutputEvent, PrimaryGcRootedOutputEvent, OpaqueTextLine
]
