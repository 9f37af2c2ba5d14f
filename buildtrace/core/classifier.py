"""Classify ``nix-instantiate -vv`` stderr lines into structured events.

We're looking for log lines matching::

    evaluating file '...'
    copied source '...' -> '/nix/store/...'
    trace: read: '...'
    trace: attribute: '<name>' -> '/nix/store/...drv'

The first two come from Nix itself at ``-vv``; the ``trace:`` lines are
emitted by ``logged-evaluation.nix``.
"""

from __future__ import annotations

import re

from buildtrace.core.errors import InternalInvariantError
from buildtrace.models.events import (
    DiagnosticEvent,
    OpaqueTextLine,
    PrimaryGcRootedOutputEvent,
    PrimaryOutputEvent,
    SourcePathEvent,
)
from buildtrace.models.outputs import PRIMARY, PRIMARY_GC_ROOTED
from buildtrace.models.store import DrvFile

EVAL_FILE = re.compile(r"^evaluating file '(?P<source>.*)'$")
COPIED_SOURCE = re.compile(r"^copied source '(?P<source>.*)' -> '(?:.*)'$")
TRACE_READ = re.compile(r"^trace: read: '(?P<source>.*)'$")
TRACE_ATTRIBUTE = re.compile(
    r"^trace: attribute: '(?P<attribute>.*)' -> '(?P<drv>/nix/store/.*)'$"
)

# "evaluating file" is by far the most common line, so it is tried first.
_SOURCE_PATTERNS = (EVAL_FILE, COPIED_SOURCE, TRACE_READ)


def classify_line(line: bytes) -> DiagnosticEvent:
    """Examine one stderr line and extract the structured data in it."""
    try:
        text = line.decode("utf-8")
    except UnicodeDecodeError:
        # Cannot match regexes against it; still shown to the user on failure.
        return OpaqueTextLine(line=line)

    for pattern in _SOURCE_PATTERNS:
        match = pattern.match(text)
        if match:
            return SourcePathEvent(line=line, path=match["source"])

    match = TRACE_ATTRIBUTE.match(text)
    if match:
        attribute, drv = match["attribute"], match["drv"]
        if attribute == PRIMARY:
            return PrimaryOutputEvent(line=line, drv=DrvFile(path=drv))
        if attribute == PRIMARY_GC_ROOTED:
            return PrimaryGcRootedOutputEvent(line=line, drv=DrvFile(path=drv))
        raise InternalInvariantError(
            f"trace was `{attribute} -> {drv}`, unknown attribute `{attribute}` "
            "(logged-evaluation.nix and buildtrace.models.outputs are out of sync)"
        )

    return OpaqueTextLine(line=line)
