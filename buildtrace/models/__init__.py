"""buildtrace data models — Pydantic v2, frozen (immutable)."""

from buildtrace.models.artifacts import StoredFile
from buildtrace.models.events import (
    DiagnosticEvent,
    EventKind,
    OpaqueTextLine,
    PrimaryGcRootedOutputEvent,
    PrimaryOutputEvent,
    SourcePathEvent,
)
from buildtrace.models.outcome import (
    BuildFailure,
    BuildOutcome,
    BuildSuccess,
    GcRootTempDir,
    Instantiation,
    RealizedArtifact,
)
from buildtrace.models.outputs import NamedOutputs, output_attr_names
from buildtrace.models.store import DrvFile, NixFile, StorePath

__all__ = [
    # store
    "StorePath",
    "DrvFile",
    "NixFile",
    # artifacts
    "StoredFile",
    # outputs
    "NamedOutputs",
    "output_attr_names",
    # events
    "EventKind",
    "DiagnosticEvent",
    "SourcePathEvent",
    "PrimaryOutputEvent",
    "PrimaryGcRootedOutputEvent",
    "OpaqueTextLine",
    # outcome
    "GcRootTempDir",
    "Instantiation",
    "RealizedArtifact",
    "BuildSuccess",
    "BuildFailure",
    "BuildOutcome",
]
