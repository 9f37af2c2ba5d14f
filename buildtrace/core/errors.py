"""Error taxonomy for instrumented builds.

A failing ``nix-instantiate`` is not an error here: it is a
``BuildFailure`` outcome. The exceptions below cover the cases where no
outcome can be produced at all.
"""

from __future__ import annotations


class BuildTraceError(RuntimeError):
    """Base class for recoverable errors surfaced to the caller."""


class InstantiateError(BuildTraceError):
    """Spawning or talking to ``nix-instantiate`` failed at the OS level."""


class RealizeError(BuildTraceError):
    """Realizing a derivation failed.

    Parameters
    ----------
    message:
        Human-readable description.
    exit_status:
        Exit status of the build tool, if it ran to completion.
    log_lines:
        Raw stderr lines of the build tool, if any were captured.
    """

    def __init__(
        self,
        message: str,
        *,
        exit_status: int | None = None,
        log_lines: list[bytes] | None = None,
    ) -> None:
        super().__init__(message)
        self.exit_status = exit_status
        self.log_lines = log_lines or []


class WorkerFailureError(BuildTraceError):
    """The worker processing the diagnostic stream failed unexpectedly.

    The original exception is available as ``payload`` and ``__cause__``.
    """

    def __init__(self, payload: BaseException) -> None:
        super().__init__(f"log processing worker failed: {payload!r}")
        self.payload = payload


class InternalInvariantError(RuntimeError):
    """The instrumentation script and this package disagree.

    Raised for a duplicate or unknown traced attribute, a missing required
    attribute, or no store path on stdout after a successful run. Not a
    ``BuildTraceError``; callers must not catch and ignore it.
    """
