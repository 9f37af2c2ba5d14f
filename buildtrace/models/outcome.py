"""Outcomes of an instrumented build.

Even if ``nix-instantiate`` exits non-zero there is still valuable
information in its output, like new paths to watch, so a failing build is
an outcome (``BuildFailure``), not an exception.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import weakref
from pathlib import Path
from typing import Generic, TypeVar, Union

from pydantic import BaseModel, ConfigDict

from buildtrace.models.outputs import NamedOutputs
from buildtrace.models.store import StorePath, VerbatimPath

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GcRootTempDir:
    """A temporary directory holding an indirect GC root.

    Nix is told to register ``root_link`` as an indirect root; as long as the
    link exists, the store path it points to survives garbage collection.
    The directory is removed by ``close()`` or when this object is collected,
    which drops the root. ``promote()`` hands the directory to the caller.

    Parameters
    ----------
    prefix:
        Prefix for the temporary directory name.
    """

    def __init__(self, prefix: str = "buildtrace-gc-") -> None:
        self.path = Path(tempfile.mkdtemp(prefix=prefix))
        self._finalizer = weakref.finalize(
            self, shutil.rmtree, str(self.path), ignore_errors=True
        )

    @property
    def root_link(self) -> Path:
        """Where the GC root symlink is (or will be) created."""
        return self.path / "result"

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def close(self) -> None:
        """Remove the directory and with it the GC root. Idempotent."""
        if self._finalizer.alive:
            logger.debug("Releasing GC root directory %s", self.path)
            self._finalizer()

    def promote(self) -> Path:
        """Keep the directory beyond the lifetime of this object.

        Returns the root link; the caller now owns the directory.
        """
        if not self._finalizer.alive:
            raise RuntimeError(f"GC root directory {self.path} was already released")
        self._finalizer.detach()
        logger.info("Promoted GC root %s", self.root_link)
        return self.root_link

    def __enter__(self) -> GcRootTempDir:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"GcRootTempDir({str(self.path)!r}, {state})"


class Instantiation(BaseModel):
    """What phase 1 (``nix-instantiate``) produced."""

    model_config = ConfigDict(frozen=True)

    produced_drvs: list[StorePath]  # never empty
    outputs: NamedOutputs  # of DrvFile


class RealizedArtifact(BaseModel):
    """What phase 2 produced from the ``primary_gc_rooted`` derivation."""

    model_config = ConfigDict(frozen=True)

    path: StorePath
    drvs: NamedOutputs  # of DrvFile
    outputs: NamedOutputs  # of StorePath


class BuildSuccess(BaseModel, Generic[T]):
    """A successful Nix run.

    Owns ``gc_root``: close the outcome (or let it be collected) to release
    the root, or call ``gc_root.promote()`` to keep it.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    artifacts: T
    sources: list[VerbatimPath]  # files examined during evaluation, in discovery order
    gc_root: GcRootTempDir

    @property
    def succeeded(self) -> bool:
        return True

    def close(self) -> None:
        self.gc_root.close()


class BuildFailure(BaseModel):
    """A failing Nix run."""

    model_config = ConfigDict(frozen=True)

    exit_status: int
    log_lines: list[bytes]  # complete stderr transcript, in emission order
    sources: list[VerbatimPath]  # files examined before the failure

    @property
    def succeeded(self) -> bool:
        return False

    def close(self) -> None:
        pass

    def render_log(self) -> str:
        """The transcript as text, undecodable bytes replaced."""
        return "\n".join(line.decode("utf-8", "replace") for line in self.log_lines)


BuildOutcome = Union[BuildSuccess, BuildFailure]
