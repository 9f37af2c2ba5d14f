"""Realize a derivation into a built store path.

Defines the ``Realizer`` Protocol the builder depends on, and the default
``NixBuildRealizer`` backed by ``nix-build``. Any object with a matching
``realize`` method can be passed to ``InstrumentedBuilder`` instead.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from buildtrace.core.decoder import parse_output, split_output_lines
from buildtrace.core.errors import RealizeError
from buildtrace.models.outcome import GcRootTempDir
from buildtrace.models.store import DrvFile, StorePath

logger = logging.getLogger(__name__)


@runtime_checkable
class Realizer(Protocol):
    """Protocol for build realization backends."""

    def realize(self, drv: DrvFile) -> tuple[StorePath, GcRootTempDir]:
        """Build *drv* and return its single output path.

        Returns
        -------
        tuple[StorePath, GcRootTempDir]
            The realized path and the GC root keeping it alive. The caller
            owns the root.

        Raises
        ------
        RealizeError
            If the build could not be run or did not yield exactly one path.
        """
        ...


class NixBuildRealizer:
    """Realize derivations with ``nix-build --out-link``.

    Parameters
    ----------
    executable:
        The ``nix-build`` program to run.
    gc_root_prefix:
        Prefix for the temporary directory holding the out-link.
    """

    def __init__(
        self,
        executable: str = "nix-build",
        gc_root_prefix: str = "buildtrace-gc-",
    ) -> None:
        self.executable = executable
        self.gc_root_prefix = gc_root_prefix

    def realize(self, drv: DrvFile) -> tuple[StorePath, GcRootTempDir]:
        gc_root = GcRootTempDir(prefix=self.gc_root_prefix)
        try:
            path = self._build(drv, gc_root)
        except BaseException:
            gc_root.close()
            raise
        return path, gc_root

    def _build(self, drv: DrvFile, gc_root: GcRootTempDir) -> StorePath:
        cmd = [
            self.executable,
            str(drv),
            # the out-link doubles as an indirect GC root
            "--out-link",
            str(gc_root.root_link),
        ]
        logger.debug("$ %s", shlex.join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
            stdout, stderr = proc.communicate()
        except OSError as exc:
            raise RealizeError(f"executing `{self.executable}` failed: {exc}") from exc

        if proc.returncode != 0:
            raise RealizeError(
                f"`{self.executable}` exited with status {proc.returncode} "
                f"while building {drv}",
                exit_status=proc.returncode,
                log_lines=split_output_lines(stderr),
            )

        try:
            paths = parse_output(stdout, StorePath.from_line)
        except ValidationError as exc:
            raise RealizeError(
                f"`{self.executable}` printed something that is not a store path: {stdout!r}",
                exit_status=proc.returncode,
                log_lines=split_output_lines(stderr),
            ) from exc

        if len(paths) != 1:
            raise RealizeError(
                f"expected exactly one output path for {drv}, got {len(paths)}: "
                f"{[str(p) for p in paths]}",
                exit_status=proc.returncode,
                log_lines=split_output_lines(stderr),
            )

        logger.info("Realized %s -> %s", drv, paths[0])
        return paths[0]
