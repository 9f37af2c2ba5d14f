"""Build a Nix file (like a ``shell.nix``) and report what it touched.

The InstrumentedBuilder wraps ``nix-instantiate`` and ``nix-build``. It does
not evaluate the Nix expression as-is: ``logged-evaluation.nix`` instruments
various builtins so that the evaluator's stderr also tells us which source
files were read and which derivations were produced. That information is
valuable even when the build fails.

Two phases:

1. ``instrumented_instantiation`` — run ``nix-instantiate -vv`` on the
   instrumented expression, classify stderr, decode stdout.
2. ``run`` — on success, realize the ``primary_gc_rooted`` derivation.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor
from importlib.resources import files
from pathlib import Path

from buildtrace.config import BuildTraceConfig
from buildtrace.core.aggregator import EvaluationLog, aggregate_stderr
from buildtrace.core.cas import ContentAddressable
from buildtrace.core.decoder import decode_store_paths, format_context
from buildtrace.core.errors import (
    InstantiateError,
    InternalInvariantError,
    RealizeError,
    WorkerFailureError,
)
from buildtrace.core.realize import NixBuildRealizer, Realizer
from buildtrace.models.outcome import (
    BuildFailure,
    BuildSuccess,
    GcRootTempDir,
    Instantiation,
    RealizedArtifact,
)
from buildtrace.models.outputs import NamedOutputs, output_attr_names
from buildtrace.models.store import DrvFile, NixFile, StorePath

logger = logging.getLogger(__name__)

LOGGED_EVALUATION_NIX: str = (
    (files("buildtrace") / "nix" / "logged-evaluation.nix").read_text(encoding="utf-8")
)


class InstrumentedBuilder:
    """Runs instrumented two-phase Nix builds.

    Parameters
    ----------
    cas:
        Store used to materialize ``logged-evaluation.nix``. Defaults to
        one rooted at ``config.cas_path``.
    realizer:
        Phase-2 backend. Defaults to ``NixBuildRealizer``.
    config:
        Runtime configuration. Uses environment-driven defaults if omitted.
    """

    def __init__(
        self,
        cas: ContentAddressable | None = None,
        realizer: Realizer | None = None,
        *,
        config: BuildTraceConfig | None = None,
    ) -> None:
        self.config = config or BuildTraceConfig()
        self.cas = cas or ContentAddressable(self.config.cas_path)
        self.realizer = realizer or NixBuildRealizer(
            executable=self.config.build_executable,
            gc_root_prefix=self.config.gc_root_prefix,
        )

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def instrumented_instantiation(
        self, root_nix_file: NixFile
    ) -> BuildSuccess[Instantiation] | BuildFailure:
        """Instantiate *root_nix_file* through ``logged-evaluation.nix``.

        Lifecycle:
        1. Materialize the instrumentation script in the CAS
        2. Create a temporary directory for the indirect GC root
        3. Run ``nix-instantiate`` and capture stdout and stderr fully
        4. Classify and fold stderr (on a worker if ``parse_in_worker``) while
           stdout is decoded on the calling thread
        5. Non-zero exit: return ``BuildFailure``, releasing the GC root
        6. Zero exit: require both named outputs and at least one store path

        The returned ``BuildSuccess`` owns the GC root directory.
        """
        logged_evaluation = self.cas.file_from_string(LOGGED_EVALUATION_NIX)
        gc_root = GcRootTempDir(prefix=self.config.gc_root_prefix)
        try:
            outcome = self._instantiate(root_nix_file, logged_evaluation, gc_root)
        except BaseException:
            gc_root.close()
            raise
        if isinstance(outcome, BuildFailure):
            gc_root.close()
        return outcome

    def _instantiate(
        self, root_nix_file: NixFile, logged_evaluation: Path, gc_root: GcRootTempDir
    ) -> BuildSuccess[Instantiation] | BuildFailure:
        cmd = [
            self.config.instantiate_executable,
            # verbose mode prints the files we track
            *self.config.verbosity_flags,
            # we add a temporary indirect GC root
            "--add-root",
            str(gc_root.root_link),
            "--indirect",
            # runtime nix paths to needed dependencies
            "--argstr",
            "runTimeClosure",
            str(self.config.run_time_closure),
            # the source file
            "--argstr",
            "src",
            str(root_nix_file),
            # instrumented by `logged-evaluation.nix`
            "--",
            str(logged_evaluation),
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
            raise InstantiateError(
                f"executing `{self.config.instantiate_executable}` failed: {exc}"
            ) from exc

        if self.config.parse_in_worker:
            with ThreadPoolExecutor(max_workers=1, thread_name_prefix="buildtrace-log") as pool:
                pending = pool.submit(aggregate_stderr, stderr)
                # stdout is decoded on this thread while the worker folds stderr
                produced_drvs = _decode_stdout(stdout, proc.returncode)
                log = _join_worker(pending)
        else:
            log = aggregate_stderr(stderr)
            produced_drvs = _decode_stdout(stdout, proc.returncode)

        if proc.returncode != 0:
            # stdout is not checked on failure: an empty one is a normal BuildFailure
            logger.info(
                "`%s` exited with status %d for %s (%d source files seen)",
                self.config.instantiate_executable,
                proc.returncode,
                root_nix_file,
                len(log.sources),
            )
            return BuildFailure(
                exit_status=proc.returncode,
                log_lines=log.transcript,
                sources=log.sources,
            )

        outputs = _require_outputs(log)
        if isinstance(produced_drvs, InternalInvariantError):
            raise InternalInvariantError(
                f"{produced_drvs}{format_context(log.transcript)}"
            ) from produced_drvs
        logger.debug(
            "Instantiated %s: primary=%s primary_gc_rooted=%s",
            root_nix_file,
            outputs.primary,
            outputs.primary_gc_rooted,
        )
        return BuildSuccess(
            artifacts=Instantiation(produced_drvs=produced_drvs, outputs=outputs),
            sources=log.sources,
            gc_root=gc_root,
        )

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def run(self, root_nix_file: NixFile) -> BuildSuccess[RealizedArtifact] | BuildFailure:
        """Build the Nix expression in *root_nix_file*.

        Instruments the evaluation to gain extra information, which is
        valuable even if the build fails. Only the ``primary_gc_rooted``
        derivation is realized; the phase-1 GC root is released once it has
        been built. The returned ``BuildSuccess`` owns the realized root.
        """
        outcome = self.instrumented_instantiation(root_nix_file)
        if isinstance(outcome, BuildFailure):
            return outcome

        with outcome.gc_root:
            drvs = outcome.artifacts.outputs
            try:
                realized, realized_root = self.realizer.realize(drvs.primary_gc_rooted)
            except OSError as exc:
                raise RealizeError(
                    f"realizing {drvs.primary_gc_rooted} failed: {exc}"
                ) from exc

        return BuildSuccess(
            artifacts=RealizedArtifact(
                path=realized,
                drvs=drvs,
                outputs=drvs.map(lambda _drv: realized),
            ),
            sources=outcome.sources,
            gc_root=realized_root,
        )


def _require_outputs(log: EvaluationLog) -> NamedOutputs:
    """Check that every named output was traced (``primary`` first)."""

    def require(slot: tuple[DrvFile | None, str]) -> DrvFile:
        drv, name = slot
        if drv is None:
            transcript = "\n".join(line.decode("utf-8", "replace") for line in log.transcript)
            raise InternalInvariantError(
                f"never got required attribute `{name}`\nstderr was:\n{transcript}"
            )
        return drv

    return log.outputs.zip(output_attr_names()).map_res(require)


def _join_worker(future: Future[EvaluationLog]) -> EvaluationLog:
    try:
        return future.result()
    except InternalInvariantError:
        raise
    except Exception as exc:
        raise WorkerFailureError(exc) from exc


def _decode_stdout(stdout: bytes, returncode: int) -> list[StorePath] | InternalInvariantError:
    """Decode the store paths of a successful run.

    A decoding error is returned rather than raised, so that it can be
    reported together with the stderr transcript once that is folded.
    """
    if returncode != 0:
        return []
    try:
        return decode_store_paths(stdout)
    except InternalInvariantError as exc:
        return exc
