"""End-to-end integration tests — both build phases through fake nix tools.

These tests exercise the InstrumentedBuilder, the classifier, the aggregator,
the stdout decoder and the content-addressable store working together.
"""

from __future__ import annotations

import pytest

from buildtrace.core.builder import InstrumentedBuilder
from buildtrace.core.errors import BuildTraceError, InternalInvariantError
from buildtrace.core.realize import NixBuildRealizer
from buildtrace.models.outcome import BuildFailure, BuildSuccess, Instantiation

PRIMARY = b"trace: attribute: 'primary' -> '/nix/store/bbb-shell.drv'"
GC_ROOTED = b"trace: attribute: 'primary_gc_rooted' -> '/nix/store/ccc-gc.drv'"


class TestSuccessfulBuild:
    """Evaluation succeeds, both attributes are traced, phase 2 runs."""

    @pytest.fixture
    def stderr(self) -> bytes:
        return b"\n".join([b"evaluating file '/etc/foo.nix'", PRIMARY, GC_ROOTED]) + b"\n"

    def test_realizes_gc_rooted_derivation(
        self, make_fake_tool, make_builder, root_nix_file, realizer, stderr
    ):
        tool = make_fake_tool(stdout=b"/nix/store/aaa-x\n", stderr=stderr)
        outcome = make_builder(tool).run(root_nix_file)
        try:
            assert isinstance(outcome, BuildSuccess)
            assert [str(drv) for drv in realizer.calls] == ["/nix/store/ccc-gc.drv"]
            assert outcome.sources == ["/etc/foo.nix"]
            assert str(outcome.artifacts.path) == "/nix/store/ddd-realized"
            assert str(outcome.artifacts.drvs.primary) == "/nix/store/bbb-shell.drv"
            assert outcome.artifacts.outputs.primary == outcome.artifacts.path
            assert outcome.artifacts.outputs.primary_gc_rooted == outcome.artifacts.path
        finally:
            outcome.close()

    def test_instantiation_decodes_stdout(
        self, make_fake_tool, make_builder, root_nix_file, stderr
    ):
        tool = make_fake_tool(stdout=b"/nix/store/aaa-x\n\n/nix/store/aab-y\n", stderr=stderr)
        outcome = make_builder(tool).instrumented_instantiation(root_nix_file)
        try:
            assert isinstance(outcome.artifacts, Instantiation)
            assert [str(p) for p in outcome.artifacts.produced_drvs] == [
                "/nix/store/aaa-x",
                "/nix/store/aab-y",
            ]
        finally:
            outcome.close()

    def test_with_real_realizer_backend(self, make_fake_tool, make_config, cas, root_nix_file, stderr):
        instantiate = make_fake_tool(stdout=b"/nix/store/aaa-x\n", stderr=stderr)
        build = make_fake_tool("nix-build", stdout=b"/nix/store/ddd-env\n")
        config = make_config(
            instantiate_executable=str(instantiate.path),
            build_executable=str(build.path),
        )
        outcome = InstrumentedBuilder(cas=cas, config=config).run(root_nix_file)
        try:
            assert isinstance(InstrumentedBuilder(config=config).realizer, NixBuildRealizer)
            assert str(outcome.artifacts.path) == "/nix/store/ddd-env"
            assert build.args[0] == "/nix/store/ccc-gc.drv"
        finally:
            outcome.close()


class TestFailedEvaluation:
    """Evaluation exits non-zero: a failure value, never an exception."""

    STDERR = b"evaluating file '/etc/foo.nix'\nerror: undefined variable 'pkgs'\n"

    def test_failure_carries_full_transcript(
        self, make_fake_tool, make_builder, root_nix_file, realizer
    ):
        tool = make_fake_tool(stdout=b"", stderr=self.STDERR, exit_code=1)
        outcome = make_builder(tool).run(root_nix_file)
        assert isinstance(outcome, BuildFailure)
        assert outcome.exit_status == 1
        assert outcome.log_lines == [
            b"evaluating file '/etc/foo.nix'",
            b"error: undefined variable 'pkgs'",
        ]
        assert outcome.sources == ["/etc/foo.nix"]
        assert realizer.calls == []

    def test_partial_outputs_tolerated_on_failure(
        self, make_fake_tool, make_builder, root_nix_file
    ):
        tool = make_fake_tool(stderr=PRIMARY + b"\nerror: boom\n", exit_code=1)
        outcome = make_builder(tool).instrumented_instantiation(root_nix_file)
        assert isinstance(outcome, BuildFailure)


class TestMissingAttribute:
    """Evaluation succeeds but never traces ``primary_gc_rooted``."""

    def test_is_fatal_not_a_build_error(self, make_fake_tool, make_builder, root_nix_file, realizer):
        tool = make_fake_tool(
            stdout=b"/nix/store/aaa-x\n",
            stderr=b"evaluating file '/etc/foo.nix'\n" + PRIMARY + b"\n",
        )
        with pytest.raises(InternalInvariantError, match="`primary_gc_rooted`") as excinfo:
            make_builder(tool).run(root_nix_file)
        assert not isinstance(excinfo.value, BuildTraceError)
        assert "evaluating file '/etc/foo.nix'" in str(excinfo.value)
        assert realizer.calls == []

    def test_missing_primary_reported_first(self, make_fake_tool, make_builder, root_nix_file):
        tool = make_fake_tool(stdout=b"/nix/store/aaa-x\n", stderr=b"")
        with pytest.raises(InternalInvariantError, match="`primary`"):
            make_builder(tool).run(root_nix_file)
