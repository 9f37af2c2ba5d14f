"""Shared test fixtures for buildtrace."""

from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from buildtrace.config import BuildTraceConfig
from buildtrace.core.builder import InstrumentedBuilder
from buildtrace.core.cas import ContentAddressable
from buildtrace.models.outcome import GcRootTempDir
from buildtrace.models.store import DrvFile, NixFile, StorePath


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files."""
    return tmp_path


@pytest.fixture
def cas(tmp_dir: Path) -> ContentAddressable:
    """Provide a fresh ContentAddressable store in a temp directory."""
    return ContentAddressable(tmp_dir / "cas")


@pytest.fixture
def root_nix_file(tmp_dir: Path) -> NixFile:
    """Provide a build description root that exists on disk."""
    path = tmp_dir / "shell.nix"
    path.write_text("{ pkgs ? import <nixpkgs> {} }: pkgs.mkShell {}\n")
    return NixFile(path=path)


# ---------------------------------------------------------------------------
# Fake executables — small shell scripts standing in for nix tools
# ---------------------------------------------------------------------------


class FakeTool:
    """A fake executable that replays canned output and records its argv."""

    def __init__(self, directory: Path, name: str) -> None:
        self.directory = directory
        self.path = directory / name
        self.args_file = directory / f"{name}.args"
        self._stdout = directory / f"{name}.stdout"
        self._stderr = directory / f"{name}.stderr"

    def configure(
        self, *, stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0
    ) -> FakeTool:
        self._stdout.write_bytes(stdout)
        self._stderr.write_bytes(stderr)
        self.path.write_text(
            "#!/bin/sh\n"
            f"printf '%s\\n' \"$@\" > '{self.args_file}'\n"
            f"cat '{self._stdout}'\n"
            f"cat '{self._stderr}' >&2\n"
            f"exit {exit_code}\n"
        )
        self.path.chmod(self.path.stat().st_mode | stat.S_IEXEC)
        return self

    @property
    def called(self) -> bool:
        return self.args_file.exists()

    @property
    def args(self) -> list[str]:
        return self.args_file.read_text().splitlines()


@pytest.fixture
def make_fake_tool(tmp_dir: Path) -> Callable[..., FakeTool]:
    """Factory fixture: write a fake executable into a temp bin directory."""
    bin_dir = tmp_dir / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _factory(
        name: str = "nix-instantiate",
        *,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_code: int = 0,
    ) -> FakeTool:
        return FakeTool(bin_dir, name).configure(
            stdout=stdout, stderr=stderr, exit_code=exit_code
        )

    return _factory


# ---------------------------------------------------------------------------
# Realizer and builder factories
# ---------------------------------------------------------------------------


class RecordingRealizer:
    """Realizer double that records every derivation it is asked to build."""

    def __init__(self, result: str = "/nix/store/ddd-realized") -> None:
        self.result = StorePath(path=Path(result))
        self.calls: list[DrvFile] = []
        self.roots: list[GcRootTempDir] = []

    def realize(self, drv: DrvFile) -> tuple[StorePath, GcRootTempDir]:
        self.calls.append(drv)
        root = GcRootTempDir(prefix="buildtrace-test-")
        self.roots.append(root)
        return self.result, root


@pytest.fixture
def realizer() -> RecordingRealizer:
    """Provide a realizer that never runs nix-build."""
    return RecordingRealizer()


@pytest.fixture
def make_config(tmp_dir: Path) -> Callable[..., BuildTraceConfig]:
    """Factory fixture: a BuildTraceConfig pointing into the temp dir."""

    def _factory(**overrides) -> BuildTraceConfig:
        defaults = {
            "cas_path": tmp_dir / "cas",
            "run_time_closure": tmp_dir / "runtime.nix",
            "gc_root_prefix": "buildtrace-test-",
        }
        defaults.update(overrides)
        return BuildTraceConfig(**defaults)

    return _factory


@pytest.fixture
def make_builder(
    cas: ContentAddressable,
    realizer: RecordingRealizer,
    make_config: Callable[..., BuildTraceConfig],
) -> Callable[..., InstrumentedBuilder]:
    """Factory fixture: an InstrumentedBuilder running a fake nix-instantiate."""

    def _factory(tool: FakeTool, **config_overrides) -> InstrumentedBuilder:
        config = make_config(instantiate_executable=str(tool.path), **config_overrides)
        return InstrumentedBuilder(cas=cas, realizer=realizer, config=config)

    return _factory
