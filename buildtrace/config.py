"""Runtime configuration — env-driven.

Centralized config using pydantic-settings for environment variable support.
Reads from a .env file and BUILDTRACE_* environment variables.
"""

from __future__ import annotations

from importlib.resources import files
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _packaged_nix_file(name: str) -> Path:
    """Return the filesystem path of a Nix file shipped inside the package."""
    return Path(str(files("buildtrace") / "nix" / name))


class BuildTraceConfig(BaseSettings):
    """Configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export BUILDTRACE_LOG_LEVEL=DEBUG
        export BUILDTRACE_INSTANTIATE_EXECUTABLE=/run/current-system/sw/bin/nix-instantiate
        export BUILDTRACE_CAS_PATH=/var/cache/buildtrace/cas

    Or via .env file::

        BUILDTRACE_PARSE_IN_WORKER=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BUILDTRACE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # External tools
    instantiate_executable: str = "nix-instantiate"
    build_executable: str = "nix-build"
    verbosity_flags: list[str] = ["-vv"]  # -vv prints "evaluating file" lines

    # Runtime dependencies handed to the instrumentation script
    run_time_closure: Path = Field(
        default_factory=lambda: _packaged_nix_file("runtime.nix")
    )

    # Storage
    cas_path: Path = Path(".buildtrace/cas")
    gc_root_prefix: str = "buildtrace-gc-"

    # Aggregate stderr on a worker thread while stdout is decoded
    parse_in_worker: bool = True


# Module-level singleton, import as `from buildtrace.config import config`
config = BuildTraceConfig()
