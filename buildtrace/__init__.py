"""buildtrace: instrumented Nix builds that report what they touched.

Wraps ``nix-instantiate`` / ``nix-build`` so that, besides the build result,
every file read during evaluation and both named output derivations are
reported, even when the build fails. Used to decide which files to watch
for rebuilds.
"""

__version__ = "0.1.0"

from buildtrace.core.builder import InstrumentedBuilder
from buildtrace.models.outcome import BuildFailure, BuildSuccess
from buildtrace.cli.app import app as cli

__all__ = ["InstrumentedBuilder", "BuildSuccess", "BuildFailure", "cli", "__version__"]
