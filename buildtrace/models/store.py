"""Path wrappers for the Nix store and the build description root.

Paths reported by Nix are carried exactly as printed: ``pathlib.Path``
would collapse ``//`` and ``/./`` and turn an empty path into ``.``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, field_validator

# A path kept as the exact text Nix printed. Path-like inputs are accepted.
VerbatimPath = Annotated[str, BeforeValidator(os.fspath)]


class _AbsolutePath(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: VerbatimPath

    @field_validator("path")
    @classmethod
    def _must_be_absolute(cls, value: str) -> str:
        if not os.path.isabs(value):
            raise ValueError(f"expected an absolute path, got {value!r}")
        return value

    def as_path(self) -> Path:
        return Path(self.path)

    def __fspath__(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


class StorePath(_AbsolutePath):
    """A path in the Nix store, as printed by nix-instantiate or nix-build."""

    @classmethod
    def from_line(cls, line: bytes) -> StorePath:
        """Build a StorePath from one raw stdout line."""
        return cls(path=os.fsdecode(line.strip()))


class DrvFile(_AbsolutePath):
    """A derivation handle (``/nix/store/...drv``) not yet realized."""


class NixFile(BaseModel):
    """The build description root a build is evaluated from."""

    model_config = ConfigDict(frozen=True)

    path: Path

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __str__(self) -> str:
        return str(self.path)
