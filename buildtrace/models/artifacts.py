"""Content-addressed file models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class StoredFile(BaseModel):
    """A file written to the content-addressable store.

    The content_address is both the identity and the integrity check.
    """

    model_config = ConfigDict(frozen=True)

    content_address: str  # "sha256:<hex>"
    path: Path
    size_bytes: int
