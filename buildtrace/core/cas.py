"""Content-addressable file store.

Storage layout: {base_path}/{sha256[0:2]}/{sha256[2:4]}/{sha256}{suffix}
No delete method — files are immutable once stored, so a path handed to
``nix-instantiate`` stays valid for as long as the store exists.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from buildtrace.core.hasher import sha256_hex
from buildtrace.models.artifacts import StoredFile

logger = logging.getLogger(__name__)


class ContentIntegrityError(RuntimeError):
    """Raised when a stored file's hash does not match its address."""


class ContentAddressable:
    """SHA-256 keyed, immutable file store.

    Every file is stored under its SHA-256 digest. Storing the same
    content twice is a no-op (idempotent). There is no update or delete.

    Parameters
    ----------
    base_path:
        Root directory for storage.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    @staticmethod
    def _extract_digest(content_address: str) -> str:
        """Strip the ``sha256:`` prefix from a content address, if present."""
        return content_address.removeprefix("sha256:")

    def _file_path(self, sha256_digest: str, suffix: str) -> Path:
        return self._base / sha256_digest[:2] / sha256_digest[2:4] / f"{sha256_digest}{suffix}"

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(self, data: bytes, *, suffix: str = "") -> StoredFile:
        """Store data and return its content-addressed metadata.

        If the content already exists (same hash), verifies integrity
        and returns the existing file without overwriting.
        """
        digest = sha256_hex(data)
        path = self._file_path(digest, suffix)

        if path.exists():
            if not self.verify(digest, suffix=suffix):
                raise ContentIntegrityError(
                    f"Existing file at {path} failed integrity check"
                )
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a concurrent reader never sees a partial file
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            logger.debug("Stored %d bytes at %s", len(data), path)

        return StoredFile(
            content_address=f"sha256:{digest}",
            path=path,
            size_bytes=len(data),
        )

    def file_from_string(self, text: str, *, suffix: str = ".nix") -> Path:
        """Store *text* as UTF-8 and return the path of the stored file."""
        return self.store(text.encode("utf-8"), suffix=suffix).path

    # ------------------------------------------------------------------
    # Retrieve
    # ------------------------------------------------------------------

    def retrieve(self, content_address: str, *, suffix: str = "") -> bytes:
        """Retrieve file bytes by content address.

        Parameters
        ----------
        content_address:
            Either "sha256:<hex>" or just the hex digest.
        """
        path = self._file_path(self._extract_digest(content_address), suffix)
        if not path.exists():
            raise FileNotFoundError(f"Content not found: {content_address}")
        return path.read_bytes()

    # ------------------------------------------------------------------
    # Check and verify
    # ------------------------------------------------------------------

    def exists(self, content_address: str, *, suffix: str = "") -> bool:
        """Check if content exists in the store."""
        return self._file_path(self._extract_digest(content_address), suffix).exists()

    def verify(self, content_address: str, *, suffix: str = "") -> bool:
        """Re-hash stored data and compare against the content address.

        Returns True if the stored bytes match the expected hash.
        """
        digest = self._extract_digest(content_address)
        path = self._file_path(digest, suffix)
        if not path.exists():
            return False
        return sha256_hex(path.read_bytes()) == digest
