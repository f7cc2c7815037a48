"""Content-addressable blob storage for branchkv.

Values and tree payloads are stored as blobs identified by their SHA-256
hash under ``<repo>/objects/``. Identical content is written once; writes
are atomic (temp file + rename) and very large blobs are gzip-compressed.
"""

import gzip
import hashlib
import logging
import os
import string
import tempfile
from pathlib import Path
from typing import Optional

from branchkv.constants import (
    GZIP_THRESHOLD,
    HASH_ALGORITHM,
    HASH_LENGTH,
    OBJECTS_DIR,
)
from branchkv.errors import BackendIOError

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset(string.hexdigits.lower())
_GZIP_SUFFIX = ".gz"


class BlobNotFoundError(BackendIOError):
    """Raised when a blob cannot be found in the object store."""


class BlobCorruptedError(BackendIOError):
    """Raised when a blob hash is malformed or doesn't match its content."""


class ObjectStore:
    """Content-addressable storage for value and tree blobs.

    Storage layout:
        <repo>/objects/<hash[:2]>/<hash[2:]>      # Raw blob
        <repo>/objects/<hash[:2]>/<hash[2:]>.gz   # Compressed blob

    Attributes:
        repo_dir: Path to the repository directory
        objects_dir: Path to the objects directory

    Example:
        >>> store = ObjectStore(Path("data.kv"))
        >>> blob_hash = store.write_blob(b"hello")
        >>> assert store.read_blob(blob_hash) == b"hello"
    """

    def __init__(self, repo_dir: Path) -> None:
        """Initialize the object store.

        Raises:
            ValueError: If repo_dir doesn't exist
        """
        self.repo_dir = Path(repo_dir)
        self.objects_dir = self.repo_dir / OBJECTS_DIR

        if not self.repo_dir.exists():
            raise ValueError(f"Repository directory not found: {repo_dir}")

    @staticmethod
    def hash_content(content: bytes) -> str:
        """Compute the SHA-256 hex digest used as a blob's identifier."""
        return hashlib.new(HASH_ALGORITHM, content).hexdigest()

    @staticmethod
    def is_valid_hash(blob_hash: str) -> bool:
        """True if ``blob_hash`` is a full lowercase hex digest."""
        return (
            isinstance(blob_hash, str)
            and len(blob_hash) == HASH_LENGTH
            and set(blob_hash) <= _HEX_DIGITS
        )

    def write_blob(self, content: bytes, compress: Optional[bool] = None) -> str:
        """Store ``content`` and return its hash.

        Content already in the store is not written again, whichever form
        (raw or compressed) it was stored in.

        Args:
            content: Binary content to store
            compress: Force compression (True), no compression (False), or
                compress at GZIP_THRESHOLD and above (None, default)

        Returns:
            SHA-256 hash of the content (64 hex characters)

        Raises:
            BackendIOError: If the write fails (permissions, disk full, etc.)
        """
        blob_hash = self.hash_content(content)
        if self._locate(blob_hash) is not None:
            return blob_hash

        if compress is None:
            compress = len(content) >= GZIP_THRESHOLD
        payload = gzip.compress(content, compresslevel=6) if compress else content

        try:
            self._write_atomic(self._shard_path(blob_hash, compress), payload)
        except OSError as e:
            raise BackendIOError(f"Failed to write blob {blob_hash}: {e}") from e

        logger.debug(
            "Wrote blob %s (%d bytes%s)",
            blob_hash[:8], len(content), ", gzip" if compress else "",
        )
        return blob_hash

    def read_blob(self, blob_hash: str, verify_hash: bool = True) -> bytes:
        """Return the content stored under ``blob_hash``.

        Raises:
            BlobCorruptedError: If the hash is malformed, or the content
                doesn't hash back to it (only when verify_hash is set)
            BlobNotFoundError: If no such blob is stored
            BackendIOError: If the blob file can't be read or unpacked
        """
        if not self.is_valid_hash(blob_hash):
            raise BlobCorruptedError(f"Malformed blob hash: {blob_hash!r}")

        path = self._locate(blob_hash)
        if path is None:
            raise BlobNotFoundError(f"Blob not found: {blob_hash}")

        try:
            data = path.read_bytes()
            if path.suffix == _GZIP_SUFFIX:
                data = gzip.decompress(data)
        except (OSError, EOFError) as e:
            raise BackendIOError(f"Failed to read blob {blob_hash}: {e}") from e

        if verify_hash:
            actual = self.hash_content(data)
            if actual != blob_hash:
                raise BlobCorruptedError(
                    f"Blob corrupted: expected {blob_hash}, got {actual}"
                )
        return data

    def blob_exists(self, blob_hash: str) -> bool:
        """Check if a blob is stored; malformed hashes never are."""
        return self.is_valid_hash(blob_hash) and self._locate(blob_hash) is not None

    def _shard_path(self, blob_hash: str, compressed: bool = False) -> Path:
        """objects/<hash[:2]>/<hash[2:]>[.gz]"""
        name = blob_hash[2:] + (_GZIP_SUFFIX if compressed else "")
        return self.objects_dir / blob_hash[:2] / name

    def _locate(self, blob_hash: str) -> Optional[Path]:
        for compressed in (True, False):
            path = self._shard_path(blob_hash, compressed)
            if path.exists():
                return path
        return None

    def _write_atomic(self, path: Path, payload: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".blob")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            # A concurrent writer stored the same content first
            if path.exists():
                return
            raise
