"""Tree and commit object builder and serializer.

A tree maps flat keys to blob hashes and is stored as a canonical JSON blob
in the object store. A commit references one tree, a message, a timestamp,
an author and at most one parent, and is stored as a JSON file in
``<repo>/commits/<hash>``.
"""

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from branchkv.constants import COMMITS_DIR, HASH_ALGORITHM, HASH_LENGTH
from branchkv.errors import BackendIOError
from branchkv.storage.metadata_db import MetadataDB
from branchkv.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


class CommitBuilderError(BackendIOError):
    """Exception raised during tree or commit building."""


def _canonical_json(obj: Dict[str, Any]) -> bytes:
    """Sorted keys, no whitespace."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class CommitBuilder:
    """Builder for creating and persisting tree and commit objects.

    Attributes:
        repo_dir: Path to the repository directory
        object_store: ObjectStore instance for blob management
        metadata_db: MetadataDB instance for indexing
    """

    def __init__(
        self,
        repo_dir: Path,
        object_store: ObjectStore,
        metadata_db: MetadataDB,
    ):
        """Initialize CommitBuilder.

        Args:
            repo_dir: Path to the repository directory
            object_store: ObjectStore for blob storage
            metadata_db: MetadataDB for indexing
        """
        self.repo_dir = Path(repo_dir)
        self.commits_dir = self.repo_dir / COMMITS_DIR
        self.object_store = object_store
        self.metadata_db = metadata_db

        self.commits_dir.mkdir(parents=True, exist_ok=True)

    def write_tree(self, entries: Dict[str, str]) -> str:
        """Store a tree mapping key -> blob hash.

        Returns:
            Tree hash (hash of the canonical JSON payload)
        """
        payload = _canonical_json({"type": "tree", "entries": entries})
        return self.object_store.write_blob(payload)

    def read_tree(self, tree_hash: str) -> Dict[str, str]:
        """Load a tree as a key -> blob hash mapping.

        Raises:
            CommitBuilderError: If the payload is not a tree
        """
        payload = self.object_store.read_blob(tree_hash)
        try:
            obj = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CommitBuilderError(f"Corrupted tree {tree_hash}: {e}") from e

        if not isinstance(obj, dict) or obj.get("type") != "tree":
            raise CommitBuilderError(f"Object is not a tree: {tree_hash}")
        return dict(obj["entries"])

    def create_commit(
        self,
        tree_hash: str,
        message: str,
        author: str,
        parent_hash: Optional[str] = None,
    ) -> str:
        """Create a new commit object.

        Args:
            tree_hash: Hash of a tree already in the object store
            message: Commit message
            author: Author identifier (e.g., "user@hostname")
            parent_hash: Hash of parent commit, or None for first commit

        Returns:
            Commit hash (SHA-256 hex string)

        Raises:
            CommitBuilderError: If commit creation fails
        """
        commit_obj = {
            "type": "commit",
            "tree": tree_hash,
            "parent": parent_hash,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "author": author,
            "message": message,
        }

        commit_hash = self._compute_commit_hash(commit_obj)
        commit_obj["hash"] = commit_hash

        self._write_commit_file(commit_hash, commit_obj)

        try:
            self.metadata_db.insert_commit(
                commit_hash=commit_hash,
                parent_hash=parent_hash,
                tree_hash=tree_hash,
                timestamp=commit_obj["timestamp"],
                author=author,
                message=message,
            )
        except BackendIOError as e:
            raise CommitBuilderError(f"Failed to index commit: {e}") from e

        logger.debug("Created commit %s (tree %s)", commit_hash[:8], tree_hash[:8])
        return commit_hash

    def read_commit(self, commit_hash: str) -> Dict[str, Any]:
        """Read a commit object from disk.

        Args:
            commit_hash: Commit hash (full, or a prefix known to the index)

        Returns:
            Commit object dictionary

        Raises:
            CommitBuilderError: If commit not found or corrupted
        """
        if len(commit_hash) < HASH_LENGTH:
            db_commit = self.metadata_db.get_commit_by_hash(commit_hash)
            if db_commit is None:
                raise CommitBuilderError(f"Commit not found: {commit_hash}")
            commit_hash = db_commit["commit_hash"]

        commit_path = self.commits_dir / commit_hash

        try:
            with open(commit_path, "r", encoding="utf-8") as f:
                commit_obj = json.load(f)
        except FileNotFoundError as e:
            raise CommitBuilderError(f"Commit not found: {commit_hash}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise CommitBuilderError(f"Failed to read commit: {e}") from e

        if commit_obj.get("hash") != commit_hash:
            raise CommitBuilderError(
                f"Commit hash mismatch: expected {commit_hash}, "
                f"got {commit_obj.get('hash')}"
            )

        return commit_obj

    def commit_exists(self, commit_hash: str) -> bool:
        """Check if a commit object exists."""
        return (self.commits_dir / commit_hash).exists()

    def _compute_commit_hash(self, commit_obj: Dict[str, Any]) -> str:
        """Hash the canonical JSON of the commit without its 'hash' field."""
        obj_for_hash = {k: v for k, v in commit_obj.items() if k != "hash"}
        hasher = hashlib.new(HASH_ALGORITHM)
        hasher.update(_canonical_json(obj_for_hash))
        return hasher.hexdigest()

    def _write_commit_file(self, commit_hash: str, commit_obj: Dict[str, Any]) -> None:
        """Write commit object to disk as JSON (atomic temp file + rename).

        Raises:
            CommitBuilderError: If write fails
        """
        commit_path = self.commits_dir / commit_hash
        json_str = json.dumps(commit_obj, indent=2, ensure_ascii=False)

        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.commits_dir,
                prefix=".tmp_commit_",
                suffix=".json",
            )

            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(json_str)
                    f.flush()
                    os.fsync(f.fileno())

                os.replace(tmp_path, commit_path)

            except OSError:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise

        except OSError as e:
            raise CommitBuilderError(f"Failed to write commit file: {e}") from e
