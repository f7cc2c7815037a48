"""Staging index for branchkv.

The staging index buffers pending per-key operations in memory until the
next commit. Reads overlay those operations on the active branch's last
committed tree, so callers see their own writes before anything is
written to the object store.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from branchkv.constants import KEY_SEPARATORS, RESERVED_NAMES
from branchkv.errors import InvalidKeyError, KeyNotFoundError
from branchkv.storage import ObjectStore

if TYPE_CHECKING:
    from branchkv.core.branches import BranchManager

logger = logging.getLogger(__name__)

OP_SET = "set"
OP_REMOVE = "remove"


def name_violation(name: str) -> Optional[str]:
    """Return why ``name`` can't be used as a key or branch name, or None."""
    if not isinstance(name, str):
        return f"must be a string, got {type(name).__name__}"
    if not name:
        return "must not be empty"
    if name in RESERVED_NAMES:
        return "is reserved"
    for sep in KEY_SEPARATORS:
        if sep in name:
            return f"contains a path separator ({sep!r})"
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return "is not valid UTF-8"
    return None


@dataclass(frozen=True)
class StagingEntry:
    """One pending operation for a key: ``set`` with a value, or ``remove``."""

    op: str
    value: Optional[bytes] = None

    @classmethod
    def set(cls, value: bytes) -> "StagingEntry":
        return cls(OP_SET, value)

    @classmethod
    def remove(cls) -> "StagingEntry":
        return cls(OP_REMOVE)

    @property
    def is_remove(self) -> bool:
        return self.op == OP_REMOVE


class StagingIndex:
    """In-memory buffer of pending key operations for the active branch.

    Holds at most one entry per key; the last write wins. The committed
    side of the overlay is resolved through the branch manager on every
    read, so a branch switch or rollback is picked up without copying
    state.

    Attributes:
        branches: BranchManager resolving the committed tree
        object_store: ObjectStore holding committed values
    """

    def __init__(self, branches: "BranchManager", object_store: ObjectStore):
        self.branches = branches
        self.object_store = object_store
        self._entries: Dict[str, StagingEntry] = {}

    def __len__(self) -> int:
        """Number of keys in the effective view."""
        return len(self.keys())

    def __repr__(self) -> str:
        return f"StagingIndex(branch={self.branches.active_branch!r}, pending={self.pending()})"

    def keys(self) -> List[str]:
        """Effective keys in lexicographic order."""
        keys = set(self.branches.committed_tree())
        for key, entry in self._entries.items():
            if entry.is_remove:
                keys.discard(key)
            else:
                keys.add(key)
        return sorted(keys)

    def value(self, key: str) -> bytes:
        """Return the staged value, else the last-committed value.

        Raises:
            KeyNotFoundError: If the key is staged for removal or absent
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_remove:
                raise KeyNotFoundError(key)
            return entry.value  # type: ignore[return-value]

        blob_hash = self.branches.committed_tree().get(key)
        if blob_hash is None:
            raise KeyNotFoundError(key)
        return self.object_store.read_blob(blob_hash)

    def has_key(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is not None:
            return not entry.is_remove
        return key in self.branches.committed_tree()

    def insert_key(self, key: str, value: bytes) -> None:
        """Stage ``key`` to be set to ``value``.

        Raises:
            InvalidKeyError: If the key is not a valid name (see name_violation)
            TypeError: If value is not bytes-like
        """
        reason = name_violation(key)
        if reason is not None:
            raise InvalidKeyError(key, reason)
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"Value must be bytes-like, got {type(value).__name__}")

        self._entries[key] = StagingEntry.set(bytes(value))
        logger.debug("Staged set %s (%d bytes)", key, len(value))

    def remove_key(self, key: str) -> None:
        """Stage removal of ``key``.

        A key that only exists in staging has its pending entry dropped
        instead of getting a tombstone.

        Raises:
            KeyNotFoundError: If the key is not in the effective view
        """
        if not self.has_key(key):
            raise KeyNotFoundError(key)

        if key in self.branches.committed_tree():
            self._entries[key] = StagingEntry.remove()
        else:
            del self._entries[key]
        logger.debug("Staged remove %s", key)

    def reset_key(self, key: str) -> None:
        """Discard any pending entry for ``key``."""
        if self._entries.pop(key, None) is not None:
            logger.debug("Reset %s", key)

    def key_changed(self, key: str) -> bool:
        """Check whether the staged entry for ``key`` differs from the commit.

        Values are compared by content hash, which is the blob identifier
        the committed tree already stores.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False

        committed_hash = self.branches.committed_tree().get(key)
        if entry.is_remove:
            return committed_hash is not None
        if committed_hash is None:
            return True
        return self.object_store.hash_content(entry.value) != committed_hash  # type: ignore[arg-type]

    def has_keys(self) -> bool:
        return len(self) > 0

    def pending(self) -> int:
        """Number of staged entries."""
        return len(self._entries)

    def entries(self) -> Dict[str, StagingEntry]:
        """Snapshot of the staged entries."""
        return dict(self._entries)

    def clear(self) -> None:
        """Drop every staged entry."""
        self._entries.clear()
