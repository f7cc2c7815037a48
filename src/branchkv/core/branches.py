"""Branch management for branchkv.

A branch is a named pointer into commit history. Branches share the object
store but nothing else: creating one copies the active branch's head
pointer, after which the two move independently.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from branchkv.core.staging import name_violation
from branchkv.errors import (
    BackendIOError,
    BranchNotFoundError,
    CannotRemoveActiveError,
    DirtyStagingError,
    DuplicateBranchError,
    InvalidBranchNameError,
    LastBranchError,
)
from branchkv.storage import CommitBuilder, MetadataDB

logger = logging.getLogger(__name__)


class BranchManager:
    """Enumerates, creates, switches and removes branches.

    Attributes:
        metadata_db: MetadataDB holding branch references and HEAD
        commit_builder: CommitBuilder used to resolve head trees
    """

    def __init__(
        self,
        metadata_db: MetadataDB,
        commit_builder: CommitBuilder,
        active: str,
        pending: Callable[[], int],
    ):
        """Initialize BranchManager.

        Args:
            metadata_db: MetadataDB for branch references
            commit_builder: CommitBuilder for reading commits and trees
            active: Name of the active branch
            pending: Returns the number of staged entries; switching is
                refused while it is non-zero
        """
        self.metadata_db = metadata_db
        self.commit_builder = commit_builder
        self._active = active
        self._pending = pending
        self._tree_cache: Optional[Tuple[str, Dict[str, str]]] = None

    @property
    def active_branch(self) -> str:
        return self._active

    def branches(self) -> List[str]:
        return self.metadata_db.list_branches()

    def has_branch(self, name: str) -> bool:
        return self.metadata_db.get_branch(name) is not None

    def has_branches(self) -> bool:
        return len(self.branches()) > 0

    def head(self, name: Optional[str] = None) -> Optional[str]:
        """Head commit hash of ``name`` (default: active branch).

        Returns None if the branch has no commits yet.

        Raises:
            BranchNotFoundError: If the branch doesn't exist
        """
        name = name or self._active
        record = self.metadata_db.get_branch(name)
        if record is None:
            raise BranchNotFoundError(name)
        return record["head_hash"]

    def has_commits(self) -> bool:
        return self.head() is not None

    def committed_tree(self) -> Dict[str, str]:
        """Key -> blob hash mapping of the active branch's head commit.

        The mapping is cached per head commit and must not be mutated.
        """
        head = self.head()
        if head is None:
            return {}
        if self._tree_cache is not None and self._tree_cache[0] == head:
            return self._tree_cache[1]

        commit = self.commit_builder.read_commit(head)
        entries = self.commit_builder.read_tree(commit["tree"])
        self._tree_cache = (head, entries)
        logger.debug("Loaded tree of %s (%d keys)", head[:8], len(entries))
        return entries

    def branch(self, name: str) -> None:
        """Create ``name`` at the active branch's head without switching.

        Raises:
            InvalidBranchNameError: If the name is not a valid identifier
            DuplicateBranchError: If the branch already exists
        """
        reason = name_violation(name)
        if reason is not None:
            raise InvalidBranchNameError(name, reason)
        if self.has_branch(name):
            raise DuplicateBranchError(name)

        head = self.head()
        self.metadata_db.create_branch(name, head)
        logger.info("Created branch %s at %s", name, head[:8] if head else "(no commits)")

    def switch_branch(self, name: str) -> None:
        """Make ``name`` the active branch.

        Raises:
            BranchNotFoundError: If the branch doesn't exist
            DirtyStagingError: If staged changes are pending
        """
        if not self.has_branch(name):
            raise BranchNotFoundError(name)
        pending = self._pending()
        if pending:
            raise DirtyStagingError(name, pending)

        self.metadata_db.set_head(name)
        self._active = name
        logger.info("Switched to branch %s", name)

    def remove_branch(self, name: str) -> None:
        """Delete branch ``name``. Its commits stay in the object store.

        Raises:
            BranchNotFoundError: If the branch doesn't exist
            CannotRemoveActiveError: If it is the active branch
            LastBranchError: If it is the only branch left
        """
        if not self.has_branch(name):
            raise BranchNotFoundError(name)
        if name == self._active:
            raise CannotRemoveActiveError(name)
        if len(self.branches()) <= 1:
            raise LastBranchError(name)

        self.metadata_db.delete_branch(name)
        logger.info("Removed branch %s", name)

    def advance(self, commit_hash: Optional[str]) -> None:
        """Point the active branch at ``commit_hash`` in one transaction."""
        try:
            self.metadata_db.update_branch(self._active, commit_hash)
        except BackendIOError as e:
            if not self.has_branch(self._active):
                raise BranchNotFoundError(self._active) from e
            raise
