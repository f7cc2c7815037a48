"""Commit protocol for branchkv.

Materializes the staging index into a tree and commit object, then moves
the active branch's pointer. The pointer update is the last step and runs
in a single database transaction: if anything fails before or during it,
the branch and the staging index are exactly as they were.
"""

import logging
from typing import Any, Dict, List, Optional

from branchkv.core.branches import BranchManager
from branchkv.core.staging import StagingIndex
from branchkv.errors import NoCommitsError, NothingToCommitError
from branchkv.storage import CommitBuilder, ObjectStore

logger = logging.getLogger(__name__)


class CommitManager:
    """Creates commits from staged entries and rolls branches back.

    Attributes:
        staging: StagingIndex with the pending entries
        branches: BranchManager owning the active branch pointer
        commit_builder: CommitBuilder writing tree and commit objects
        object_store: ObjectStore receiving value blobs
        author: Author recorded on new commits
    """

    def __init__(
        self,
        staging: StagingIndex,
        branches: BranchManager,
        commit_builder: CommitBuilder,
        object_store: ObjectStore,
        author: str,
    ):
        self.staging = staging
        self.branches = branches
        self.commit_builder = commit_builder
        self.object_store = object_store
        self.author = author

    def commit(self, message: str) -> str:
        """Commit the staged entries to the active branch.

        Args:
            message: Commit message

        Returns:
            Hash of the new commit

        Raises:
            NothingToCommitError: If nothing is staged
            BackendIOError: If storage fails; the branch is not moved and
                the staged entries are kept for a retry
        """
        staged = self.staging.entries()
        if not staged:
            raise NothingToCommitError()

        branch = self.branches.active_branch
        parent_hash = self.branches.head()
        entries = dict(self.branches.committed_tree())

        for key, entry in staged.items():
            if entry.is_remove:
                entries.pop(key, None)
            else:
                entries[key] = self.object_store.write_blob(entry.value)  # type: ignore[arg-type]

        tree_hash = self.commit_builder.write_tree(entries)
        commit_hash = self.commit_builder.create_commit(
            tree_hash=tree_hash,
            message=message,
            author=self.author,
            parent_hash=parent_hash,
        )

        self.branches.advance(commit_hash)
        self.staging.clear()

        logger.info(
            "Committed %s on %s (%d change(s), %d key(s))",
            commit_hash[:8], branch, len(staged), len(entries),
        )
        return commit_hash

    def rollback(self) -> Optional[str]:
        """Move the active branch back to its head's parent.

        The staging index is left untouched and the discarded commit stays
        in the object store.

        Returns:
            The new head commit hash, or None if the branch is now empty

        Raises:
            NoCommitsError: If the active branch has no commits
        """
        branch = self.branches.active_branch
        head = self.branches.head()
        if head is None:
            raise NoCommitsError(branch)

        parent_hash = self.commit_builder.read_commit(head)["parent"]
        self.branches.advance(parent_hash)

        logger.info(
            "Rolled back %s from %s to %s",
            branch, head[:8], parent_hash[:8] if parent_hash else "(no commits)",
        )
        return parent_hash

    def history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Commits reachable from the active head, newest first."""
        commits: List[Dict[str, Any]] = []
        commit_hash = self.branches.head()
        while commit_hash is not None:
            if limit is not None and len(commits) >= limit:
                break
            commit = self.commit_builder.read_commit(commit_hash)
            commits.append(commit)
            commit_hash = commit["parent"]
        return commits
