"""Repository handle for branchkv.

A Repository is one open session on a store at a path. It owns the
database connection and wires the staging index, change tracker, branch
manager and commit protocol together behind a key-value interface.

Not safe for unsynchronized use from several threads; callers sharing a
handle must serialize access themselves.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from branchkv.config import default_author
from branchkv.constants import COMMITS_DIR, DEFAULT_BRANCH, METADATA_DB, OBJECTS_DIR
from branchkv.core import BranchManager, ChangeTracker, CommitManager, StagingIndex
from branchkv.core.staging import name_violation
from branchkv.errors import (
    BackendIOError,
    InvalidBranchNameError,
    RepositoryExistsError,
    RepositoryNotFoundError,
)
from branchkv.storage import CommitBuilder, MetadataDB, ObjectStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Repository:
    """Versioned key-value store with branches.

    Use :meth:`init` to create a repository and :meth:`open` to open an
    existing one. Close it with :meth:`close` or use it as a context
    manager.

    Example:
        >>> with Repository.init("data.kv") as repo:
        ...     repo.insert_key("a", b"\\x01\\x02\\x03")
        ...     repo.commit("init")
        ...     repo.value("a")
        b'\\x01\\x02\\x03'
    """

    def __init__(
        self,
        path: Path,
        metadata_db: MetadataDB,
        active_branch: str,
        author: Optional[str] = None,
    ) -> None:
        self._path = Path(path)
        self.metadata_db = metadata_db
        self.object_store = ObjectStore(self._path)
        self.commit_builder = CommitBuilder(self._path, self.object_store, metadata_db)

        self._branches = BranchManager(
            metadata_db,
            self.commit_builder,
            active_branch,
            pending=lambda: self._staging.pending(),
        )
        self._staging = StagingIndex(self._branches, self.object_store)
        self._tracker = ChangeTracker(self._staging)
        self._commits = CommitManager(
            self._staging,
            self._branches,
            self.commit_builder,
            self.object_store,
            author or default_author(),
        )

    @classmethod
    def init(
        cls,
        path: PathLike,
        branch: str = DEFAULT_BRANCH,
        author: Optional[str] = None,
    ) -> "Repository":
        """Create a new repository at ``path`` with one empty branch.

        Raises:
            RepositoryExistsError: If a repository already exists at path
            InvalidBranchNameError: If ``branch`` is not a valid name
            BackendIOError: If the layout can't be created
        """
        path = Path(path).absolute()
        if (path / METADATA_DB).exists():
            raise RepositoryExistsError(str(path))

        reason = name_violation(branch)
        if reason is not None:
            raise InvalidBranchNameError(branch, reason)

        try:
            path.mkdir(parents=True, exist_ok=True)
            (path / OBJECTS_DIR).mkdir(exist_ok=True)
            (path / COMMITS_DIR).mkdir(exist_ok=True)
        except OSError as e:
            raise BackendIOError(f"Failed to create repository at {path}: {e}") from e

        db = MetadataDB(path)
        try:
            db.open()
            db.init_schema()
            db.create_branch(branch, None)
            db.set_head(branch)
            repo = cls(path, db, branch, author)
        except BaseException:
            db.close()
            raise

        logger.info("Initialized repository at %s (branch %s)", path, branch)
        return repo

    @classmethod
    def open(cls, path: PathLike, author: Optional[str] = None) -> "Repository":
        """Open an existing repository at ``path``.

        Raises:
            RepositoryNotFoundError: If there is no repository at path
            BackendIOError: If the repository has no usable branch
        """
        path = Path(path).absolute()
        if not (path / METADATA_DB).is_file():
            raise RepositoryNotFoundError(str(path))

        db = MetadataDB(path)
        try:
            db.open()
            branches = db.list_branches()
            if not branches:
                raise BackendIOError(f"Repository has no branches: {path}")

            active = db.get_head()
            if active not in branches:
                logger.warning("HEAD %r is missing, falling back to %s", active, branches[0])
                active = branches[0]
                db.set_head(active)

            repo = cls(path, db, active, author)
        except BaseException:
            db.close()
            raise

        logger.debug("Opened repository at %s (branch %s)", path, active)
        return repo

    def close(self) -> None:
        """Release the database connection. Safe to call twice."""
        self.metadata_db.close()

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Repository(path={str(self._path)!r}, branch={self.active_branch!r})"

    @property
    def path(self) -> Path:
        """Repository storage path."""
        return self._path

    @property
    def active_branch(self) -> str:
        """Name of the working branch."""
        return self._branches.active_branch

    # Branches

    def branches(self) -> List[str]:
        """Branch names in lexicographic order."""
        return self._branches.branches()

    def branch(self, name: str) -> None:
        """Create branch ``name`` at the current head without switching to it."""
        self._branches.branch(name)

    def switch_branch(self, name: str) -> None:
        """Make ``name`` the active branch. Refused while changes are staged."""
        self._branches.switch_branch(name)

    def remove_branch(self, name: str) -> None:
        self._branches.remove_branch(name)

    def has_branch(self, name: str) -> bool:
        return self._branches.has_branch(name)

    def has_branches(self) -> bool:
        return self._branches.has_branches()

    def has_commits(self) -> bool:
        """True if the active branch has at least one commit."""
        return self._branches.has_commits()

    def is_empty(self) -> bool:
        """True if the effective view has no keys."""
        return len(self._staging) == 0

    # Keys

    def keys(self) -> List[str]:
        """Effective keys (committed plus staged), sorted."""
        return self._staging.keys()

    def value(self, key: str) -> bytes:
        """Current value of ``key``, staged or committed."""
        return self._staging.value(key)

    def insert_key(self, key: str, value: bytes) -> None:
        """Stage ``key`` = ``value``."""
        self._staging.insert_key(key, value)

    def remove_key(self, key: str) -> None:
        """Stage removal of ``key``."""
        self._staging.remove_key(key)

    def reset_key(self, key: str) -> None:
        """Discard pending changes to ``key``."""
        self._staging.reset_key(key)

    def has_key(self, key: str) -> bool:
        return self._staging.has_key(key)

    def has_keys(self) -> bool:
        return self._staging.has_keys()

    def key_changed(self, key: str) -> bool:
        """True if the staged state of ``key`` differs from the last commit."""
        return self._staging.key_changed(key)

    def __len__(self) -> int:
        return len(self._staging)

    # Changes

    def changed(self) -> bool:
        """True if anything is staged."""
        return self._tracker.changed()

    def reset(self) -> None:
        """Discard all staged changes."""
        self._tracker.reset()

    def remove(self) -> None:
        """Stage removal of every key."""
        self._tracker.remove()

    # Commits

    def commit(self, message: str) -> str:
        """Commit staged changes to the active branch and return the commit hash."""
        return self._commits.commit(message)

    def rollback(self) -> Optional[str]:
        """Drop the active branch's head commit; return the new head."""
        return self._commits.rollback()

    def history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Commits of the active branch, newest first."""
        return self._commits.history(limit)
