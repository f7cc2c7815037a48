"""Error types for branchkv.

Every failure is reported through a specific exception class so callers
can branch on the kind of failure. Storage faults are wrapped into the
BackendIOError family; nothing is retried.
"""


class BranchKVError(Exception):
    """Base exception for all branchkv errors."""


class NotFoundError(BranchKVError):
    """Raised when a repository, branch or key does not exist."""


class RepositoryNotFoundError(NotFoundError):
    """Raised when no repository exists at the given path."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a branchkv repository: {path}")


class BranchNotFoundError(NotFoundError):
    """Raised when a branch does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Branch not found: {name}")


class KeyNotFoundError(NotFoundError, KeyError):
    """Raised when a key is absent from the effective view."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Key not found: {key}")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return self.args[0]


class AlreadyExistsError(BranchKVError):
    """Raised when creating something that already exists."""


class RepositoryExistsError(AlreadyExistsError):
    """Raised when initializing over an existing repository."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Repository already exists: {path}")


class DuplicateBranchError(AlreadyExistsError):
    """Raised when creating a branch whose name is taken."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Branch already exists: {name}")


class InvalidKeyError(BranchKVError, ValueError):
    """Raised when a key contains disallowed characters."""

    def __init__(self, key: str, reason: str = "contains a path separator"):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid key {key!r}: {reason}")


class InvalidBranchNameError(InvalidKeyError):
    """Raised when a branch name contains disallowed characters."""

    def __init__(self, name: str, reason: str = "contains a path separator"):
        super().__init__(name, reason)
        self.args = (f"Invalid branch name {name!r}: {reason}",)


class DirtyStagingError(BranchKVError):
    """Raised when switching branches with pending staged changes."""

    def __init__(self, branch: str, pending: int):
        self.branch = branch
        self.pending = pending
        super().__init__(
            f"Cannot switch to {branch}: {pending} staged change(s), "
            "commit or reset first"
        )


class NothingToCommitError(BranchKVError):
    """Raised when committing with an empty staging index."""

    def __init__(self) -> None:
        super().__init__("Nothing to commit (staging index is empty)")


class CannotRemoveActiveError(BranchKVError):
    """Raised when removing the branch currently checked out."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot remove the active branch: {name}")


class LastBranchError(BranchKVError):
    """Raised when removing the only remaining branch."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot remove the last branch: {name}")


class NoCommitsError(BranchKVError):
    """Raised when a branch operation needs a commit and there is none."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch has no commits: {branch}")


class BackendIOError(BranchKVError):
    """Raised when the underlying storage fails."""
