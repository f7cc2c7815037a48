"""branchkv - a versioned key-value store with branches.

branchkv exposes insert/remove/lookup over an immutable, content-addressed
object store, with Git-like branches, commits and history.
"""

__version__ = "0.1.0"
__author__ = "branchkv Contributors"

from branchkv.errors import (
    AlreadyExistsError,
    BackendIOError,
    BranchKVError,
    BranchNotFoundError,
    CannotRemoveActiveError,
    DirtyStagingError,
    DuplicateBranchError,
    InvalidBranchNameError,
    InvalidKeyError,
    KeyNotFoundError,
    LastBranchError,
    NoCommitsError,
    NotFoundError,
    NothingToCommitError,
    RepositoryExistsError,
    RepositoryNotFoundError,
)
from branchkv.repository import Repository

__all__ = [
    "__version__",
    "__author__",
    "Repository",
    "BranchKVError",
    "NotFoundError",
    "RepositoryNotFoundError",
    "BranchNotFoundError",
    "KeyNotFoundError",
    "AlreadyExistsError",
    "RepositoryExistsError",
    "DuplicateBranchError",
    "InvalidKeyError",
    "InvalidBranchNameError",
    "DirtyStagingError",
    "NothingToCommitError",
    "CannotRemoveActiveError",
    "LastBranchError",
    "NoCommitsError",
    "BackendIOError",
]
