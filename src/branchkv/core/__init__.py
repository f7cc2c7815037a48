"""Core engine layer for branchkv.

This module provides the mapping between mutable key-value operations and
the immutable object store: staging, change tracking, branches and the
commit protocol.
"""

from branchkv.core.branches import BranchManager
from branchkv.core.changes import ChangeTracker
from branchkv.core.commits import CommitManager
from branchkv.core.staging import StagingEntry, StagingIndex

__all__ = [
    "BranchManager",
    "ChangeTracker",
    "CommitManager",
    "StagingEntry",
    "StagingIndex",
]
