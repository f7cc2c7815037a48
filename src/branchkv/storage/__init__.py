"""Storage layer for branchkv.

This module provides the object backend: the content-addressable blob
store, tree and commit objects, and the metadata database holding branch
references.
"""

from branchkv.storage.commit_builder import CommitBuilder, CommitBuilderError
from branchkv.storage.metadata_db import DatabaseError, MetadataDB
from branchkv.storage.object_store import (
    BlobCorruptedError,
    BlobNotFoundError,
    ObjectStore,
)

__all__ = [
    "ObjectStore",
    "BlobNotFoundError",
    "BlobCorruptedError",
    "MetadataDB",
    "DatabaseError",
    "CommitBuilder",
    "CommitBuilderError",
]
