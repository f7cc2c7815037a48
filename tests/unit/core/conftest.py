"""Fixtures wiring the core components over a real backend."""

from pathlib import Path

import pytest

from branchkv.core import BranchManager, ChangeTracker, CommitManager, StagingIndex
from branchkv.storage import CommitBuilder, MetadataDB, ObjectStore


class Components:
    """The core components sharing one backend, as a Repository wires them."""

    def __init__(self, repo_dir: Path, db: MetadataDB):
        self.object_store = ObjectStore(repo_dir)
        self.builder = CommitBuilder(repo_dir, self.object_store, db)
        self.branches = BranchManager(
            db, self.builder, "master", pending=lambda: self.staging.pending()
        )
        self.staging = StagingIndex(self.branches, self.object_store)
        self.tracker = ChangeTracker(self.staging)
        self.commits = CommitManager(
            self.staging, self.branches, self.builder, self.object_store, "test@host"
        )


@pytest.fixture
def metadata_db(tmp_path: Path) -> MetadataDB:
    repo_dir = tmp_path / "store.kv"
    repo_dir.mkdir()
    db = MetadataDB(repo_dir)
    db.open()
    db.init_schema()
    db.create_branch("master", None)
    db.set_head("master")
    yield db
    db.close()


@pytest.fixture
def parts(metadata_db: MetadataDB) -> Components:
    return Components(metadata_db.repo_dir, metadata_db)
