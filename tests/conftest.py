"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from branchkv import Repository


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Path for a repository that doesn't exist yet."""
    return tmp_path / "store.kv"


@pytest.fixture
def repo(repo_dir: Path) -> Repository:
    """Freshly initialized repository on the default branch."""
    repository = Repository.init(repo_dir, author="test@host")
    yield repository
    repository.close()


@pytest.fixture
def populated_repo(repo: Repository) -> Repository:
    """Repository with keys ``bar`` and ``foo`` committed."""
    repo.insert_key("foo", b"111")
    repo.insert_key("bar", b"222")
    repo.commit("seed")
    return repo
