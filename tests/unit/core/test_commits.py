"""Unit tests for CommitManager."""

import pytest

from branchkv.errors import BackendIOError, NoCommitsError, NothingToCommitError
from branchkv.storage import DatabaseError


class TestCommit:
    """Test materializing the staging index."""

    def test_nothing_to_commit(self, parts) -> None:
        with pytest.raises(NothingToCommitError):
            parts.commits.commit("empty")
        assert parts.branches.head() is None

    def test_first_commit(self, parts) -> None:
        parts.staging.insert_key("a", b"\x01\x02\x03")

        commit_hash = parts.commits.commit("init")

        commit = parts.builder.read_commit(commit_hash)
        assert commit["parent"] is None
        assert commit["message"] == "init"
        assert commit["author"] == "test@host"
        assert parts.branches.head() == commit_hash
        assert parts.staging.pending() == 0

    def test_tree_contents(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.staging.insert_key("b", b"2")
        commit_hash = parts.commits.commit("c1")

        tree = parts.builder.read_tree(parts.builder.read_commit(commit_hash)["tree"])

        assert sorted(tree) == ["a", "b"]
        assert parts.object_store.read_blob(tree["a"]) == b"1"

    def test_second_commit_has_parent(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        first = parts.commits.commit("c1")
        parts.staging.insert_key("a", b"2")
        second = parts.commits.commit("c2")

        assert parts.builder.read_commit(second)["parent"] == first

    def test_removal_drops_key_from_tree(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.staging.insert_key("b", b"2")
        parts.commits.commit("c1")
        parts.staging.remove_key("a")
        commit_hash = parts.commits.commit("rm")

        tree = parts.builder.read_tree(parts.builder.read_commit(commit_hash)["tree"])
        assert list(tree) == ["b"]

    def test_failed_blob_write_keeps_state(self, parts, monkeypatch) -> None:
        parts.staging.insert_key("a", b"1")
        head = parts.commits.commit("c1")
        parts.staging.insert_key("b", b"2")

        def fail(*args, **kwargs):
            raise BackendIOError("disk full")

        monkeypatch.setattr(parts.object_store, "write_blob", fail)

        with pytest.raises(BackendIOError, match="disk full"):
            parts.commits.commit("c2")

        assert parts.branches.head() == head
        assert parts.staging.pending() == 1
        assert parts.staging.value("b") == b"2"

    def test_failed_ref_update_keeps_state(self, parts, metadata_db, monkeypatch) -> None:
        parts.staging.insert_key("a", b"1")

        def fail(*args, **kwargs):
            raise DatabaseError("locked")

        monkeypatch.setattr(metadata_db, "update_branch", fail)

        with pytest.raises(DatabaseError):
            parts.commits.commit("c1")

        assert parts.branches.head() is None
        assert parts.staging.pending() == 1

    def test_retry_after_failure(self, parts, metadata_db, monkeypatch) -> None:
        parts.staging.insert_key("a", b"1")
        original = metadata_db.update_branch

        def fail(*args, **kwargs):
            raise DatabaseError("locked")

        monkeypatch.setattr(metadata_db, "update_branch", fail)
        with pytest.raises(DatabaseError):
            parts.commits.commit("c1")

        monkeypatch.setattr(metadata_db, "update_branch", original)
        commit_hash = parts.commits.commit("c1")

        assert parts.branches.head() == commit_hash
        assert parts.staging.value("a") == b"1"


class TestRollback:
    """Test moving the branch pointer back."""

    def test_no_commits(self, parts) -> None:
        with pytest.raises(NoCommitsError):
            parts.commits.rollback()

    def test_rollback_to_parent(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        first = parts.commits.commit("c1")
        parts.staging.insert_key("a", b"2")
        second = parts.commits.commit("c2")

        new_head = parts.commits.rollback()

        assert new_head == first
        assert parts.branches.head() == first
        assert parts.staging.value("a") == b"1"
        assert parts.builder.commit_exists(second)

    def test_rollback_first_commit(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.commits.commit("c1")

        assert parts.commits.rollback() is None
        assert parts.branches.head() is None
        assert parts.staging.keys() == []

        with pytest.raises(NoCommitsError):
            parts.commits.rollback()

    def test_rollback_keeps_staging(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.commits.commit("c1")
        parts.staging.insert_key("a", b"2")
        parts.commits.commit("c2")
        parts.staging.insert_key("b", b"staged")

        parts.commits.rollback()

        assert parts.staging.pending() == 1
        assert parts.staging.keys() == ["a", "b"]
        assert parts.staging.value("a") == b"1"

    def test_rollback_does_not_touch_other_branches(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        head = parts.commits.commit("c1")
        parts.branches.branch("dev")

        parts.commits.rollback()

        assert parts.branches.head("dev") == head


class TestHistory:
    """Test walking commit history."""

    def test_empty(self, parts) -> None:
        assert parts.commits.history() == []

    def test_newest_first(self, parts) -> None:
        hashes = []
        for i in range(3):
            parts.staging.insert_key("k", str(i).encode())
            hashes.append(parts.commits.commit(f"c{i}"))

        history = parts.commits.history()

        assert [c["hash"] for c in history] == list(reversed(hashes))
        assert [c["message"] for c in history] == ["c2", "c1", "c0"]

    def test_limit(self, parts) -> None:
        for i in range(3):
            parts.staging.insert_key("k", str(i).encode())
            parts.commits.commit(f"c{i}")

        assert [c["message"] for c in parts.commits.history(limit=2)] == ["c2", "c1"]
        assert parts.commits.history(limit=0) == []
