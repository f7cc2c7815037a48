"""Unit tests for BranchManager."""

import pytest

from branchkv.errors import (
    BranchNotFoundError,
    CannotRemoveActiveError,
    DirtyStagingError,
    DuplicateBranchError,
    InvalidBranchNameError,
    LastBranchError,
)


class TestListing:
    """Test branch enumeration."""

    def test_initial(self, parts) -> None:
        assert parts.branches.branches() == ["master"]
        assert parts.branches.active_branch == "master"
        assert parts.branches.has_branches()
        assert parts.branches.has_branch("master")
        assert not parts.branches.has_branch("dev")

    def test_lexicographic(self, parts) -> None:
        parts.branches.branch("zz")
        parts.branches.branch("aa")

        assert parts.branches.branches() == ["aa", "master", "zz"]


class TestCreate:
    """Test branch creation."""

    def test_branch_without_commits(self, parts) -> None:
        parts.branches.branch("dev")

        assert parts.branches.head("dev") is None
        assert parts.branches.active_branch == "master"

    def test_branch_copies_head(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        head = parts.commits.commit("c1")

        parts.branches.branch("dev")

        assert parts.branches.head("dev") == head

    def test_duplicate(self, parts) -> None:
        parts.branches.branch("dev")
        with pytest.raises(DuplicateBranchError):
            parts.branches.branch("dev")

    def test_duplicate_active(self, parts) -> None:
        with pytest.raises(DuplicateBranchError):
            parts.branches.branch("master")

    @pytest.mark.parametrize("name", ["", "a/b", "..", "x\\y", "b\ud800"])
    def test_invalid_name(self, parts, name: str) -> None:
        with pytest.raises(InvalidBranchNameError):
            parts.branches.branch(name)
        assert parts.branches.branches() == ["master"]

    def test_branch_allowed_while_dirty(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.branches.branch("dev")

        assert parts.branches.head("dev") is None
        assert parts.staging.pending() == 1


class TestSwitch:
    """Test switching branches."""

    def test_switch(self, parts, metadata_db) -> None:
        parts.branches.branch("dev")
        parts.branches.switch_branch("dev")

        assert parts.branches.active_branch == "dev"
        assert metadata_db.get_head() == "dev"

    def test_switch_missing(self, parts) -> None:
        with pytest.raises(BranchNotFoundError):
            parts.branches.switch_branch("nope")

    def test_switch_dirty(self, parts) -> None:
        parts.branches.branch("dev")
        parts.staging.insert_key("a", b"1")

        with pytest.raises(DirtyStagingError, match="1 staged change"):
            parts.branches.switch_branch("dev")

        assert parts.branches.active_branch == "master"
        assert parts.staging.value("a") == b"1"

    def test_switch_to_self_dirty(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        with pytest.raises(DirtyStagingError):
            parts.branches.switch_branch("master")

    def test_committed_tree_follows_switch(self, parts) -> None:
        parts.branches.branch("dev")
        parts.staging.insert_key("a", b"1")
        parts.commits.commit("on master")

        parts.branches.switch_branch("dev")

        assert parts.branches.committed_tree() == {}
        assert parts.staging.keys() == []


class TestRemove:
    """Test branch removal."""

    def test_remove(self, parts) -> None:
        parts.branches.branch("dev")
        parts.branches.remove_branch("dev")

        assert parts.branches.branches() == ["master"]

    def test_remove_missing(self, parts) -> None:
        with pytest.raises(BranchNotFoundError):
            parts.branches.remove_branch("nope")

    def test_remove_active(self, parts) -> None:
        parts.branches.branch("dev")
        with pytest.raises(CannotRemoveActiveError):
            parts.branches.remove_branch("master")

    def test_remove_only_branch_is_active(self, parts) -> None:
        with pytest.raises(CannotRemoveActiveError):
            parts.branches.remove_branch("master")

    def test_remove_last_branch(self, parts, metadata_db) -> None:
        # The active branch's ref vanished underneath us
        parts.branches.branch("dev")
        metadata_db.delete_branch("master")

        with pytest.raises(LastBranchError):
            parts.branches.remove_branch("dev")

    def test_remove_keeps_commits(self, parts) -> None:
        parts.branches.branch("dev")
        parts.branches.switch_branch("dev")
        parts.staging.insert_key("a", b"1")
        head = parts.commits.commit("dev work")
        parts.branches.switch_branch("master")

        parts.branches.remove_branch("dev")

        assert parts.builder.commit_exists(head)


class TestHead:
    """Test head resolution."""

    def test_no_commits(self, parts) -> None:
        assert parts.branches.head() is None
        assert not parts.branches.has_commits()
        assert parts.branches.committed_tree() == {}

    def test_head_of_missing_branch(self, parts) -> None:
        with pytest.raises(BranchNotFoundError):
            parts.branches.head("nope")

    def test_committed_tree_cached_per_head(self, parts) -> None:
        parts.staging.insert_key("a", b"1")
        parts.commits.commit("c1")

        first = parts.branches.committed_tree()
        assert parts.branches.committed_tree() is first

        parts.staging.insert_key("b", b"2")
        parts.commits.commit("c2")

        assert set(parts.branches.committed_tree()) == {"a", "b"}

    def test_advance_missing_active_branch(self, parts, metadata_db) -> None:
        parts.branches.branch("dev")
        metadata_db.delete_branch("master")

        with pytest.raises(BranchNotFoundError):
            parts.branches.advance(None)
