"""Test cases for ChangeComposer - ordered, all-or-nothing change application."""

import pytest

from distpatch.core.errors import ChangeConflictError
from distpatch.core.models import ChangeSet
from distpatch.patch.composer import ChangeComposer
from tests.conftest import BASE_FILES, CHANGES, RELEASE_TAG


class TestChangeComposer:
    """Test suite for ChangeComposer."""

    @pytest.fixture
    def change_set(self):
        return ChangeSet.from_ids("changes.patch", list(CHANGES))

    def test_compose_concatenates_changes_in_order(self, dependency, change_set):
        source_patch = ChangeComposer(dependency).compose(change_set, RELEASE_TAG)

        assert source_patch.name == "changes.patch"
        assert source_patch.base == RELEASE_TAG
        assert source_patch.change_count == 3
        assert source_patch.change_ids == ("c1", "c2", "c3")
        positions = [source_patch.content.index(f"# change {i}/3 c{i}\n") for i in (1, 2, 3)]
        assert positions == sorted(positions)
        assert dependency.attempted == ["c1", "c2", "c3"]

    def test_each_section_holds_only_its_own_change(self, dependency, change_set):
        content = ChangeComposer(dependency).compose(change_set, RELEASE_TAG).content
        second = content.split("# change 2/3 c2\n")[1].split("# change 3/3")[0]
        assert "src/util.js" in second
        assert "src/index.js" not in second

    def test_compose_is_deterministic(self, dependency, change_set):
        composer = ChangeComposer(dependency)
        first = composer.compose(change_set, RELEASE_TAG)
        second = composer.compose(change_set, RELEASE_TAG)
        assert first.content == second.content
        assert first.sha256 == second.sha256

    def test_workspace_restored_after_compose(self, dependency, change_set):
        head = dependency.head()
        ChangeComposer(dependency).compose(change_set, RELEASE_TAG)

        assert dependency.current_branch() == "main"
        assert dependency.head() == head
        assert dependency.is_clean()
        assert dependency.disk_files() == BASE_FILES

    def test_conflict_names_position_and_stops(self, dependency, change_set):
        dependency.add_change("c2", CHANGES["c2"], conflict=True)

        with pytest.raises(ChangeConflictError) as exc_info:
            ChangeComposer(dependency).compose(change_set, RELEASE_TAG)

        assert exc_info.value.position == 2
        assert exc_info.value.change_id == "c2"
        assert dependency.attempted == ["c1", "c2"]

    def test_conflict_discards_partial_state(self, dependency, change_set):
        dependency.add_change("c3", CHANGES["c3"], conflict=True)

        with pytest.raises(ChangeConflictError):
            ChangeComposer(dependency).compose(change_set, RELEASE_TAG)

        assert dependency.current_branch() == "main"
        assert dependency.disk_files() == BASE_FILES
        assert dependency.commit_count() == 1

    def test_missing_change_fails_before_any_is_applied(self, dependency):
        change_set = ChangeSet.from_ids("changes.patch", ["c1", "missing", "c3"])

        with pytest.raises(ChangeConflictError) as exc_info:
            ChangeComposer(dependency).compose(change_set, RELEASE_TAG)

        assert exc_info.value.position == 2
        assert dependency.attempted == []

    def test_missing_base_is_a_conflict(self, dependency, change_set):
        with pytest.raises(ChangeConflictError) as exc_info:
            ChangeComposer(dependency).compose(change_set, "v9.9.9")
        assert exc_info.value.position is None

    def test_no_commits_created(self, dependency, change_set):
        ChangeComposer(dependency).compose(change_set, RELEASE_TAG)
        assert dependency.commit_count() == 1
        assert set(dependency.branches) == {"main"}
        assert set(dependency.tags) == {RELEASE_TAG}


class TestChangeSet:
    """Test suite for ChangeSet construction."""

    def test_positions_start_at_one(self):
        change_set = ChangeSet.from_ids("fix.patch", ["a", "b"])
        assert [change.position for change in change_set.changes] == [1, 2]
        assert change_set.stem == "fix"

    def test_empty_change_set_rejected(self):
        with pytest.raises(ValueError):
            ChangeSet.from_ids("fix.patch", [])

    def test_duplicate_change_rejected(self):
        with pytest.raises(ValueError):
            ChangeSet.from_ids("fix.patch", ["a", "b", "a"])
