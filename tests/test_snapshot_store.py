"""Test cases for SnapshotStore - capture and location-independent diffs."""

import base64
import shutil
import subprocess
import zlib

import pytest

from distpatch.core.errors import BuildFailureError
from distpatch.core.models import NO_CHANGES, DistPatch
from distpatch.snapshot.store import SnapshotStore, _binary_literal
from distpatch.utils.hash_calculator import HashCalculator


def write_tree(root, files):
    for path, content in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding='utf-8')
    return root


class TestSnapshotStore:
    """Test suite for SnapshotStore."""

    @pytest.fixture
    def store(self, tmp_path):
        return SnapshotStore(tmp_path / "store", canonical_prefix="dist")

    def test_capture_records_relative_posix_paths(self, store, tmp_path):
        root = write_tree(tmp_path / "out", {"a.js": "a\n", "lib/b.js": "b\n"})
        snapshot = store.capture(root, build_key="k", label="before")

        assert list(snapshot.files) == ["a.js", "lib/b.js"]
        assert snapshot.label == "before"
        assert "lib/b.js" in snapshot
        assert store.read(snapshot.files["a.js"]) == b"a\n"

    def test_capture_is_immutable_copy(self, store, tmp_path):
        root = write_tree(tmp_path / "out", {"a.js": "one\n"})
        snapshot = store.capture(root, build_key="k")
        (root / "a.js").write_text("two\n")

        assert store.read(snapshot.files["a.js"]) == b"one\n"
        with pytest.raises(TypeError):
            snapshot.files["a.js"] = "x"

    def test_identical_content_shares_one_object(self, store, tmp_path):
        root = write_tree(tmp_path / "out", {"a.js": "same\n", "b.js": "same\n"})
        snapshot = store.capture(root)
        assert snapshot.files["a.js"] == snapshot.files["b.js"]

    def test_capture_missing_directory_is_build_failure(self, store, tmp_path):
        with pytest.raises(BuildFailureError):
            store.capture(tmp_path / "nope")

    def test_identical_trees_give_no_changes(self, store, tmp_path):
        before = store.capture(write_tree(tmp_path / "one", {"a.js": "x\n"}), build_key="k")
        after = store.capture(write_tree(tmp_path / "two", {"a.js": "x\n"}), build_key="k")

        result = store.diff(before, after, name="p.patch")
        assert result is NO_CHANGES
        assert not result

    def test_diff_uses_canonical_prefix_not_locations(self, store, tmp_path):
        before = store.capture(write_tree(tmp_path / "machine-a" / "out", {"a.js": "x\n"}), build_key="k")
        after = store.capture(write_tree(tmp_path / "elsewhere", {"a.js": "y\n"}), build_key="k")

        patch = store.diff(before, after, name="p.patch")

        assert isinstance(patch, DistPatch)
        assert patch.content == (
            "diff --git a/dist/a.js b/dist/a.js\n"
            "--- a/dist/a.js\n"
            "+++ b/dist/a.js\n"
            "@@ -1 +1 @@\n"
            "-x\n"
            "+y\n"
        )
        assert str(tmp_path) not in patch.content
        assert patch.files == ("dist/a.js",)

    def test_diff_is_byte_identical_across_locations(self, store, tmp_path):
        first = store.diff(
            store.capture(write_tree(tmp_path / "1a", {"a.js": "x\n"}), build_key="k"),
            store.capture(write_tree(tmp_path / "1b", {"a.js": "y\n", "n.js": "new\n"}), build_key="k"),
            name="p.patch"
        )
        second = store.diff(
            store.capture(write_tree(tmp_path / "2a", {"a.js": "x\n"}), build_key="k"),
            store.capture(write_tree(tmp_path / "2b", {"a.js": "y\n", "n.js": "new\n"}), build_key="k"),
            name="p.patch"
        )
        assert first.content == second.content
        assert first.sha256 == second.sha256

    def test_added_and_deleted_files(self, store, tmp_path):
        before = store.capture(write_tree(tmp_path / "b", {"old.js": "gone\n"}), build_key="k")
        after = store.capture(write_tree(tmp_path / "a", {"new.js": "here\n"}), build_key="k")

        patch = store.diff(before, after)

        assert "diff --git a/dist/new.js b/dist/new.js\nnew file mode 100644\n--- /dev/null\n+++ b/dist/new.js\n" \
            in patch.content
        assert "diff --git a/dist/old.js b/dist/old.js\ndeleted file mode 100644\n--- a/dist/old.js\n+++ /dev/null\n" \
            in patch.content
        assert patch.touched_files() == ["dist/new.js", "dist/old.js"]

    def test_missing_trailing_newline_is_marked(self, store, tmp_path):
        before = store.capture(write_tree(tmp_path / "b", {"a.js": "x"}), build_key="k")
        after = store.capture(write_tree(tmp_path / "a", {"a.js": "y"}), build_key="k")

        patch = store.diff(before, after)
        assert "-x\n\\ No newline at end of file\n+y\n\\ No newline at end of file\n" in patch.content

    def test_binary_files_carry_literal_content(self, store, tmp_path):
        old, new = b"\x00asm\x01old", b"\x00asm\x01new"
        before = store.capture(write_tree(tmp_path / "b", {"img.wasm": old}), build_key="k")
        after = store.capture(write_tree(tmp_path / "a", {"img.wasm": new}), build_key="k")

        patch = store.diff(before, after)
        assert "Binary files" not in patch.content
        assert (
            "diff --git a/dist/img.wasm b/dist/img.wasm\n"
            f"index {HashCalculator.git_blob_id(old)}..{HashCalculator.git_blob_id(new)} 100644\n"
            "GIT binary patch\n"
            f"literal {len(new)}\n"
        ) in patch.content
        assert f"\n\nliteral {len(old)}\n" in patch.content
        assert patch.touched_files() == ["dist/img.wasm"]

    def test_binary_literal_lines(self):
        content = bytes(range(256)) * 4
        literal = _binary_literal(content)
        lines = literal.split("\n")

        assert lines[0] == f"literal {len(content)}"
        assert literal.endswith("\n\n")
        # Full lines hold 52 bytes: 'z' plus 65 base85 characters
        data_lines = [line for line in lines[1:] if line]
        assert all(line[0] == "z" and len(line) == 66 for line in data_lines[:-1])

        decoded = b"".join(
            base64.b85decode(line[1:])[:_decoded_length(line[0])] for line in data_lines
        )
        assert zlib.decompress(decoded) == content

    def test_git_blob_id(self):
        # Well-known id of the empty blob
        assert HashCalculator.git_blob_id(b"") == "e69de29bb2d1d6434b8b29ae775bfd8d9a4ce391"

    def test_different_build_configuration_not_comparable(self, store, tmp_path):
        before = store.capture(write_tree(tmp_path / "b", {"a.js": "x\n"}), build_key="one")
        after = store.capture(write_tree(tmp_path / "a", {"a.js": "y\n"}), build_key="two")

        with pytest.raises(BuildFailureError):
            store.diff(before, after)

    def test_no_prefix(self, tmp_path):
        store = SnapshotStore(tmp_path / "store")
        before = store.capture(write_tree(tmp_path / "b", {"a.js": "x\n"}))
        after = store.capture(write_tree(tmp_path / "a", {"a.js": "y\n"}))
        assert store.diff(before, after).content.startswith("diff --git a/a.js b/a.js\n")


def _decoded_length(char):
    if "A" <= char <= "Z":
        return ord(char) - ord("A") + 1
    return ord(char) - ord("a") + 27


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestDistPatchApplies:
    """Applying a DistPatch to the before-tree reproduces the after-tree."""

    BEFORE = {
        "app.js": "const a = 1;\n",
        "crlf.js": "one\r\ntwo\r\n",
        "tail.js": "no newline",
        "gone.js": "removed\n",
        "img.wasm": b"\x00asm\x01old",
        "font.bin": b"\xff\xfe\x00\x01" * 40,
        "retired.bin": b"\x00\x00\x01",
    }
    AFTER = {
        "app.js": "const a = 2;\n",
        "crlf.js": "one\r\nthree\r\n",
        "tail.js": "still no newline",
        "empty.js": "",
        "img.wasm": b"\x00asm\x01new",
        "font.bin": b"\xff\xfe\x00\x02" * 40,
        "logo.png": b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 3,
        "latin1.txt": "caf\xe9\n".encode("latin-1"),
    }

    def read_tree(self, root):
        return {
            str(path.relative_to(root).as_posix()): path.read_bytes()
            for path in sorted(root.rglob("*"))
            if path.is_file() and ".git" not in path.relative_to(root).parts
        }

    def test_round_trip(self, tmp_path):
        store = SnapshotStore(tmp_path / "store", canonical_prefix="dist")
        before = store.capture(write_tree(tmp_path / "before", self.BEFORE), build_key="k")
        after = store.capture(write_tree(tmp_path / "after", self.AFTER), build_key="k")
        patch = store.diff(before, after)

        work = tmp_path / "work"
        write_tree(work / "dist", self.BEFORE)
        subprocess.run(["git", "init", "--quiet", str(work)], check=True)
        patch_file = tmp_path / "dist.patch"
        patch_file.write_bytes(patch.content.encode("utf-8"))

        result = subprocess.run(
            ["git", "-C", str(work), "apply", str(patch_file)], capture_output=True, text=True
        )

        assert result.returncode == 0, result.stderr
        assert self.read_tree(work / "dist") == self.read_tree(tmp_path / "after")
