"""
Content-addressed capture and diffing of build output trees.
"""
import base64
import difflib
import logging
import os
import re
import uuid
import zlib
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, List, Optional, Union

from ..core.errors import BuildFailureError
from ..core.models import DistPatch, NoChanges, NO_CHANGES, TreeSnapshot
from ..utils.hash_calculator import HashCalculator

DEV_NULL = "/dev/null"
NO_NEWLINE_MARKER = "\\ No newline at end of file\n"
FILE_MODE = "100644"
LINE_PATTERN = re.compile(r"[^\n]*\n|[^\n]+")
NULL_OBJECT_ID = "0" * 40
BINARY_LINE_BYTES = 52


def _split_lines(text: str) -> List[str]:
    """Split on \\n only, keeping line endings"""
    return LINE_PATTERN.findall(text)


def _binary_length_char(length: int) -> str:
    if length <= 26:
        return chr(ord('A') + length - 1)
    return chr(ord('a') + length - 27)


def _binary_literal(content: bytes) -> str:
    """
    One 'literal' hunk of a git binary patch.

    The content is zlib-deflated and base85-encoded in lines of up to 52
    input bytes, each prefixed with a character giving that line's length.
    Python's b85 alphabet is the one git uses.
    """
    deflated = zlib.compress(content, 9)
    lines = [f"literal {len(content)}\n"]
    for start in range(0, len(deflated), BINARY_LINE_BYTES):
        chunk = deflated[start:start + BINARY_LINE_BYTES]
        encoded = base64.b85encode(chunk, pad=True).decode('ascii')
        lines.append(f"{_binary_length_char(len(chunk))}{encoded}\n")
    lines.append("\n")
    return "".join(lines)


class SnapshotStore:
    """
    Captures directory trees into a content-addressed object directory and
    produces location-independent diffs between two captures.
    """

    def __init__(self, store_dir: Path, canonical_prefix: str = "", context_lines: int = 3):
        """
        Initialize snapshot store.

        Args:
            store_dir: Directory holding captured file contents
            canonical_prefix: Virtual root placed after a/ and b/ in diff headers
            context_lines: Unified diff context
        """
        self.store_dir = Path(store_dir)
        self.objects_dir = self.store_dir / "objects"
        self.canonical_prefix = canonical_prefix.strip("/")
        self.context_lines = context_lines
        self.logger = logging.getLogger(__name__)

        self.objects_dir.mkdir(parents=True, exist_ok=True)

    def _object_path(self, file_hash: str) -> Path:
        return self.objects_dir / file_hash[:2] / file_hash[2:]

    def _store_object(self, content: bytes) -> str:
        file_hash = HashCalculator.hash_bytes(content)
        object_path = self._object_path(file_hash)
        if object_path.exists():
            return file_hash

        object_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = object_path.parent / f".tmp_{uuid.uuid4().hex[:8]}"
        try:
            with open(temp_path, 'wb') as f:
                f.write(content)
            os.replace(temp_path, object_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()
        return file_hash

    def read(self, file_hash: str) -> bytes:
        """Content of a captured file"""
        with open(self._object_path(file_hash), 'rb') as f:
            return f.read()

    def capture(self, path: Union[str, Path], build_key: str = "", label: str = "") -> TreeSnapshot:
        """
        Recursively copy a directory tree into the store.

        Args:
            path: Tree root
            build_key: Identity of the build configuration that produced the tree
            label: Human-readable name of the capture (e.g. 'before')

        Returns:
            TreeSnapshot

        Raises:
            BuildFailureError: if the tree does not exist
        """
        root = Path(path)
        if not root.is_dir():
            raise BuildFailureError(f"Build output directory not found: {root}")

        files: Dict[str, str] = {}
        for file_path in self._walk(root):
            relative = PurePosixPath(*file_path.relative_to(root).parts)
            with open(file_path, 'rb') as f:
                files[str(relative)] = self._store_object(f.read())

        snapshot = TreeSnapshot(label=label or str(root), build_key=build_key, files=files)
        self.logger.info(f"Captured {len(snapshot)} files from {root} as '{snapshot.label}'")
        return snapshot

    def _walk(self, root: Path) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                file_path = Path(dirpath) / filename
                if file_path.is_file():
                    yield file_path

    def diff(
        self,
        before: TreeSnapshot,
        after: TreeSnapshot,
        name: str = "",
        upstream: Optional[str] = None,
        source_patch: Optional[str] = None
    ) -> Union[DistPatch, NoChanges]:
        """
        Diff two snapshots taken from the same build configuration.

        Returns:
            DistPatch, or NO_CHANGES when the trees are byte-identical

        Raises:
            BuildFailureError: if the snapshots come from different build configurations
        """
        if before.build_key != after.build_key:
            raise BuildFailureError(
                f"Snapshots '{before.label}' and '{after.label}' are not comparable: "
                f"build configuration changed ({before.build_key} != {after.build_key})"
            )

        if dict(before.files) == dict(after.files):
            self.logger.info("Before and after snapshots are identical")
            return NO_CHANGES

        sections: List[str] = []
        touched: List[str] = []
        for path in sorted(set(before.files) | set(after.files)):
            old_hash = before.files.get(path)
            new_hash = after.files.get(path)
            if old_hash == new_hash:
                continue
            sections.append(self._diff_file(path, old_hash, new_hash))
            touched.append(self._canonical(path))

        self.logger.info(f"Diff touches {len(touched)} files")
        return DistPatch(
            name=name,
            content="".join(sections),
            files=tuple(touched),
            upstream=upstream,
            source_patch=source_patch
        )

    def _canonical(self, path: str) -> str:
        if self.canonical_prefix:
            return f"{self.canonical_prefix}/{path}"
        return path

    def _diff_file(self, path: str, old_hash: Optional[str], new_hash: Optional[str]) -> str:
        canonical = self._canonical(path)
        old_label = f"a/{canonical}" if old_hash else DEV_NULL
        new_label = f"b/{canonical}" if new_hash else DEV_NULL

        lines = [f"diff --git a/{canonical} b/{canonical}\n"]
        if old_hash is None:
            lines.append(f"new file mode {FILE_MODE}\n")
        elif new_hash is None:
            lines.append(f"deleted file mode {FILE_MODE}\n")

        old_content = self.read(old_hash) if old_hash else b""
        new_content = self.read(new_hash) if new_hash else b""
        old_text = self._decode(old_content)
        new_text = self._decode(new_content)

        if old_text is None or new_text is None:
            self.logger.debug(f"Encoding {canonical} as a binary literal")
            old_id = HashCalculator.git_blob_id(old_content) if old_hash else NULL_OBJECT_ID
            new_id = HashCalculator.git_blob_id(new_content) if new_hash else NULL_OBJECT_ID
            mode = f" {FILE_MODE}" if old_hash and new_hash else ""
            lines.append(f"index {old_id}..{new_id}{mode}\n")
            lines.append("GIT binary patch\n")
            lines.append(_binary_literal(new_content))
            lines.append(_binary_literal(old_content))
            return "".join(lines)

        hunks = list(difflib.unified_diff(
            _split_lines(old_text),
            _split_lines(new_text),
            n=self.context_lines
        ))
        if hunks:
            lines.append(f"--- {old_label}\n")
            lines.append(f"+++ {new_label}\n")
            # Skip difflib's own ---/+++ header lines
            for line in hunks[2:]:
                if line.endswith("\n"):
                    lines.append(line)
                else:
                    lines.append(f"{line}\n{NO_NEWLINE_MARKER}")

        return "".join(lines)

    @staticmethod
    def _decode(content: bytes) -> Optional[str]:
        """Text content, or None for binary files"""
        if b"\0" in content:
            return None
        try:
            return content.decode('utf-8')
        except UnicodeDecodeError:
            return None
