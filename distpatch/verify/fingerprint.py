"""
Proves that a patch's code path made it into the compiled output.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..core.errors import FingerprintMissingError
from ..core.models import TreeSnapshot
from ..snapshot.store import SnapshotStore


@dataclass(frozen=True)
class FingerprintMatch:
    """First location of the marker; informational only"""
    path: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class FingerprintVerifier:
    """Scans an after-snapshot for a required literal marker"""

    def __init__(self, store: SnapshotStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def find(self, snapshot: TreeSnapshot, marker: str) -> Optional[FingerprintMatch]:
        """
        Locate the first literal occurrence of marker, scanning files in path order.

        Returns:
            FingerprintMatch or None
        """
        needle = marker.encode('utf-8')
        for path, file_hash in snapshot.files.items():
            content = self.store.read(file_hash)
            offset = content.find(needle)
            if offset == -1:
                continue
            line_start = content.rfind(b"\n", 0, offset) + 1
            return FingerprintMatch(
                path=path,
                line=content.count(b"\n", 0, offset) + 1,
                column=offset - line_start + 1
            )
        return None

    def verify(self, snapshot: TreeSnapshot, marker: str,
               expected_paths: Optional[Iterable[str]] = None) -> FingerprintMatch:
        """
        Require the marker (and any expected output paths) in the snapshot.

        Args:
            snapshot: After-patch snapshot
            marker: Literal fingerprint string
            expected_paths: Output files that must exist in the snapshot

        Returns:
            FingerprintMatch of the first occurrence

        Raises:
            FingerprintMissingError: if the marker is absent or an expected path is missing
        """
        if not marker:
            raise FingerprintMissingError("No fingerprint marker configured", marker=marker)

        missing: List[str] = [path for path in (expected_paths or []) if path not in snapshot]
        if missing:
            for path in missing:
                self.logger.error(f"Missing expected output file: {path}")
            raise FingerprintMissingError(
                f"{len(missing)} expected output files missing from '{snapshot.label}'",
                marker=marker,
                missing_paths=missing
            )

        match = self.find(snapshot, marker)
        if match is None:
            raise FingerprintMissingError(
                f"Fingerprint '{marker}' not found in {len(snapshot)} files of '{snapshot.label}'",
                marker=marker
            )

        self.logger.info(f"Fingerprint '{marker}' found at {match}")
        return match
