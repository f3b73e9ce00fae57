"""
Decides whether a regenerated DistPatch duplicates the published one.
"""
import logging
from pathlib import Path
from typing import Optional

from ..core.enums import ComparisonDecision
from ..core.errors import PatchDriftError
from ..core.models import DistPatch
from ..utils.hash_calculator import HashCalculator
from .models import ComparisonResult
from .registry import ManifestRegistry


class IdempotencyComparator:
    """Compares content hashes of the new and the stored DistPatch"""

    def __init__(self, manifest: ManifestRegistry, patches_dir: Path):
        """
        Initialize comparator.

        Args:
            manifest: Manifest registry
            patches_dir: Directory where published DistPatch files are kept
        """
        self.manifest = manifest
        self.patches_dir = Path(patches_dir)
        self.logger = logging.getLogger(__name__)

    def stored_hash(self, key: str) -> Optional[str]:
        """Hash of the published DistPatch file, falling back to the recorded hash"""
        stored_path = self.patches_dir / key
        if stored_path.is_file():
            return HashCalculator.hash_file(stored_path)
        entry = self.manifest.get(key)
        return entry.sha256 if entry else None

    def compare(self, dist_patch: DistPatch) -> ComparisonResult:
        """
        Compare a freshly generated DistPatch with the published one.

        Returns:
            ComparisonResult with decision NEW (no entry) or UNCHANGED (equal hashes)

        Raises:
            PatchDriftError: if an entry exists and the content differs
        """
        key = dist_patch.name
        new_hash = dist_patch.sha256

        if self.manifest.get(key) is None:
            self.logger.info(f"No manifest entry for '{key}'; new artifact")
            return ComparisonResult(ComparisonDecision.NEW, key, new_hash)

        stored_hash = self.stored_hash(key)
        if stored_hash == new_hash:
            self.logger.info(f"'{key}' is identical to the published artifact ({new_hash[:12]})")
            return ComparisonResult(ComparisonDecision.UNCHANGED, key, new_hash, stored_hash)

        self.logger.warning(
            f"'{key}' drifted from the published artifact: "
            f"stored {(stored_hash or 'unknown')[:12]}, new {new_hash[:12]}"
        )
        raise PatchDriftError(key, stored_hash or "unknown", new_hash)
