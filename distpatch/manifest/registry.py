"""
Durable keyed record of published DistPatches.
"""
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from ..core.errors import ManifestConflictError
from .models import ManifestEntry


class ManifestRegistry:
    """
    Whole-document JSON manifest: ``{ distPatchName: {upstream, sourcePatch,
    changeRefs, created, sha256} }``.

    Writes go to a temp file in the same directory followed by an atomic
    rename, so readers never see a partial document.
    """

    def __init__(self, manifest_path: Path):
        """
        Initialize manifest registry.

        Args:
            manifest_path: Path of the manifest JSON document
        """
        self.manifest_path = Path(manifest_path)
        self.logger = logging.getLogger(__name__)

    def load(self) -> Dict[str, ManifestEntry]:
        """
        Read the whole manifest.

        Returns:
            Dict mapping DistPatch name to ManifestEntry (empty if no manifest yet)
        """
        raw = self.read_raw()
        if raw is None or not raw.strip():
            return {}

        try:
            document = json.loads(raw)
            if not isinstance(document, dict):
                raise ValueError("manifest root must be an object")
            return {key: ManifestEntry.model_validate(value) for key, value in document.items()}
        except (ValueError, ValidationError) as e:
            raise ManifestConflictError(f"Manifest {self.manifest_path} is unreadable: {e}") from e

    def get(self, key: str) -> Optional[ManifestEntry]:
        """Entry for a DistPatch name, or None"""
        return self.load().get(key)

    def put(self, key: str, entry: ManifestEntry, overwrite: bool = False) -> bool:
        """
        Record an entry.

        Args:
            key: DistPatch name
            entry: Provenance to record
            overwrite: Explicit authorization to replace a differing entry

        Returns:
            True if the document was written, False if an identical entry already existed

        Raises:
            ManifestConflictError: if a differing entry exists and overwrite is not authorized
        """
        entries = self.load()
        existing = entries.get(key)

        if existing is not None and not overwrite:
            if not existing.same_provenance(entry):
                raise ManifestConflictError(
                    f"Manifest entry '{key}' was recorded with upstream {existing.upstream} and "
                    f"changes {list(existing.change_refs)}; refusing to replace it without confirmation",
                    key=key
                )
            if entry.sha256 and existing.sha256 and entry.sha256 != existing.sha256:
                raise ManifestConflictError(
                    f"Manifest entry '{key}' records different DistPatch content; "
                    f"refusing to replace it without confirmation",
                    key=key
                )
            self.logger.info(f"Manifest entry '{key}' already recorded")
            return False

        if existing is not None:
            self.logger.warning(f"Overwriting manifest entry '{key}'")

        entries[key] = entry
        self._write(entries)
        self.logger.info(f"Recorded manifest entry '{key}'")
        return True

    def read_raw(self) -> Optional[str]:
        """Exact document text, for backup before a run modifies it"""
        if not self.manifest_path.exists():
            return None
        with open(self.manifest_path, 'r', encoding='utf-8') as f:
            return f.read()

    def restore_raw(self, raw: Optional[str]):
        """Put back a document captured with read_raw (None removes the manifest)"""
        if raw is None:
            if self.manifest_path.exists():
                self.manifest_path.unlink()
                self.logger.info(f"Removed manifest {self.manifest_path}")
            return
        self._replace(raw)
        self.logger.info(f"Restored manifest {self.manifest_path}")

    def _write(self, entries: Dict[str, ManifestEntry]):
        document = {key: entries[key].to_document() for key in sorted(entries)}
        self._replace(json.dumps(document, indent=2) + "\n")

    def _replace(self, text: str):
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.manifest_path.parent / f".temp_{uuid.uuid4().hex[:8]}.manifest.json"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            # Atomic rename (POSIX guarantees atomicity)
            os.replace(temp_path, self.manifest_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()
