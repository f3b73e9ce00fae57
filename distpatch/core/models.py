"""
Core data models for patch pipeline runs.
"""
import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .enums import PipelineState, RunOutcome
from .errors import PipelineError


@dataclass(frozen=True)
class ReleaseTag:
    """Upstream release identifier, always carrying a leading 'v'"""
    value: str

    def __post_init__(self):
        raw = (self.value or "").strip()
        if not raw or raw in ("v", "V"):
            raise ValueError("Release tag must not be empty")
        if not raw.startswith("v"):
            raw = f"v{raw}"
        object.__setattr__(self, 'value', raw)

    @property
    def version(self) -> str:
        """Registry version (tag without the leading 'v')"""
        return self.value[1:]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ChangeRef:
    """One source-level modification, identified by a commit id"""
    id: str
    position: int

    def __str__(self) -> str:
        return f"#{self.position} {self.id}"


@dataclass(frozen=True)
class ChangeSet:
    """Ordered, read-only sequence of changes making up one source patch"""
    source_patch_name: str
    changes: Tuple[ChangeRef, ...]

    @classmethod
    def from_ids(cls, source_patch_name: str, change_ids: List[str]) -> 'ChangeSet':
        if not change_ids:
            raise ValueError("A change set needs at least one change")
        ids = [str(change_id).strip() for change_id in change_ids]
        if len(set(ids)) != len(ids):
            raise ValueError("A change set must not list the same change twice")
        return cls(
            source_patch_name=source_patch_name,
            changes=tuple(ChangeRef(id=change_id, position=index) for index, change_id in enumerate(ids, start=1))
        )

    @property
    def change_ids(self) -> List[str]:
        return [change.id for change in self.changes]

    @property
    def stem(self) -> str:
        """Source patch name without its .patch suffix"""
        name = self.source_patch_name
        return name[:-len(".patch")] if name.endswith(".patch") else name

    def __len__(self) -> int:
        return len(self.changes)


@dataclass(frozen=True)
class SourcePatch:
    """Consolidated diff of every change in a ChangeSet on top of its base"""
    name: str
    base: str
    content: str
    change_ids: Tuple[str, ...]

    @property
    def change_count(self) -> int:
        return len(self.change_ids)

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.content.encode('utf-8', 'surrogateescape')).hexdigest()


@dataclass(frozen=True)
class TreeSnapshot:
    """
    Immutable capture of a directory tree.

    ``files`` maps POSIX relative paths to the sha256 of their content; the
    content itself lives in the SnapshotStore's object directory.
    """
    label: str
    build_key: str
    files: Mapping[str, str]

    def __post_init__(self):
        object.__setattr__(self, 'files', MappingProxyType(dict(sorted(self.files.items()))))

    def __contains__(self, path: str) -> bool:
        return str(PurePosixPath(path)) in self.files

    def __len__(self) -> int:
        return len(self.files)


@dataclass(frozen=True)
class DistPatch:
    """Normalized diff between two comparable snapshots: the published artifact"""
    name: str
    content: str
    files: Tuple[str, ...] = ()
    upstream: Optional[str] = None
    source_patch: Optional[str] = None

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.content.encode('utf-8')).hexdigest()

    def touched_files(self) -> List[str]:
        """Canonical paths named in the patch's 'diff --git' headers"""
        if self.files:
            return list(self.files)
        touched = []
        for line in self.content.splitlines():
            if line.startswith("diff --git a/") and " b/" in line:
                touched.append(line[len("diff --git a/"):].split(" b/", 1)[0])
        return touched


class NoChanges:
    """Returned by a diff of byte-identical snapshots; nothing to publish"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CHANGES"


NO_CHANGES = NoChanges()


@dataclass
class SideEffectLedger:
    """Everything a run changed outside its own work directory"""
    # Dependency workspace, recorded before anything is touched
    dependency_original_ref: Optional[str] = None
    # Artifact repository, recorded before anything is touched
    artifact_original_branch: Optional[str] = None
    artifact_original_head: Optional[str] = None
    manifest_backup: Optional[str] = None
    # Created during CommittingArtifacts / Publishing
    written_files: List[str] = field(default_factory=list)
    commit: Optional[str] = None
    branch: Optional[str] = None
    branch_previous_target: Optional[str] = None
    tag: Optional[str] = None
    tag_previous_target: Optional[str] = None
    pushed_refs: List[str] = field(default_factory=list)


@dataclass
class PipelineRun:
    """One execution of the pipeline: current state plus undoable side effects"""
    release_tag: ReleaseTag
    state: PipelineState = PipelineState.INIT
    history: List[PipelineState] = field(default_factory=lambda: [PipelineState.INIT])
    ledger: SideEffectLedger = field(default_factory=SideEffectLedger)
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    # Artifacts produced along the way
    source_patch: Optional[SourcePatch] = None
    before: Optional[TreeSnapshot] = None
    after: Optional[TreeSnapshot] = None
    build_output: Optional[str] = None
    dist_patch: Optional[DistPatch] = None
    overwrite: bool = False
    outcome: Optional[RunOutcome] = None
    error: Optional[Exception] = None
    failed_state: Optional[PipelineState] = None
    rollback_errors: List[str] = field(default_factory=list)

    def enter(self, state: PipelineState):
        self.state = state
        self.history.append(state)


@dataclass
class RunResult:
    """Summary of a finished run, returned to callers and the CLI"""
    state: PipelineState
    outcome: RunOutcome
    release_tag: str
    history: List[PipelineState]
    dist_patch_name: Optional[str] = None
    dist_patch_sha256: Optional[str] = None
    error: Optional[Exception] = None
    failed_state: Optional[PipelineState] = None
    rollback_errors: List[str] = field(default_factory=list)
    touched_files: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if self.state == PipelineState.SUCCESS:
            return 0
        if self.state == PipelineState.ROLLED_BACK:
            return 4 if self.rollback_errors else 3
        return 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'state': self.state.value,
            'outcome': self.outcome.value,
            'release_tag': self.release_tag,
            'history': [state.value for state in self.history],
            'dist_patch_name': self.dist_patch_name,
            'dist_patch_sha256': self.dist_patch_sha256,
            'error': str(self.error) if self.error else None,
            'error_kind': self.error.kind.value if isinstance(self.error, PipelineError) and self.error.kind else None,
            'failed_state': self.failed_state.value if self.failed_state else None,
            'rollback_errors': list(self.rollback_errors),
            'notes': list(self.notes),
            'exit_code': self.exit_code,
        }
