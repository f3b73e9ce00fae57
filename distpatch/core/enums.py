from enum import Enum


class PipelineState(str, Enum):
    INIT = "init"
    VALIDATING_WORKSPACES = "validating_workspaces"
    COMPOSING_PATCH = "composing_patch"
    BUILDING_BASELINE = "building_baseline"
    SNAPSHOTTING_BEFORE = "snapshotting_before"
    APPLYING_PATCH = "applying_patch"
    BUILDING_PATCHED = "building_patched"
    SNAPSHOTTING_AFTER = "snapshotting_after"
    VERIFYING_FINGERPRINT = "verifying_fingerprint"
    GENERATING_DIST_PATCH = "generating_dist_patch"
    COMPARING_IDEMPOTENCY = "comparing_idempotency"
    COMMITTING_ARTIFACTS = "committing_artifacts"
    PUBLISHING = "publishing"
    SUCCESS = "success"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    PipelineState.SUCCESS,
    PipelineState.ROLLED_BACK,
    PipelineState.FAILED,
})


class ErrorKind(str, Enum):
    CHANGE_CONFLICT = "change_conflict"
    DIRTY_WORKSPACE = "dirty_workspace"
    ARTIFACT_ALREADY_EXISTS = "artifact_already_exists"
    BUILD_FAILURE = "build_failure"
    FINGERPRINT_MISSING = "fingerprint_missing"
    PATCH_DRIFT = "patch_drift"
    MANIFEST_CONFLICT = "manifest_conflict"
    PUBLISH_FAILURE = "publish_failure"


class PipelineEvent(str, Enum):
    """Outcome of executing the work of one state"""
    COMPLETED = "completed"
    FAILED = "failed"
    NO_CHANGES = "no_changes"  # before/after snapshots identical
    UNCHANGED = "unchanged"  # new DistPatch equals the published one
    DECLINED = "declined"  # drift detected, overwrite not confirmed


class Effect(str, Enum):
    """Side effects requested by a transition, executed by the runner"""
    RESTORE_DEPENDENCY_WORKSPACE = "restore_dependency_workspace"
    DISCARD_TAG = "discard_tag"
    DISCARD_BRANCH = "discard_branch"
    RESTORE_ARTIFACT_REPO = "restore_artifact_repo"
    RELEASE_WORKSPACE = "release_workspace"


class RunOutcome(str, Enum):
    PUBLISHED = "published"
    DRY_RUN = "dry_run"
    UNCHANGED = "unchanged"
    NO_CHANGES = "no_changes"
    SKIPPED = "skipped"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class DriftPolicy(str, Enum):
    """What to do when a regenerated DistPatch differs from the published one"""
    ABORT = "abort"
    OVERWRITE = "overwrite"
    PROMPT = "prompt"


class ComparisonDecision(str, Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
