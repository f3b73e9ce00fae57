from .enums import (
    PipelineState,
    ErrorKind,
    PipelineEvent,
    Effect,
    RunOutcome,
    DriftPolicy,
    ComparisonDecision,
    TERMINAL_STATES,
)
from .errors import (
    CommandError,
    PipelineError,
    ChangeConflictError,
    DirtyWorkspaceError,
    ArtifactAlreadyExistsError,
    BuildFailureError,
    FingerprintMissingError,
    PatchDriftError,
    ManifestConflictError,
    PublishFailureError,
)
from .models import (
    ReleaseTag,
    ChangeRef,
    ChangeSet,
    SourcePatch,
    TreeSnapshot,
    DistPatch,
    NoChanges,
    NO_CHANGES,
    SideEffectLedger,
    PipelineRun,
    RunResult,
)

__all__ = [
    'PipelineState',
    'ErrorKind',
    'PipelineEvent',
    'Effect',
    'RunOutcome',
    'DriftPolicy',
    'ComparisonDecision',
    'TERMINAL_STATES',
    'CommandError',
    'PipelineError',
    'ChangeConflictError',
    'DirtyWorkspaceError',
    'ArtifactAlreadyExistsError',
    'BuildFailureError',
    'FingerprintMissingError',
    'PatchDriftError',
    'ManifestConflictError',
    'PublishFailureError',
    'ReleaseTag',
    'ChangeRef',
    'ChangeSet',
    'SourcePatch',
    'TreeSnapshot',
    'DistPatch',
    'NoChanges',
    'NO_CHANGES',
    'SideEffectLedger',
    'PipelineRun',
    'RunResult',
]
