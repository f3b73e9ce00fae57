"""
Error taxonomy for patch pipeline runs.

Every error that terminates a run carries an ErrorKind and, once the runner
has seen it, the PipelineState the run was in when it failed.
"""
from typing import List, Optional, Sequence

from .enums import ErrorKind, PipelineState


class CommandError(Exception):
    """An external command (git, build tool, registry client) exited non-zero"""

    def __init__(self, command: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = (stderr or stdout or "").strip()
        message = f"Command {' '.join(self.command)!r} failed with exit code {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PipelineError(Exception):
    """Base class for all terminal run errors"""

    kind: ErrorKind = None

    def __init__(self, message: str, state: Optional[PipelineState] = None):
        super().__init__(message)
        self.message = message
        self.state = state

    def __str__(self) -> str:
        if self.state is not None:
            return f"[{self.kind.value} @ {self.state.value}] {self.message}"
        return f"[{self.kind.value}] {self.message}"


class ChangeConflictError(PipelineError):
    kind = ErrorKind.CHANGE_CONFLICT

    def __init__(self, message: str, position: Optional[int] = None, change_id: Optional[str] = None,
                 state: Optional[PipelineState] = None):
        super().__init__(message, state)
        self.position = position
        self.change_id = change_id


class DirtyWorkspaceError(PipelineError):
    kind = ErrorKind.DIRTY_WORKSPACE

    def __init__(self, message: str, workspace: Optional[str] = None, state: Optional[PipelineState] = None):
        super().__init__(message, state)
        self.workspace = workspace


class ArtifactAlreadyExistsError(PipelineError):
    kind = ErrorKind.ARTIFACT_ALREADY_EXISTS

    def __init__(self, message: str, refs: Optional[List[str]] = None, state: Optional[PipelineState] = None):
        super().__init__(message, state)
        self.refs = refs or []


class BuildFailureError(PipelineError):
    kind = ErrorKind.BUILD_FAILURE


class FingerprintMissingError(PipelineError):
    kind = ErrorKind.FINGERPRINT_MISSING

    def __init__(self, message: str, marker: Optional[str] = None, missing_paths: Optional[List[str]] = None,
                 state: Optional[PipelineState] = None):
        super().__init__(message, state)
        self.marker = marker
        self.missing_paths = missing_paths or []


class PatchDriftError(PipelineError):
    kind = ErrorKind.PATCH_DRIFT

    def __init__(self, key: str, stored_hash: str, new_hash: str, state: Optional[PipelineState] = None):
        super().__init__(
            f"DistPatch '{key}' differs from the published artifact "
            f"(stored {stored_hash[:12]}, new {new_hash[:12]})",
            state
        )
        self.key = key
        self.stored_hash = stored_hash
        self.new_hash = new_hash


class ManifestConflictError(PipelineError):
    kind = ErrorKind.MANIFEST_CONFLICT

    def __init__(self, message: str, key: Optional[str] = None, state: Optional[PipelineState] = None):
        super().__init__(message, state)
        self.key = key


class PublishFailureError(PipelineError):
    kind = ErrorKind.PUBLISH_FAILURE
