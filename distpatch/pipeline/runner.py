"""
Patch pipeline runner.

Drives one PipelineRun through the fixed state order. Each state's work
returns a PipelineEvent; ``transition`` decides the next state and which
effects the Compensator executes.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..backend.base import BuildTool, PackageRegistry, VersionControl
from ..config.run_config import RunConfig
from ..core.enums import ComparisonDecision, PipelineEvent, PipelineState, RunOutcome
from ..core.errors import (
    ArtifactAlreadyExistsError, ChangeConflictError, CommandError, DirtyWorkspaceError,
    ManifestConflictError, PatchDriftError, PipelineError, PublishFailureError
)
from ..core.models import NO_CHANGES, PipelineRun, RunResult
from ..manifest.comparator import IdempotencyComparator
from ..manifest.models import ManifestEntry
from ..manifest.registry import ManifestRegistry
from ..patch.composer import ChangeComposer
from ..snapshot.store import SnapshotStore
from ..utils.hash_calculator import HashCalculator
from ..verify.fingerprint import FingerprintVerifier
from .compensator import Compensator
from .confirm import Confirmer, PolicyConfirmer
from .transitions import ROLLBACK_EFFECTS, transition

SHORT_CIRCUIT_OUTCOMES = {
    PipelineEvent.NO_CHANGES: RunOutcome.NO_CHANGES,
    PipelineEvent.UNCHANGED: RunOutcome.UNCHANGED,
    PipelineEvent.DECLINED: RunOutcome.SKIPPED,
}


class PatchPipeline:
    """
    Builds, verifies, commits and publishes one DistPatch.

    All collaborators are injected so that the state machine can be driven
    with in-memory fakes.
    """

    def __init__(
        self,
        config: RunConfig,
        dependency: VersionControl,
        artifacts: VersionControl,
        build_tool: BuildTool,
        registry: PackageRegistry,
        confirmer: Optional[Confirmer] = None,
        manifest: Optional[ManifestRegistry] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        fetch_refs: Optional[List[str]] = None
    ):
        """
        Initialize pipeline.

        Args:
            config: Immutable run configuration
            dependency: Dependency workspace (changes are composed and built here)
            artifacts: Artifact repository (patches and manifest are committed here)
            build_tool: Produces the build output tree
            registry: Package registry the DistPatch is published to
            confirmer: Answers overwrite confirmations (defaults to the configured drift policy)
            manifest: Manifest registry (defaults to config.manifest_path)
            snapshot_store: Snapshot store (defaults to config.snapshot_dir)
            fetch_refs: Refs fetched into the dependency workspace during Init
        """
        self.config = config
        self.dependency = dependency
        self.artifacts = artifacts
        self.build_tool = build_tool
        self.registry = registry
        self.confirmer = confirmer or PolicyConfirmer(config.on_drift)
        self.manifest = manifest or ManifestRegistry(config.manifest_path)
        self.snapshot_store = snapshot_store or SnapshotStore(
            config.snapshot_dir, canonical_prefix=config.canonical_prefix
        )
        self.fetch_refs = fetch_refs or []

        self.composer = ChangeComposer(dependency)
        self.verifier = FingerprintVerifier(self.snapshot_store)
        self.comparator = IdempotencyComparator(self.manifest, config.patches_dir)
        self.compensator = Compensator(config, dependency, artifacts, self.manifest)
        self.logger = logging.getLogger(__name__)

        self._handlers: Dict[PipelineState, Callable[[PipelineRun], PipelineEvent]] = {
            PipelineState.INIT: self._init,
            PipelineState.VALIDATING_WORKSPACES: self._validate_workspaces,
            PipelineState.COMPOSING_PATCH: self._compose_patch,
            PipelineState.BUILDING_BASELINE: self._build_baseline,
            PipelineState.SNAPSHOTTING_BEFORE: self._snapshot_before,
            PipelineState.APPLYING_PATCH: self._apply_patch,
            PipelineState.BUILDING_PATCHED: self._build_patched,
            PipelineState.SNAPSHOTTING_AFTER: self._snapshot_after,
            PipelineState.VERIFYING_FINGERPRINT: self._verify_fingerprint,
            PipelineState.GENERATING_DIST_PATCH: self._generate_dist_patch,
            PipelineState.COMPARING_IDEMPOTENCY: self._compare_idempotency,
            PipelineState.COMMITTING_ARTIFACTS: self._commit_artifacts,
            PipelineState.PUBLISHING: self._publish,
        }

    def run(self) -> RunResult:
        """
        Execute a full run.

        Returns:
            RunResult describing the terminal state, outcome and any error
        """
        run = PipelineRun(release_tag=self.config.release_tag)
        mode = " (dry run)" if self.config.dry_run else ""
        self.logger.info(
            f"Starting patch pipeline for {run.release_tag} with "
            f"{len(self.config.change_set)} changes{mode}"
        )

        last_event = None
        while not run.state.is_terminal:
            state = run.state
            self.logger.info(f"Entering state: {state.value}")
            event = self._execute(state, run)
            last_event = event

            step = transition(state, event, dry_run=self.config.dry_run)
            for effect in step.effects:
                try:
                    self.compensator.apply(effect, run)
                except Exception as e:
                    if effect in ROLLBACK_EFFECTS:
                        self.logger.error(f"Rollback action {effect.value} failed: {e}", exc_info=True)
                        run.rollback_errors.append(f"{effect.value}: {e}")
                    else:
                        self.logger.warning(f"Cleanup action {effect.value} failed: {e}")
            run.enter(step.target)

        run.outcome = self._outcome(run, last_event)
        self._log_summary(run)
        return self._result(run)

    def rollback(self, run: PipelineRun) -> List[str]:
        """
        Undo every recorded side effect of a run. Safe to call repeatedly.

        Returns:
            Messages of compensating actions that failed
        """
        errors = []
        for effect in ROLLBACK_EFFECTS:
            try:
                self.compensator.apply(effect, run)
            except Exception as e:
                self.logger.error(f"Rollback action {effect.value} failed: {e}", exc_info=True)
                errors.append(f"{effect.value}: {e}")
        return errors

    def _execute(self, state: PipelineState, run: PipelineRun) -> PipelineEvent:
        try:
            return self._handlers[state](run)
        except PipelineError as e:
            if e.state is None:
                e.state = state
            self.logger.error(f"State {state.value} failed: {e}")
            run.error = e
        except Exception as e:
            self.logger.error(f"Unexpected error in state {state.value}: {e}", exc_info=True)
            run.error = e
        run.failed_state = state
        return PipelineEvent.FAILED

    # States

    def _init(self, run: PipelineRun) -> PipelineEvent:
        ledger = run.ledger
        try:
            self.dependency.ensure_workspace(refresh=self.config.force_refresh, fetch_refs=self.fetch_refs)
        except CommandError as e:
            raise DirtyWorkspaceError(
                f"Could not prepare dependency workspace: {e}", workspace=str(self.dependency.path)
            ) from e
        try:
            self.artifacts.ensure_workspace()
        except CommandError as e:
            raise DirtyWorkspaceError(
                f"Artifact repository is not usable: {e}", workspace=str(self.artifacts.path)
            ) from e

        ledger.dependency_original_ref = self.dependency.current_branch() or self.dependency.head()
        ledger.artifact_original_branch = self.artifacts.current_branch()
        ledger.artifact_original_head = self.artifacts.head()
        ledger.manifest_backup = self.manifest.read_raw()

        self.logger.info(
            f"Dependency workspace at {ledger.dependency_original_ref}, artifact repository at "
            f"{ledger.artifact_original_branch or 'detached'} {ledger.artifact_original_head[:12]}"
        )
        return PipelineEvent.COMPLETED

    def _validate_workspaces(self, run: PipelineRun) -> PipelineEvent:
        for name, vcs in (("dependency workspace", self.dependency), ("artifact repository", self.artifacts)):
            if not vcs.is_clean():
                raise DirtyWorkspaceError(
                    f"The {name} {vcs.path} has uncommitted changes:\n{vcs.status()}",
                    workspace=str(vcs.path)
                )

        existing = []
        if self.artifacts.branch_target(self.config.release_branch):
            existing.append(f"branch {self.config.release_branch}")
        if self.artifacts.tag_target(str(run.release_tag)):
            existing.append(f"tag {run.release_tag}")

        if existing:
            key = self.config.dist_patch_name
            if self.manifest.get(key) is None:
                raise ArtifactAlreadyExistsError(
                    f"{' and '.join(existing)} already exist in the artifact repository "
                    f"but the manifest has no entry for '{key}'",
                    refs=existing
                )
            self.logger.info(f"Found published artifact refs ({', '.join(existing)}); comparing later")

        return PipelineEvent.COMPLETED

    def _compose_patch(self, run: PipelineRun) -> PipelineEvent:
        run.source_patch = self.composer.compose(self.config.change_set, str(run.release_tag))
        return PipelineEvent.COMPLETED

    def _build_baseline(self, run: PipelineRun) -> PipelineEvent:
        self.dependency.checkout(str(run.release_tag), detach=True)
        run.build_output = str(self.build_tool.build(self.dependency.path))
        return PipelineEvent.COMPLETED

    def _snapshot_before(self, run: PipelineRun) -> PipelineEvent:
        run.before = self.snapshot_store.capture(run.build_output, self._build_key(run), label="before")
        return PipelineEvent.COMPLETED

    def _apply_patch(self, run: PipelineRun) -> PipelineEvent:
        try:
            self.dependency.apply_patch(run.source_patch.content)
        except CommandError as e:
            raise ChangeConflictError(
                f"{run.source_patch.name} does not apply to {run.release_tag}: {e}"
            ) from e
        self.logger.info(f"Applied {run.source_patch.name} to the working tree")
        return PipelineEvent.COMPLETED

    def _build_patched(self, run: PipelineRun) -> PipelineEvent:
        run.build_output = str(self.build_tool.build(self.dependency.path, clean=self.config.clean_build))
        return PipelineEvent.COMPLETED

    def _snapshot_after(self, run: PipelineRun) -> PipelineEvent:
        run.after = self.snapshot_store.capture(run.build_output, self._build_key(run), label="after")
        return PipelineEvent.COMPLETED

    def _verify_fingerprint(self, run: PipelineRun) -> PipelineEvent:
        self.verifier.verify(run.after, self.config.fingerprint, self.config.expected_paths)
        return PipelineEvent.COMPLETED

    def _generate_dist_patch(self, run: PipelineRun) -> PipelineEvent:
        result = self.snapshot_store.diff(
            run.before,
            run.after,
            name=self.config.dist_patch_name,
            upstream=str(run.release_tag),
            source_patch=run.source_patch.name
        )
        if result is NO_CHANGES:
            self.logger.warning("Patched build output is identical to the baseline; nothing to publish")
            return PipelineEvent.NO_CHANGES

        run.dist_patch = result
        touched = result.touched_files()
        self.logger.info(f"Generated {result.name} (sha256 {result.sha256[:12]}), {len(touched)} files touched:")
        for path in touched:
            self.logger.info(f"  {path}")
        return PipelineEvent.COMPLETED

    def _compare_idempotency(self, run: PipelineRun) -> PipelineEvent:
        try:
            comparison = self.comparator.compare(run.dist_patch)
        except PatchDriftError as e:
            if self.confirmer.confirm_overwrite(e.key, e.stored_hash, e.new_hash):
                self.logger.warning(f"Overwrite of '{e.key}' confirmed")
                run.overwrite = True
                return PipelineEvent.COMPLETED
            self.logger.warning(f"Overwrite of '{e.key}' declined; keeping the published artifact")
            return PipelineEvent.DECLINED

        if comparison.decision == ComparisonDecision.UNCHANGED:
            return PipelineEvent.UNCHANGED
        return PipelineEvent.COMPLETED

    def _commit_artifacts(self, run: PipelineRun) -> PipelineEvent:
        if self.config.dry_run:
            self._write_dry_run(run)
            return PipelineEvent.COMPLETED

        ledger = run.ledger
        self._write_artifact(run, self.config.source_patch_path, run.source_patch.content)
        self._write_artifact(run, self.config.dist_patch_path, run.dist_patch.content)

        entry = ManifestEntry(
            upstream=str(run.release_tag),
            source_patch=run.source_patch.name,
            change_refs=list(run.source_patch.change_ids),
            sha256=run.dist_patch.sha256
        )
        if not self.manifest.put(run.dist_patch.name, entry, overwrite=run.overwrite):
            raise ManifestConflictError(
                f"Manifest already records '{run.dist_patch.name}' with identical content",
                key=run.dist_patch.name
            )

        paths = [
            str(self.config.source_patch_path),
            str(self.config.dist_patch_path),
            str(self.manifest.manifest_path),
        ]
        branch = self.config.release_branch
        tag = str(run.release_tag)
        try:
            self.artifacts.add(paths)
            ledger.commit = self.artifacts.commit(
                f"Add {run.dist_patch.name} for {tag}\n\n"
                f"Source patch: {run.source_patch.name}\n"
                f"Changes: {', '.join(run.source_patch.change_ids)}\n"
                f"sha256: {run.dist_patch.sha256}"
            )

            ledger.branch = branch
            ledger.branch_previous_target = self.artifacts.branch_target(branch)
            self.artifacts.set_branch(branch, ledger.commit, force=run.overwrite)

            ledger.tag = tag
            ledger.tag_previous_target = self.artifacts.tag_target(tag)
            self.artifacts.set_tag(tag, ledger.commit, force=run.overwrite)
        except CommandError as e:
            raise PublishFailureError(f"Could not commit artifacts: {e}") from e

        self.logger.info(f"Committed {run.dist_patch.name} as {ledger.commit[:12]} ({branch}, {tag})")
        return PipelineEvent.COMPLETED

    def _publish(self, run: PipelineRun) -> PipelineEvent:
        version = run.release_tag.version
        if self.config.dry_run:
            self.logger.info(
                f"Dry run: would push {self.config.release_branch} and {run.release_tag}, "
                f"then publish version {version}"
            )
            return PipelineEvent.COMPLETED

        ledger = run.ledger
        for ref in (f"refs/heads/{self.config.release_branch}", f"refs/tags/{run.release_tag}"):
            try:
                self.artifacts.push(ref, force=run.overwrite)
            except CommandError as e:
                raise PublishFailureError(f"Could not push {ref}: {e}") from e
            ledger.pushed_refs.append(ref)

        # A failed publish may still have reached the registry; rollback runs regardless
        self.registry.publish(run.dist_patch, version)
        return PipelineEvent.COMPLETED

    # Helpers

    def _build_key(self, run: PipelineRun) -> str:
        """Identity of the build configuration: release tag plus locked dependency versions"""
        lockfile_hash = None
        if self.config.lockfile:
            lockfile = Path(self.dependency.path) / self.config.lockfile
            if lockfile.is_file():
                lockfile_hash = HashCalculator.hash_file(lockfile)
        return HashCalculator.hash_document({
            'release_tag': str(run.release_tag),
            'lockfile': lockfile_hash,
        })

    def _write_artifact(self, run: PipelineRun, path: Path, content: str):
        path = Path(path)
        if not path.exists():
            run.ledger.written_files.append(str(path))
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8', errors='surrogateescape', newline='') as f:
            f.write(content)
        self.logger.info(f"Wrote {path}")

    def _write_dry_run(self, run: PipelineRun):
        output_dir = self.config.dry_run_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        for name, content in (
            (run.source_patch.name, run.source_patch.content),
            (run.dist_patch.name, run.dist_patch.content),
        ):
            with open(output_dir / name, 'w', encoding='utf-8', errors='surrogateescape', newline='') as f:
                f.write(content)
        self.logger.info(
            f"Dry run: wrote {run.dist_patch.name} to {output_dir}; "
            f"no commit, branch or tag created"
        )

    def _outcome(self, run: PipelineRun, last_event: Optional[PipelineEvent]) -> RunOutcome:
        if run.state == PipelineState.ROLLED_BACK:
            return RunOutcome.ROLLED_BACK
        if run.state == PipelineState.FAILED:
            return RunOutcome.FAILED
        if last_event in SHORT_CIRCUIT_OUTCOMES:
            return SHORT_CIRCUIT_OUTCOMES[last_event]
        return RunOutcome.DRY_RUN if self.config.dry_run else RunOutcome.PUBLISHED

    def _log_summary(self, run: PipelineRun):
        if run.state == PipelineState.SUCCESS:
            self.logger.info(f"Run finished: {run.outcome.value}")
            for note in self._notes(run):
                self.logger.warning(note)
        elif run.rollback_errors:
            self.logger.error(
                f"Run rolled back incompletely after failing in {run.failed_state.value}: "
                f"{'; '.join(run.rollback_errors)}"
            )
        else:
            self.logger.error(f"Run ended in {run.state.value} after failing in {run.failed_state.value}")

    def _notes(self, run: PipelineRun) -> List[str]:
        """Follow-up instructions for the user; a successful dry run leaves the workspace patched"""
        if not (self.config.dry_run and run.state == PipelineState.SUCCESS):
            return []
        workspace = self.dependency.path
        notes = []
        if run.outcome == RunOutcome.DRY_RUN:
            notes.append(f"Patches written to {self.config.dry_run_dir}")
        notes.append(
            f"Dependency workspace {workspace} was left patched for inspection and the next run will "
            f"reject it as dirty. Restore it with 'git -C {workspace} reset --hard && "
            f"git -C {workspace} clean -fd && git -C {workspace} checkout "
            f"{run.ledger.dependency_original_ref}', or rerun with --force-refresh"
        )
        return notes

    def _result(self, run: PipelineRun) -> RunResult:
        dist_patch = run.dist_patch
        return RunResult(
            state=run.state,
            outcome=run.outcome,
            release_tag=str(run.release_tag),
            history=list(run.history),
            dist_patch_name=dist_patch.name if dist_patch else None,
            dist_patch_sha256=dist_patch.sha256 if dist_patch else None,
            error=run.error,
            failed_state=run.failed_state,
            rollback_errors=list(run.rollback_errors),
            touched_files=dist_patch.touched_files() if dist_patch else [],
            notes=self._notes(run)
        )
