"""
Executes transition effects: compensating rollback and workspace release.

Every action consults the run's SideEffectLedger, checks the repository
before acting and clears the ledger entry it undid, so applying the same
effect twice leaves the same end state.
"""
import logging
from pathlib import Path

from ..backend.base import VersionControl
from ..config.run_config import RunConfig
from ..core.enums import Effect
from ..core.models import PipelineRun
from ..manifest.registry import ManifestRegistry


class Compensator:
    """Undoes what a run did to both repositories"""

    def __init__(
        self,
        config: RunConfig,
        dependency: VersionControl,
        artifacts: VersionControl,
        manifest: ManifestRegistry
    ):
        self.config = config
        self.dependency = dependency
        self.artifacts = artifacts
        self.manifest = manifest
        self.logger = logging.getLogger(__name__)

        self._actions = {
            Effect.DISCARD_TAG: self.discard_tag,
            Effect.DISCARD_BRANCH: self.discard_branch,
            Effect.RESTORE_ARTIFACT_REPO: self.restore_artifact_repo,
            Effect.RESTORE_DEPENDENCY_WORKSPACE: self.restore_dependency_workspace,
            Effect.RELEASE_WORKSPACE: self.release_workspace,
        }

    def apply(self, effect: Effect, run: PipelineRun):
        self.logger.info(f"Applying effect: {effect.value}")
        self._actions[effect](run)

    def discard_tag(self, run: PipelineRun):
        ledger = run.ledger
        tag = ledger.tag
        if not tag:
            return

        remote_ref = f"refs/tags/{tag}"
        previous = ledger.tag_previous_target
        if previous:
            if self.artifacts.tag_target(tag) != previous:
                self.logger.info(f"Restoring tag {tag} to {previous[:12]}")
                self.artifacts.set_tag(tag, previous, force=True)
            if remote_ref in ledger.pushed_refs:
                self.artifacts.push(remote_ref, force=True)
        else:
            if self.artifacts.tag_target(tag):
                self.logger.info(f"Deleting tag {tag}")
                self.artifacts.delete_tag(tag)
            if remote_ref in ledger.pushed_refs:
                self.logger.info(f"Deleting remote tag {tag}")
                self.artifacts.delete_remote_ref(remote_ref)

        if remote_ref in ledger.pushed_refs:
            ledger.pushed_refs.remove(remote_ref)
        ledger.tag = None
        ledger.tag_previous_target = None

    def discard_branch(self, run: PipelineRun):
        ledger = run.ledger
        branch = ledger.branch
        if not branch:
            return

        remote_ref = f"refs/heads/{branch}"
        previous = ledger.branch_previous_target
        if previous:
            if self.artifacts.branch_target(branch) != previous:
                self.logger.info(f"Restoring branch {branch} to {previous[:12]}")
                self.artifacts.set_branch(branch, previous, force=True)
            if remote_ref in ledger.pushed_refs:
                self.artifacts.push(remote_ref, force=True)
        else:
            if self.artifacts.branch_target(branch):
                self.logger.info(f"Deleting branch {branch}")
                self.artifacts.delete_branch(branch)
            if remote_ref in ledger.pushed_refs:
                self.logger.info(f"Deleting remote branch {branch}")
                self.artifacts.delete_remote_ref(remote_ref)

        if remote_ref in ledger.pushed_refs:
            ledger.pushed_refs.remove(remote_ref)
        ledger.branch = None
        ledger.branch_previous_target = None

    def restore_artifact_repo(self, run: PipelineRun):
        ledger = run.ledger
        if not ledger.artifact_original_head:
            return

        original_branch = ledger.artifact_original_branch
        if original_branch and self.artifacts.current_branch() != original_branch:
            self.artifacts.checkout(original_branch)

        if self.artifacts.head() != ledger.artifact_original_head or not self.artifacts.is_clean():
            self.logger.info(f"Resetting artifact repository to {ledger.artifact_original_head[:12]}")
            self.artifacts.reset_hard(ledger.artifact_original_head)
        ledger.commit = None

        for written in list(ledger.written_files):
            path = Path(written)
            if path.exists():
                self.logger.info(f"Removing {path}")
                path.unlink()
            ledger.written_files.remove(written)

        if self.manifest.read_raw() != ledger.manifest_backup:
            self.manifest.restore_raw(ledger.manifest_backup)

    def restore_dependency_workspace(self, run: PipelineRun):
        ledger = run.ledger
        if not ledger.dependency_original_ref:
            return

        self.logger.info(f"Restoring dependency workspace to {ledger.dependency_original_ref}")
        self.dependency.reset_hard("HEAD")
        self.dependency.clean()
        self.dependency.checkout(ledger.dependency_original_ref)
        self.dependency.reset_hard("HEAD")
        self.dependency.clean()

    def release_workspace(self, run: PipelineRun):
        """Success cleanup: pristine dependency workspace, removed when it was force-refreshed"""
        self.restore_dependency_workspace(run)
        if self.config.force_refresh:
            self.dependency.discard_workspace()
