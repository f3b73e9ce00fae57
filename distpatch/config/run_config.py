"""
Immutable per-run configuration.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..core.enums import DriftPolicy
from ..core.models import ChangeSet, ReleaseTag
from .global_config_loader import GlobalConfig


@dataclass(frozen=True)
class RunConfig:
    """Everything one PipelineRun needs, resolved before the run starts"""
    release_tag: ReleaseTag
    change_set: ChangeSet
    fingerprint: str
    dependency_workspace: Path
    artifact_repo: Path
    patches_dir: Path
    manifest_path: Path
    work_dir: Path
    canonical_prefix: str = "dist"
    expected_paths: Tuple[str, ...] = ()
    lockfile: Optional[str] = None
    artifact_remote: str = "origin"
    branch_prefix: str = "patch-"
    dry_run: bool = False
    force_refresh: bool = False
    clean_build: bool = False
    on_drift: DriftPolicy = DriftPolicy.ABORT

    @property
    def release_branch(self) -> str:
        return f"{self.branch_prefix}{self.release_tag}"

    @property
    def dist_patch_name(self) -> str:
        return f"dist-{self.release_tag}-{self.change_set.stem}.patch"

    @property
    def source_patch_path(self) -> Path:
        return self.patches_dir / self.change_set.source_patch_name

    @property
    def dist_patch_path(self) -> Path:
        return self.patches_dir / self.dist_patch_name

    @property
    def snapshot_dir(self) -> Path:
        return self.work_dir / "snapshots"

    @property
    def dry_run_dir(self) -> Path:
        return self.work_dir / "dry-run"

    @classmethod
    def from_global_config(
        cls,
        global_config: GlobalConfig,
        release_tag: str,
        dry_run: bool = False,
        force_refresh: bool = False,
        clean_build: bool = False,
        on_drift: Optional[str] = None
    ) -> 'RunConfig':
        """
        Resolve a RunConfig from the loaded global configuration and CLI flags.

        Args:
            global_config: Loaded GlobalConfig
            release_tag: Upstream tag to patch (with or without leading 'v')
            dry_run: Simulate commit and publish
            force_refresh: Re-clone the dependency workspace
            clean_build: Bypass the build cache for the patched build
            on_drift: Override of pipeline.on_drift

        Returns:
            RunConfig
        """
        issues = global_config.validate()
        if issues:
            raise ValueError("Invalid configuration: " + "; ".join(issues))

        artifact_repo = Path(global_config.artifacts.repo_path)
        patches_dir = Path(global_config.artifacts.patches_dir)
        if not patches_dir.is_absolute():
            patches_dir = artifact_repo / patches_dir
        manifest_path = Path(global_config.artifacts.manifest_path)
        if not manifest_path.is_absolute():
            manifest_path = artifact_repo / manifest_path

        return cls(
            release_tag=ReleaseTag(release_tag),
            change_set=ChangeSet.from_ids(
                global_config.change_set.source_patch_name,
                global_config.change_set.changes
            ),
            fingerprint=global_config.verification.fingerprint,
            dependency_workspace=Path(global_config.dependency.workspace),
            artifact_repo=artifact_repo,
            patches_dir=patches_dir,
            manifest_path=manifest_path,
            work_dir=Path(global_config.pipeline.work_dir),
            canonical_prefix=global_config.pipeline.canonical_prefix,
            expected_paths=tuple(global_config.verification.expected_paths),
            lockfile=global_config.dependency.lockfile,
            artifact_remote=global_config.artifacts.remote,
            branch_prefix=global_config.artifacts.branch_prefix,
            dry_run=dry_run,
            force_refresh=force_refresh,
            clean_build=clean_build,
            on_drift=DriftPolicy(on_drift or global_config.pipeline.on_drift),
        )
