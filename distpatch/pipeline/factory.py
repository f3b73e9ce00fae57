"""
Wiring of concrete backends from configuration.
"""
import logging
from pathlib import Path
from typing import List, Optional

from ..backend.base import PackageRegistry
from ..backend.build_tool import CommandBuildTool
from ..backend.git import GitRepository
from ..backend.npm_registry import NpmRegistry
from ..config.global_config_loader import GlobalConfig
from ..config.run_config import RunConfig
from .confirm import Confirmer
from .runner import PatchPipeline

logger = logging.getLogger(__name__)


def dependency_repository(global_config: GlobalConfig) -> GitRepository:
    dependency = global_config.dependency
    return GitRepository(
        Path(dependency.workspace),
        clone_url=dependency.clone_url,
        remote=dependency.origin_remote,
        upstream_url=dependency.upstream_url,
        upstream_remote=dependency.upstream_remote
    )


def artifact_repository(global_config: GlobalConfig) -> GitRepository:
    return GitRepository(Path(global_config.artifacts.repo_path), remote=global_config.artifacts.remote)


def package_registry(global_config: GlobalConfig) -> NpmRegistry:
    registry = global_config.registry
    return NpmRegistry(
        package_name=registry.package_name,
        staging_dir=Path(registry.staging_dir),
        access=registry.access,
        description=registry.description,
        author=registry.author,
        license=registry.license,
        keywords=registry.keywords
    )


def fetch_refs_for(global_config: GlobalConfig, run_config: RunConfig) -> List[str]:
    """Refs the dependency workspace needs: the change-carrying branch and the release tag"""
    refs = []
    if global_config.dependency.changes_branch:
        refs.append(global_config.dependency.changes_branch)
    tag = str(run_config.release_tag)
    refs.append(f"refs/tags/{tag}:refs/tags/{tag}")
    return refs


def build_pipeline(
    global_config: GlobalConfig,
    run_config: RunConfig,
    confirmer: Optional[Confirmer] = None
) -> PatchPipeline:
    """
    Construct a PatchPipeline backed by git, the configured build commands and npm.

    Args:
        global_config: Loaded GlobalConfig
        run_config: Resolved RunConfig
        confirmer: Interactive or policy confirmer

    Returns:
        PatchPipeline
    """
    build = global_config.build
    build_tool = CommandBuildTool(
        build_command=build.build_command,
        output_dir=build.output_dir,
        install_command=build.install_command,
        clean_build_command=build.clean_build_command,
        cache_paths=build.cache_paths,
        timeout=build.timeout
    )
    return PatchPipeline(
        run_config,
        dependency=dependency_repository(global_config),
        artifacts=artifact_repository(global_config),
        build_tool=build_tool,
        registry=package_registry(global_config),
        confirmer=confirmer,
        fetch_refs=fetch_refs_for(global_config, run_config)
    )


def resolve_release_tag(
    explicit: Optional[str],
    registry: PackageRegistry,
    global_config: GlobalConfig,
    confirmer: Optional[Confirmer] = None
) -> str:
    """
    Pick the release tag for a run.

    An explicit tag wins. Otherwise the upstream package's dist-tag is looked
    up in the registry, falling back to pipeline.default_tag; the confirmer
    may accept or replace that default.

    Raises:
        ValueError: if no tag can be determined
    """
    if explicit:
        return explicit

    default = None
    upstream_package = global_config.registry.upstream_package
    if upstream_package:
        dist_tag = global_config.registry.default_dist_tag
        default = registry.resolve_dist_tag(upstream_package, dist_tag)
        if default:
            logger.info(f"{upstream_package}@{dist_tag} is {default}")
    if not default:
        default = global_config.pipeline.default_tag

    if confirmer is not None and default:
        default = confirmer.choose_release_tag(default)
    if not default:
        raise ValueError("No release tag given and none could be resolved from the registry or configuration")
    return default
