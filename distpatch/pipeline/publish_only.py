"""
Publish an already committed DistPatch without rebuilding.
"""
import logging

from ..backend.base import PackageRegistry, VersionControl
from ..config.run_config import RunConfig
from ..core.errors import PublishFailureError
from ..core.models import DistPatch

logger = logging.getLogger(__name__)


def publish_only(config: RunConfig, artifacts: VersionControl, registry: PackageRegistry) -> DistPatch:
    """
    Publish the committed DistPatch for config.release_tag.

    The artifact repository must be checked out on the tag's release branch
    and the DistPatch file must exist there.

    Returns:
        The published DistPatch

    Raises:
        PublishFailureError: if the preconditions do not hold or the registry rejects the package
    """
    branch = artifacts.current_branch()
    if branch != config.release_branch:
        raise PublishFailureError(
            f"Artifact repository is on {branch or 'a detached HEAD'}, "
            f"expected release branch {config.release_branch}"
        )

    path = config.dist_patch_path
    if not path.is_file():
        raise PublishFailureError(f"DistPatch {path} not found; run the pipeline first")

    with open(path, 'r', encoding='utf-8', newline='') as f:
        content = f.read()

    dist_patch = DistPatch(
        name=config.dist_patch_name,
        content=content,
        upstream=str(config.release_tag),
        source_patch=config.change_set.source_patch_name
    )
    logger.info(f"Publishing committed {dist_patch.name} (sha256 {dist_patch.sha256[:12]})")
    registry.publish(dist_patch, config.release_tag.version)
    return dist_patch
