"""
npm implementation of the PackageRegistry capability.
"""
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import CommandError, PublishFailureError
from ..core.models import DistPatch
from .base import PackageRegistry
from .command import run_command

PATCH_FILE_NAME = "dist.patch"


class NpmRegistry(PackageRegistry):
    """Publishes a DistPatch as an npm package containing a single dist.patch"""

    def __init__(
        self,
        package_name: str,
        staging_dir: Path,
        access: str = "public",
        description: Optional[str] = None,
        author: Optional[str] = None,
        license: str = "MIT",
        keywords: Optional[List[str]] = None,
        npm_command: str = "npm",
        timeout: Optional[int] = None
    ):
        self.package_name = package_name
        self.staging_dir = Path(staging_dir)
        self.access = access
        self.description = description
        self.author = author
        self.license = license
        self.keywords = keywords or []
        self.npm_command = npm_command
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def build_package_json(self, artifact: DistPatch, version: str) -> Dict[str, Any]:
        """Package metadata for one published DistPatch"""
        description = self.description or f"Dist patch overlay for {artifact.upstream or version}"
        package: Dict[str, Any] = {
            "name": self.package_name,
            "version": version,
            "description": description,
            "main": PATCH_FILE_NAME,
            "files": [PATCH_FILE_NAME],
            "keywords": self.keywords,
            "license": self.license,
            "publishConfig": {
                "access": self.access
            }
        }
        if self.author:
            package["author"] = self.author
        return package

    def stage(self, artifact: DistPatch, version: str) -> Path:
        """Write dist.patch and package.json into a fresh staging directory"""
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        self.staging_dir.mkdir(parents=True)

        (self.staging_dir / PATCH_FILE_NAME).write_text(artifact.content, encoding='utf-8')
        with open(self.staging_dir / "package.json", 'w') as f:
            json.dump(self.build_package_json(artifact, version), f, indent=2)
            f.write("\n")

        return self.staging_dir

    def publish(self, artifact: DistPatch, version: str):
        if not self.package_name:
            raise PublishFailureError("registry.package_name is not configured")

        try:
            run_command([self.npm_command, "whoami"], timeout=self.timeout)
        except CommandError as e:
            raise PublishFailureError(f"Not logged in to the npm registry: {e}") from e

        package_dir = self.stage(artifact, version)
        self.logger.info(f"Publishing {self.package_name}@{version}")
        try:
            run_command(
                [self.npm_command, "publish", "--access", self.access],
                cwd=package_dir,
                timeout=self.timeout
            )
        except CommandError as e:
            raise PublishFailureError(f"npm publish failed for {self.package_name}@{version}: {e}") from e
        finally:
            shutil.rmtree(package_dir, ignore_errors=True)

        self.logger.info(f"Published {self.package_name}@{version}")

    def resolve_dist_tag(self, package: str, dist_tag: str) -> Optional[str]:
        try:
            result = run_command(
                [self.npm_command, "info", package, f"dist-tags.{dist_tag}"],
                timeout=self.timeout
            )
        except CommandError as e:
            self.logger.warning(f"Could not resolve {package}@{dist_tag}: {e}")
            return None
        return result.stdout.strip() or None
