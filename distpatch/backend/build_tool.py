"""
Build tool driven by configured shell commands.
"""
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..core.errors import BuildFailureError, CommandError
from .base import BuildTool
from .command import run_command


class CommandBuildTool(BuildTool):
    """Runs install + build commands in the dependency workspace"""

    def __init__(
        self,
        build_command: str,
        output_dir: str,
        install_command: Optional[str] = None,
        clean_build_command: Optional[str] = None,
        cache_paths: Optional[List[str]] = None,
        timeout: Optional[int] = None
    ):
        """
        Initialize build tool.

        Args:
            build_command: Command producing the output tree
            output_dir: Output tree, relative to the workspace
            install_command: Dependency installation run before each build
            clean_build_command: Command used instead of build_command for clean builds
            cache_paths: Paths (relative to the workspace) removed on clean builds
            timeout: Timeout per command in seconds
        """
        self.build_command = build_command
        self.output_dir = output_dir
        self.install_command = install_command
        self.clean_build_command = clean_build_command
        self.cache_paths = cache_paths or []
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def build(self, workspace: Path, clean: bool = False) -> Path:
        workspace = Path(workspace)
        output = workspace / self.output_dir

        try:
            if self.install_command:
                self.logger.info(f"Installing dependencies: {self.install_command}")
                run_command(self.install_command, cwd=workspace, timeout=self.timeout)

            if clean:
                self._remove_outputs(workspace)
                command = self.clean_build_command or self.build_command
                self.logger.info(f"Clean build: {command}")
            else:
                command = self.build_command
                self.logger.info(f"Incremental build: {command}")

            run_command(command, cwd=workspace, timeout=self.timeout)

        except CommandError as e:
            raise BuildFailureError(f"Build failed in {workspace}: {e}") from e

        if not output.is_dir():
            raise BuildFailureError(f"Build output directory not found after build: {output}")

        return output

    def _remove_outputs(self, workspace: Path):
        for relative in [self.output_dir, *self.cache_paths]:
            target = workspace / relative
            if target.is_dir():
                self.logger.info(f"Removing {target}")
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
