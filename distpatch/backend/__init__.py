from .base import VersionControl, BuildTool, PackageRegistry
from .command import run_command
from .git import GitRepository
from .build_tool import CommandBuildTool
from .npm_registry import NpmRegistry

__all__ = [
    'VersionControl',
    'BuildTool',
    'PackageRegistry',
    'run_command',
    'GitRepository',
    'CommandBuildTool',
    'NpmRegistry',
]
