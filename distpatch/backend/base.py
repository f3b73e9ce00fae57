"""
Capability interfaces for the external collaborators of a pipeline run.

Each operation is atomic and individually failable: implementations raise
CommandError (or another exception) on failure and never report partial
success.
"""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from ..core.models import DistPatch


class VersionControl(ABC):
    """A single working copy of a repository"""

    @property
    @abstractmethod
    def path(self) -> Path:
        """Root of the working copy"""
        pass

    def ensure_workspace(self, refresh: bool = False, fetch_refs: Optional[List[str]] = None):
        """
        Make sure the working copy exists and is up to date.

        Args:
            refresh: Delete and recreate the working copy
            fetch_refs: Extra refs to fetch from the remotes
        """
        pass

    def discard_workspace(self):
        """Remove the working copy from disk"""
        pass

    @abstractmethod
    def is_clean(self) -> bool:
        """True when there are no uncommitted changes (staged or unstaged)"""
        pass

    @abstractmethod
    def status(self) -> str:
        """Short description of uncommitted changes"""
        pass

    @abstractmethod
    def current_branch(self) -> Optional[str]:
        """Checked-out branch name, or None when HEAD is detached"""
        pass

    @abstractmethod
    def head(self) -> str:
        """Revision id of HEAD"""
        pass

    @abstractmethod
    def has_revision(self, ref: str) -> bool:
        pass

    @abstractmethod
    def branch_target(self, name: str) -> Optional[str]:
        """Revision a local branch points at, or None if it does not exist"""
        pass

    @abstractmethod
    def tag_target(self, name: str) -> Optional[str]:
        """Revision a tag points at, or None if it does not exist"""
        pass

    @abstractmethod
    def checkout(self, ref: str, detach: bool = False):
        pass

    @abstractmethod
    def tree_of(self, ref: str) -> str:
        """Tree id of a revision"""
        pass

    @abstractmethod
    def stage_change(self, change_id: str):
        """Apply one change to the index and working tree without committing"""
        pass

    @abstractmethod
    def write_tree(self) -> str:
        """Record the index as a tree and return its id"""
        pass

    @abstractmethod
    def diff_trees(self, old_tree: str, new_tree: str) -> str:
        """Deterministic textual diff between two trees"""
        pass

    @abstractmethod
    def apply_patch(self, content: str):
        """Apply a textual patch to the working tree without committing"""
        pass

    @abstractmethod
    def add(self, paths: List[str]):
        pass

    @abstractmethod
    def commit(self, message: str) -> str:
        """Commit the index and return the new revision id"""
        pass

    @abstractmethod
    def set_branch(self, name: str, target: str, force: bool = False):
        pass

    @abstractmethod
    def delete_branch(self, name: str):
        pass

    @abstractmethod
    def set_tag(self, name: str, target: str, force: bool = False):
        pass

    @abstractmethod
    def delete_tag(self, name: str):
        pass

    @abstractmethod
    def push(self, ref: str, force: bool = False):
        """Push a branch or tag to the default remote"""
        pass

    @abstractmethod
    def delete_remote_ref(self, ref: str):
        pass

    @abstractmethod
    def reset_hard(self, ref: str = "HEAD"):
        pass

    @abstractmethod
    def clean(self):
        """Remove untracked files and directories"""
        pass


class BuildTool(ABC):
    """Builds a workspace into an output tree"""

    @abstractmethod
    def build(self, workspace: Path, clean: bool = False) -> Path:
        """
        Build the workspace.

        Args:
            workspace: Dependency working copy
            clean: Remove build outputs and caches first, bypassing any cache

        Returns:
            Path of the build output tree
        """
        pass


class PackageRegistry(ABC):
    """Destination for published DistPatches"""

    @abstractmethod
    def publish(self, artifact: DistPatch, version: str):
        """Publish an artifact; non-idempotent, raises on failure"""
        pass

    def resolve_dist_tag(self, package: str, dist_tag: str) -> Optional[str]:
        """Current version behind a dist-tag, or None when unknown"""
        return None
