"""
Git implementation of the VersionControl capability.
"""
import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..core.errors import CommandError
from .base import VersionControl
from .command import run_command

# Flags that make diff output independent of user/global git configuration
DIFF_FLAGS = [
    "--binary",
    "--full-index",
    "--no-color",
    "--no-ext-diff",
    "--no-textconv",
    "--no-renames",
    "--src-prefix=a/",
    "--dst-prefix=b/",
]


class GitRepository(VersionControl):
    """Working copy driven through the git command line"""

    def __init__(
        self,
        path: Path,
        clone_url: Optional[str] = None,
        remote: str = "origin",
        upstream_url: Optional[str] = None,
        upstream_remote: str = "upstream",
        timeout: Optional[int] = None
    ):
        """
        Initialize git repository wrapper.

        Args:
            path: Working copy root
            clone_url: URL used when the working copy has to be cloned
            remote: Remote used for push/fetch
            upstream_url: Optional second remote carrying release tags
            upstream_remote: Name of that second remote
            timeout: Timeout for individual git commands in seconds
        """
        self._path = Path(path)
        self.clone_url = clone_url
        self.remote = remote
        self.upstream_url = upstream_url
        self.upstream_remote = upstream_remote
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    def _git(self, *args: str, input_text: Optional[str] = None, check: bool = True) -> str:
        result = run_command(
            ["git", "-C", str(self._path), *args],
            input_text=input_text,
            timeout=self.timeout,
            check=check
        )
        return result.stdout

    def _succeeds(self, *args: str) -> bool:
        result = run_command(["git", "-C", str(self._path), *args], timeout=self.timeout, check=False)
        return result.returncode == 0

    # Workspace lifecycle

    def ensure_workspace(self, refresh: bool = False, fetch_refs: Optional[List[str]] = None):
        if refresh and self._path.exists():
            self.logger.info(f"Force-refresh: removing existing workspace {self._path}")
            shutil.rmtree(self._path)

        if (self._path / ".git").exists():
            self.logger.info(f"Reusing existing workspace {self._path}")
        else:
            if not self.clone_url:
                raise CommandError(
                    ["git", "clone"], 128,
                    stderr=f"No clone URL configured and {self._path} is not a git repository"
                )
            self.logger.info(f"Cloning {self.clone_url} into {self._path}")
            self._path.parent.mkdir(parents=True, exist_ok=True)
            run_command(["git", "clone", self.clone_url, str(self._path)], timeout=self.timeout)

        if self.upstream_url and not self._succeeds("remote", "get-url", self.upstream_remote):
            self.logger.info(f"Adding {self.upstream_remote} remote {self.upstream_url}")
            self._git("remote", "add", self.upstream_remote, self.upstream_url)

        for ref in fetch_refs or []:
            remote = self.upstream_remote if ref.startswith("refs/tags/") and self.upstream_url else self.remote
            self.logger.info(f"Fetching {ref} from {remote}")
            self._git("fetch", remote, ref)

    def discard_workspace(self):
        if self._path.exists():
            self.logger.info(f"Removing workspace {self._path}")
            shutil.rmtree(self._path)

    # Inspection

    def is_clean(self) -> bool:
        return self._succeeds("diff", "--quiet") and self._succeeds("diff", "--cached", "--quiet")

    def status(self) -> str:
        return self._git("status", "--porcelain").strip()

    def current_branch(self) -> Optional[str]:
        result = run_command(
            ["git", "-C", str(self._path), "symbolic-ref", "--quiet", "--short", "HEAD"],
            timeout=self.timeout,
            check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def head(self) -> str:
        return self._git("rev-parse", "HEAD").strip()

    def has_revision(self, ref: str) -> bool:
        return self._succeeds("cat-file", "-e", f"{ref}^{{commit}}")

    def _resolve(self, full_ref: str) -> Optional[str]:
        result = run_command(
            ["git", "-C", str(self._path), "rev-parse", "--verify", "--quiet", f"{full_ref}^{{commit}}"],
            timeout=self.timeout,
            check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def branch_target(self, name: str) -> Optional[str]:
        return self._resolve(f"refs/heads/{name}")

    def tag_target(self, name: str) -> Optional[str]:
        return self._resolve(f"refs/tags/{name}")

    def tree_of(self, ref: str) -> str:
        return self._git("rev-parse", f"{ref}^{{tree}}").strip()

    # Working tree

    def checkout(self, ref: str, detach: bool = False):
        if detach:
            self._git("checkout", "--quiet", "--detach", ref)
        else:
            self._git("checkout", "--quiet", ref)

    def stage_change(self, change_id: str):
        self._git("cherry-pick", "--no-commit", change_id)

    def write_tree(self) -> str:
        return self._git("write-tree").strip()

    def diff_trees(self, old_tree: str, new_tree: str) -> str:
        return self._git("diff", *DIFF_FLAGS, old_tree, new_tree)

    def apply_patch(self, content: str):
        self._git("apply", "--whitespace=nowarn", "-", input_text=content)

    def reset_hard(self, ref: str = "HEAD"):
        # An interrupted cherry-pick leaves sequencer state behind
        self._succeeds("cherry-pick", "--quit")
        self._git("reset", "--quiet", "--hard", ref)

    def clean(self):
        self._git("clean", "-fd", "--quiet")

    # History

    def add(self, paths: List[str]):
        self._git("add", "--", *paths)

    def commit(self, message: str) -> str:
        self._git("commit", "--quiet", "-m", message)
        return self.head()

    def set_branch(self, name: str, target: str, force: bool = False):
        if force:
            self._git("branch", "--force", name, target)
        else:
            self._git("branch", name, target)

    def delete_branch(self, name: str):
        self._git("branch", "-D", name)

    def set_tag(self, name: str, target: str, force: bool = False):
        if force:
            self._git("tag", "--force", name, target)
        else:
            self._git("tag", name, target)

    def delete_tag(self, name: str):
        self._git("tag", "-d", name)

    def push(self, ref: str, force: bool = False):
        args = ["push", self.remote, ref]
        if force:
            args.insert(1, "--force")
        self._git(*args)

    def delete_remote_ref(self, ref: str):
        self._git("push", self.remote, f":{ref}")
