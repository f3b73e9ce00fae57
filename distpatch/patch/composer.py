"""
Composes an ordered ChangeSet into one consolidated SourcePatch.
"""
import logging
from typing import List, Optional

from ..backend.base import VersionControl
from ..core.errors import ChangeConflictError, CommandError
from ..core.models import ChangeSet, SourcePatch


class ChangeComposer:
    """
    Applies every change of a ChangeSet, strictly in order, on top of a
    pristine base revision and returns their concatenated diffs.

    Changes are staged without committing and diffed tree-to-tree, so the
    workspace gains no commits or branches and is returned to the revision
    it was on. A failure discards everything composed so far.
    """

    def __init__(self, vcs: VersionControl):
        """
        Initialize change composer.

        Args:
            vcs: Dependency workspace
        """
        self.vcs = vcs
        self.logger = logging.getLogger(__name__)

    def compose(self, change_set: ChangeSet, base: str) -> SourcePatch:
        """
        Build the SourcePatch for a change set.

        Args:
            change_set: Ordered changes to apply
            base: Base revision (normally the release tag)

        Returns:
            SourcePatch

        Raises:
            ChangeConflictError: naming the position of the first change that is
                missing or fails to apply
        """
        self._check_presence(change_set, base)

        original = self.vcs.current_branch() or self.vcs.head()
        self.logger.info(f"Composing {len(change_set)} changes on top of {base}")

        self.vcs.checkout(base, detach=True)
        try:
            sections = self._apply_in_order(change_set)
        finally:
            # Partial state is never kept: back to the pristine revision we started on
            self.vcs.reset_hard("HEAD")
            self.vcs.clean()
            self.vcs.checkout(original)

        source_patch = SourcePatch(
            name=change_set.source_patch_name,
            base=base,
            content="".join(sections),
            change_ids=tuple(change_set.change_ids)
        )
        self.logger.info(
            f"Composed {source_patch.name} from {source_patch.change_count} changes "
            f"(sha256 {source_patch.sha256[:12]})"
        )
        return source_patch

    def _check_presence(self, change_set: ChangeSet, base: str):
        if not self.vcs.has_revision(base):
            raise ChangeConflictError(f"Base revision '{base}' not found in {self.vcs.path}")

        for change in change_set.changes:
            if not self.vcs.has_revision(change.id):
                raise ChangeConflictError(
                    f"Change {change.position} ({change.id}) not found in {self.vcs.path}",
                    position=change.position,
                    change_id=change.id
                )
            self.logger.debug(f"Found change {change}")

    def _apply_in_order(self, change_set: ChangeSet) -> List[str]:
        total = len(change_set)
        previous_tree: Optional[str] = self.vcs.tree_of("HEAD")
        sections = []

        for change in change_set.changes:
            self.logger.info(f"Applying change {change.position}/{total}: {change.id}")
            try:
                self.vcs.stage_change(change.id)
                tree = self.vcs.write_tree()
            except CommandError as e:
                raise ChangeConflictError(
                    f"Change {change.position}/{total} ({change.id}) does not apply: {e}",
                    position=change.position,
                    change_id=change.id
                ) from e

            diff = self.vcs.diff_trees(previous_tree, tree)
            if not diff:
                self.logger.warning(f"Change {change.position} ({change.id}) introduces no differences")
            sections.append(f"# change {change.position}/{total} {change.id}\n{diff}")
            previous_tree = tree

        return sections
