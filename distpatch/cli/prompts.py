"""
Interactive confirmations for attended runs.
"""
import click

from ..core.enums import DriftPolicy
from ..pipeline.confirm import Confirmer


class ClickConfirmer(Confirmer):
    """Asks on the terminal; --yes or a non-prompt drift policy answers without asking"""

    def __init__(self, on_drift: DriftPolicy = DriftPolicy.PROMPT, assume_yes: bool = False):
        self.on_drift = on_drift
        self.assume_yes = assume_yes

    def choose_release_tag(self, default: str) -> str:
        if self.assume_yes:
            return default
        return click.prompt("Release tag to patch", default=default)

    def confirm_overwrite(self, key: str, stored_hash: str, new_hash: str) -> bool:
        if self.on_drift == DriftPolicy.OVERWRITE:
            return True
        if self.on_drift == DriftPolicy.ABORT:
            return False
        if self.assume_yes:
            return True

        click.echo(f"\n⚠️  {key} differs from the published artifact")
        click.echo(f"   stored: {stored_hash}")
        click.echo(f"   new:    {new_hash}")
        return click.confirm("Overwrite the published DistPatch?", default=False)
