"""
CLI for inspecting the manifest of published dist patches.
"""
import json
from pathlib import Path

import click

from ..config.global_config_loader import load_global_config
from ..core.errors import ManifestConflictError
from ..manifest.registry import ManifestRegistry


def _registry(ctx: click.Context) -> ManifestRegistry:
    global_cfg = load_global_config((ctx.obj or {}).get('global_config'))
    manifest_path = Path(global_cfg.artifacts.manifest_path)
    if not manifest_path.is_absolute():
        manifest_path = Path(global_cfg.artifacts.repo_path) / manifest_path
    return ManifestRegistry(manifest_path)


@click.group()
def manifest():
    """Inspect published dist patches"""
    pass


@manifest.command('list')
@click.pass_context
def list_entries(ctx: click.Context):
    """List manifest entries"""
    registry = _registry(ctx)
    try:
        entries = registry.load()
    except ManifestConflictError as e:
        raise click.ClickException(str(e))

    if not entries:
        click.echo(f"No entries in {registry.manifest_path}")
        return

    for key, entry in sorted(entries.items()):
        click.echo(f"  {key}")
        click.echo(f"    Upstream: {entry.upstream}")
        click.echo(f"    Source patch: {entry.source_patch} ({len(entry.change_refs)} changes)")
        click.echo(f"    Created: {entry.created}")
        if entry.sha256:
            click.echo(f"    sha256: {entry.sha256}")
        click.echo()


@manifest.command('show')
@click.argument('key')
@click.pass_context
def show_entry(ctx: click.Context, key: str):
    """Show one manifest entry as JSON"""
    registry = _registry(ctx)
    try:
        entry = registry.get(key)
    except ManifestConflictError as e:
        raise click.ClickException(str(e))

    if entry is None:
        raise click.ClickException(f"No manifest entry '{key}'")
    click.echo(json.dumps(entry.to_document(), indent=2))
