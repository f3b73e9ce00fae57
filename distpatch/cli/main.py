#!/usr/bin/env python3
"""
Command-line interface for generating and publishing dist patches.
"""
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from ..config.global_config_loader import GlobalConfig, load_global_config
from ..config.run_config import RunConfig
from ..core.enums import DriftPolicy, PipelineState
from ..core.errors import PipelineError
from ..core.models import RunResult
from ..patch.composer import ChangeComposer
from ..pipeline.factory import (
    artifact_repository, build_pipeline, dependency_repository, fetch_refs_for,
    package_registry, resolve_release_tag
)
from ..pipeline.publish_only import publish_only
from .manifest_cli import manifest
from .prompts import ClickConfirmer


def _load_config(ctx: click.Context) -> GlobalConfig:
    return load_global_config(ctx.obj.get('global_config'))


def _validate(global_cfg: GlobalConfig):
    issues = global_cfg.validate()
    if issues:
        raise click.ClickException("Invalid configuration: " + "; ".join(issues))


def _run_config(global_cfg: GlobalConfig, tag: str, **flags) -> RunConfig:
    try:
        return RunConfig.from_global_config(global_cfg, tag, **flags)
    except ValueError as e:
        raise click.ClickException(str(e))


def _echo_result(result: RunResult):
    click.echo(f"\n{'=' * 80}")
    if result.state == PipelineState.SUCCESS:
        click.echo(f"✅ Run finished: {result.outcome.value}")
    elif result.state == PipelineState.ROLLED_BACK:
        click.echo("❌ Run failed and was rolled back")
    else:
        click.echo("❌ Run failed")
    click.echo(f"{'=' * 80}")
    click.echo(f"Release tag: {result.release_tag}")
    click.echo(f"States: {' → '.join(state.value for state in result.history)}")

    if result.dist_patch_name:
        click.echo(f"DistPatch: {result.dist_patch_name}")
        click.echo(f"sha256: {result.dist_patch_sha256}")
    if result.touched_files:
        click.echo(f"Files touched ({len(result.touched_files)}):")
        for path in result.touched_files:
            click.echo(f"  {path}")

    if result.error is not None:
        click.echo(f"Failed in: {result.failed_state.value if result.failed_state else 'unknown'}")
        click.echo(f"Error: {result.error}")
    for message in result.rollback_errors:
        click.echo(f"⚠️  Rollback incomplete: {message}")
    for note in result.notes:
        click.echo(f"ℹ️  {note}")
    click.echo(f"{'=' * 80}\n")


@click.group()
@click.option('--global-config', default=None, help='Path to distpatch YAML config')
@click.option('--log-level', default='INFO', help='Log level')
@click.pass_context
def cli(ctx: click.Context, global_config: Optional[str], log_level: str):
    """Build, verify and publish dist patches for a patched dependency"""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.ensure_object(dict)
    ctx.obj['global_config'] = global_config


cli.add_command(manifest)


@cli.command()
@click.option('--tag', default=None, help='Upstream release tag (defaults to the registry dist-tag)')
@click.option('--dry-run', is_flag=True, help='Build and diff, but do not commit, push or publish')
@click.option('--force-refresh', is_flag=True, help='Re-clone the dependency workspace')
@click.option('--clean-build', is_flag=True, help='Bypass the build cache for the patched build')
@click.option('--on-drift', type=click.Choice([policy.value for policy in DriftPolicy]), default=None,
              help='What to do when the DistPatch differs from the published one')
@click.option('--yes', '-y', is_flag=True, help='Accept defaults without prompting')
@click.option('--json-output', is_flag=True, help='Print the run result as JSON')
@click.pass_context
def run(ctx: click.Context, tag: Optional[str], dry_run: bool, force_refresh: bool, clean_build: bool,
        on_drift: Optional[str], yes: bool, json_output: bool):
    """Run the full patch pipeline for one release tag"""
    logger = logging.getLogger(__name__)
    global_cfg = _load_config(ctx)
    _validate(global_cfg)

    policy = DriftPolicy(on_drift or global_cfg.pipeline.on_drift)
    confirmer = ClickConfirmer(on_drift=policy, assume_yes=yes)

    try:
        release_tag = resolve_release_tag(tag, package_registry(global_cfg), global_cfg, confirmer)
    except ValueError as e:
        raise click.ClickException(str(e))

    run_config = _run_config(
        global_cfg,
        release_tag,
        dry_run=dry_run,
        force_refresh=force_refresh,
        clean_build=clean_build,
        on_drift=policy.value
    )
    logger.info(f"Patching {run_config.release_tag} as {run_config.dist_patch_name}")

    result = build_pipeline(global_cfg, run_config, confirmer).run()
    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _echo_result(result)
    sys.exit(result.exit_code)


@cli.command()
@click.option('--tag', required=True, help='Upstream release tag used as the base')
@click.option('--output', '-o', default=None, help='Write the SourcePatch here instead of stdout')
@click.pass_context
def compose(ctx: click.Context, tag: str, output: Optional[str]):
    """Compose the change set into a SourcePatch without building"""
    global_cfg = _load_config(ctx)
    run_config = _run_config(global_cfg, tag)

    dependency = dependency_repository(global_cfg)
    try:
        dependency.ensure_workspace(fetch_refs=fetch_refs_for(global_cfg, run_config))
        if not dependency.is_clean():
            raise click.ClickException(f"Dependency workspace {dependency.path} has uncommitted changes")
        source_patch = ChangeComposer(dependency).compose(run_config.change_set, str(run_config.release_tag))
    except PipelineError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if output:
        Path(output).write_text(source_patch.content, encoding='utf-8', errors='surrogateescape')
        click.echo(f"✅ Wrote {source_patch.name} ({source_patch.change_count} changes) to {output}")
    else:
        click.echo(source_patch.content, nl=False)


@cli.command('publish-only')
@click.option('--tag', required=True, help='Release tag whose committed DistPatch is published')
@click.pass_context
def publish_only_command(ctx: click.Context, tag: str):
    """Publish an already committed DistPatch"""
    global_cfg = _load_config(ctx)
    run_config = _run_config(global_cfg, tag)

    try:
        dist_patch = publish_only(run_config, artifact_repository(global_cfg), package_registry(global_cfg))
    except PipelineError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Published {dist_patch.name} as version {run_config.release_tag.version}")


if __name__ == '__main__':
    cli()
