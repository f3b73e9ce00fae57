"""Pytest configuration and fixtures for distpatch tests."""

import dataclasses
import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from distpatch.config.run_config import RunConfig
from distpatch.core.models import ChangeSet, ReleaseTag
from distpatch.pipeline.runner import PatchPipeline
from tests.fakes import FakeBuildTool, FakeRegistry, FakeRepository

# Configure logging
logging.basicConfig(level=logging.INFO)

MARKER = "PATCHED-BY-DISTPATCH"
RELEASE_TAG = "v1.0.0"

BASE_FILES = {
    "README.md": "dependency\n",
    "package.json": '{"name": "dependency"}\n',
    "src/index.js": "export const answer = 41;\n",
    "src/render.js": "export function render() {\n  return null;\n}\n",
}

CHANGES = {
    "c1": {"src/index.js": "export const answer = 42;\n"},
    "c2": {"src/util.js": f"export const marker = '{MARKER}';\n"},
    "c3": {"src/render.js": "export function render() {\n  return 'patched';\n}\n"},
}


@pytest.fixture
def dependency(tmp_path):
    """Dependency fork: release tag on main plus three change commits."""
    repo = FakeRepository(tmp_path / "dependency")
    base = repo.seed(BASE_FILES)
    repo.tags[RELEASE_TAG] = base
    for change_id, files in CHANGES.items():
        repo.add_change(change_id, files)
    return repo


@pytest.fixture
def artifacts(tmp_path):
    """Artifact repository with a single initial commit on main."""
    repo = FakeRepository(tmp_path / "artifacts")
    repo.seed({"README.md": "patch artifacts\n"})
    return repo


@pytest.fixture
def build_tool():
    return FakeBuildTool()


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def make_config(tmp_path):
    """Factory for RunConfig pointing at the fake repositories."""
    def _make(**overrides):
        artifact_repo = tmp_path / "artifacts"
        config = RunConfig(
            release_tag=ReleaseTag(RELEASE_TAG),
            change_set=ChangeSet.from_ids("changes.patch", list(CHANGES)),
            fingerprint=MARKER,
            dependency_workspace=tmp_path / "dependency",
            artifact_repo=artifact_repo,
            patches_dir=artifact_repo / "patches",
            manifest_path=artifact_repo / "patches" / "manifest.json",
            work_dir=tmp_path / "work",
        )
        return dataclasses.replace(config, **overrides)
    return _make


@pytest.fixture
def make_pipeline(make_config, dependency, artifacts, build_tool, registry):
    """Factory for a PatchPipeline wired to the fakes."""
    def _make(config=None, confirmer=None, **overrides):
        return PatchPipeline(
            config or make_config(**overrides),
            dependency=dependency,
            artifacts=artifacts,
            build_tool=build_tool,
            registry=registry,
            confirmer=confirmer
        )
    return _make
