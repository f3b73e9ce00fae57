"""Test cases for the command build tool and the npm registry client."""

import json
import subprocess
from unittest.mock import patch

import pytest

from distpatch.backend.build_tool import CommandBuildTool
from distpatch.backend.command import run_command, split_command
from distpatch.backend.npm_registry import NpmRegistry
from distpatch.core.errors import BuildFailureError, CommandError, PublishFailureError
from distpatch.core.models import DistPatch


def completed(stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


class TestCommand:
    """Test suite for the subprocess wrapper."""

    def test_split_command(self):
        assert split_command("pnpm exec turbo run build --filter 'next app'") == [
            "pnpm", "exec", "turbo", "run", "build", "--filter", "next app"
        ]
        assert split_command(["git", "status"]) == ["git", "status"]

    def test_missing_executable(self):
        with pytest.raises(CommandError) as exc_info:
            run_command(["definitely-not-a-real-binary-distpatch"])
        assert exc_info.value.returncode == 127


class TestCommandBuildTool:
    """Test suite for CommandBuildTool."""

    @pytest.fixture
    def workspace(self, tmp_path):
        (tmp_path / "packages" / "next" / "dist").mkdir(parents=True)
        (tmp_path / ".turbo").mkdir()
        (tmp_path / ".turbo" / "cache").write_text("cached")
        return tmp_path

    @pytest.fixture
    def tool(self):
        return CommandBuildTool(
            build_command="pnpm build",
            output_dir="packages/next/dist",
            install_command="pnpm install",
            clean_build_command="pnpm build --force",
            cache_paths=[".turbo"]
        )

    def test_incremental_build(self, tool, workspace):
        with patch("distpatch.backend.build_tool.run_command", return_value=completed()) as run:
            output = tool.build(workspace)

        assert output == workspace / "packages" / "next" / "dist"
        assert [call.args[0] for call in run.call_args_list] == ["pnpm install", "pnpm build"]
        assert (workspace / ".turbo").exists()

    def test_clean_build_removes_outputs_and_caches(self, tool, workspace):
        def fake_run(command, cwd=None, timeout=None):
            # The build recreates its output directory
            if command.startswith("pnpm build"):
                (workspace / "packages" / "next" / "dist").mkdir(parents=True)
            return completed()

        with patch("distpatch.backend.build_tool.run_command", side_effect=fake_run) as run:
            tool.build(workspace, clean=True)

        assert run.call_args_list[-1].args[0] == "pnpm build --force"
        assert not (workspace / ".turbo").exists()

    def test_command_failure_is_build_failure(self, tool, workspace):
        error = CommandError(["pnpm", "build"], 1, stderr="type error")
        with patch("distpatch.backend.build_tool.run_command", side_effect=error):
            with pytest.raises(BuildFailureError) as exc_info:
                tool.build(workspace)
        assert "type error" in str(exc_info.value)

    def test_missing_output_is_build_failure(self, tool, tmp_path):
        with patch("distpatch.backend.build_tool.run_command", return_value=completed()):
            with pytest.raises(BuildFailureError):
                tool.build(tmp_path)


class TestNpmRegistry:
    """Test suite for NpmRegistry."""

    @pytest.fixture
    def registry(self, tmp_path):
        return NpmRegistry(
            package_name="@acme/next-dist-patch",
            staging_dir=tmp_path / "package",
            author="Acme",
            keywords=["next", "patch"]
        )

    @pytest.fixture
    def dist_patch(self):
        return DistPatch(name="dist-v15.0.0-fix.patch", content="diff --git a/dist/a.js b/dist/a.js\n",
                         upstream="v15.0.0")

    def test_package_json(self, registry, dist_patch):
        package = registry.build_package_json(dist_patch, "15.0.0")
        assert package["name"] == "@acme/next-dist-patch"
        assert package["version"] == "15.0.0"
        assert package["files"] == ["dist.patch"]
        assert package["publishConfig"] == {"access": "public"}
        assert package["author"] == "Acme"

    def test_stage_writes_patch_and_manifest(self, registry, dist_patch):
        staging = registry.stage(dist_patch, "15.0.0")
        assert (staging / "dist.patch").read_text() == dist_patch.content
        assert json.loads((staging / "package.json").read_text())["version"] == "15.0.0"

    def test_publish_checks_auth_then_publishes(self, registry, dist_patch):
        with patch("distpatch.backend.npm_registry.run_command", return_value=completed("acme\n")) as run:
            registry.publish(dist_patch, "15.0.0")

        commands = [call.args[0] for call in run.call_args_list]
        assert commands == [["npm", "whoami"], ["npm", "publish", "--access", "public"]]
        assert not registry.staging_dir.exists()

    def test_not_logged_in(self, registry, dist_patch):
        error = CommandError(["npm", "whoami"], 1, stderr="ENEEDAUTH")
        with patch("distpatch.backend.npm_registry.run_command", side_effect=error):
            with pytest.raises(PublishFailureError):
                registry.publish(dist_patch, "15.0.0")

    def test_publish_failure_cleans_staging(self, registry, dist_patch):
        def fake_run(command, cwd=None, timeout=None):
            if command[1] == "publish":
                raise CommandError(command, 1, stderr="E403")
            return completed("acme\n")

        with patch("distpatch.backend.npm_registry.run_command", side_effect=fake_run):
            with pytest.raises(PublishFailureError):
                registry.publish(dist_patch, "15.0.0")
        assert not registry.staging_dir.exists()

    def test_resolve_dist_tag(self, registry):
        with patch("distpatch.backend.npm_registry.run_command", return_value=completed("15.1.0-canary.3\n")):
            assert registry.resolve_dist_tag("next", "canary") == "15.1.0-canary.3"

    def test_resolve_dist_tag_failure(self, registry):
        with patch("distpatch.backend.npm_registry.run_command", side_effect=CommandError(["npm"], 1)):
            assert registry.resolve_dist_tag("next", "canary") is None
