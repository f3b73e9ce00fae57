import yaml
from pathlib import Path
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class DependencyConfig:
    """Dependency workspace configuration"""
    workspace: str = "./.dependency-fork"
    clone_url: Optional[str] = None
    upstream_url: Optional[str] = None
    origin_remote: str = "origin"
    upstream_remote: str = "upstream"
    changes_branch: Optional[str] = None  # remote branch that carries the change commits
    lockfile: Optional[str] = "pnpm-lock.yaml"


@dataclass
class BuildConfig:
    """Build tool configuration"""
    install_command: Optional[str] = "pnpm install --frozen-lockfile"
    build_command: str = "pnpm exec turbo run build --filter next"
    clean_build_command: Optional[str] = "pnpm exec turbo run build --filter next --force --no-cache"
    output_dir: str = "packages/next/dist"
    cache_paths: List[str] = field(default_factory=lambda: [".turbo"])
    timeout: Optional[int] = None


@dataclass
class ArtifactsConfig:
    """Artifact repository configuration"""
    repo_path: str = "."
    patches_dir: str = "patches"
    manifest_path: str = "patches/manifest.json"
    remote: str = "origin"
    branch_prefix: str = "patch-"


@dataclass
class ChangeSetConfig:
    """Ordered change set making up the source patch"""
    source_patch_name: str = "changes.patch"
    changes: List[str] = field(default_factory=list)


@dataclass
class VerificationConfig:
    """Build output verification"""
    fingerprint: Optional[str] = None
    expected_paths: List[str] = field(default_factory=list)


@dataclass
class RegistryConfig:
    """Package registry configuration"""
    package_name: Optional[str] = None
    upstream_package: Optional[str] = None
    default_dist_tag: str = "canary"
    access: str = "public"
    description: Optional[str] = None
    author: Optional[str] = None
    license: str = "MIT"
    keywords: List[str] = field(default_factory=lambda: ["patch", "dist", "overlay"])
    staging_dir: str = "./package"


@dataclass
class PipelineConfig:
    """Pipeline behaviour"""
    work_dir: str = "./.distpatch"
    canonical_prefix: str = "dist"
    on_drift: str = "abort"  # "abort" | "overwrite" | "prompt"
    default_tag: Optional[str] = None


@dataclass
class GlobalConfig:
    """Global configuration for patch generation and publishing"""
    dependency: DependencyConfig
    build: BuildConfig
    artifacts: ArtifactsConfig
    change_set: ChangeSetConfig
    verification: VerificationConfig
    registry: RegistryConfig
    pipeline: PipelineConfig
    source_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """Create GlobalConfig from dictionary"""
        return cls(
            dependency=DependencyConfig(**data.get('dependency', {})),
            build=BuildConfig(**data.get('build', {})),
            artifacts=ArtifactsConfig(**data.get('artifacts', {})),
            change_set=ChangeSetConfig(**data.get('change_set', {})),
            verification=VerificationConfig(**data.get('verification', {})),
            registry=RegistryConfig(**data.get('registry', {})),
            pipeline=PipelineConfig(**data.get('pipeline', {})),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GlobalConfig':
        """Load GlobalConfig from YAML file"""
        path = Path(yaml_path)
        if not path.exists():
            # Return default config if file doesn't exist
            return cls.default()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        config = cls.from_dict(data or {})
        config.source_path = str(path)
        return config

    @classmethod
    def default(cls) -> 'GlobalConfig':
        """Return default configuration"""
        return cls(
            dependency=DependencyConfig(),
            build=BuildConfig(),
            artifacts=ArtifactsConfig(),
            change_set=ChangeSetConfig(),
            verification=VerificationConfig(),
            registry=RegistryConfig(),
            pipeline=PipelineConfig(),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration problems that prevent a run"""
        issues = []
        if not self.change_set.changes:
            issues.append("change_set.changes must list at least one change")
        if not self.verification.fingerprint:
            issues.append("verification.fingerprint must be set")
        if not self.build.build_command:
            issues.append("build.build_command must be set")
        if self.pipeline.on_drift not in ("abort", "overwrite", "prompt"):
            issues.append(f"pipeline.on_drift must be abort, overwrite or prompt, got '{self.pipeline.on_drift}'")
        return issues


SEARCH_PATHS = [
    Path("./distpatch.yaml"),
    Path("./config/distpatch.yaml"),
    Path("/etc/distpatch/distpatch.yaml"),
]


def load_global_config(config_path: Optional[str] = None) -> GlobalConfig:
    """
    Load global configuration from YAML file.
    If no path provided, looks for distpatch.yaml in standard locations.
    """
    if config_path:
        return GlobalConfig.from_yaml(config_path)

    for path in SEARCH_PATHS:
        if path.exists():
            return GlobalConfig.from_yaml(str(path))

    # Return default if no config found
    return GlobalConfig.default()
