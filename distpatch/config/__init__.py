from .global_config_loader import (
    GlobalConfig,
    DependencyConfig,
    BuildConfig,
    ArtifactsConfig,
    ChangeSetConfig,
    VerificationConfig,
    RegistryConfig,
    PipelineConfig,
    load_global_config,
)
from .run_config import RunConfig

__all__ = [
    'GlobalConfig',
    'DependencyConfig',
    'BuildConfig',
    'ArtifactsConfig',
    'ChangeSetConfig',
    'VerificationConfig',
    'RegistryConfig',
    'PipelineConfig',
    'load_global_config',
    'RunConfig',
]
