"""
distpatch - verified, versioned build-output patches for a third-party dependency.
"""

__version__ = "0.1.0"

from .config import GlobalConfig, RunConfig, load_global_config
from .core import PipelineState, RunOutcome, RunResult
from .pipeline import PatchPipeline, build_pipeline

__all__ = [
    'GlobalConfig',
    'RunConfig',
    'load_global_config',
    'PipelineState',
    'RunOutcome',
    'RunResult',
    'PatchPipeline',
    'build_pipeline',
]
