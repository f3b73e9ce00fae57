from .transitions import (
    STATE_ORDER,
    ROLLBACK_EFFECTS,
    InvalidTransition,
    Transition,
    transition,
)
from .confirm import Confirmer, PolicyConfirmer
from .compensator import Compensator
from .runner import PatchPipeline
from .publish_only import publish_only
from .factory import build_pipeline, resolve_release_tag

__all__ = [
    'STATE_ORDER',
    'ROLLBACK_EFFECTS',
    'InvalidTransition',
    'Transition',
    'transition',
    'Confirmer',
    'PolicyConfirmer',
    'Compensator',
    'PatchPipeline',
    'publish_only',
    'build_pipeline',
    'resolve_release_tag',
]
