"""
Transition table of the patch pipeline.

``transition`` is a pure function of (state, event) to (next state, side
effects); the runner performs the work of each state and executes the
requested effects.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

from ..core.enums import Effect, PipelineEvent, PipelineState

STATE_ORDER: Tuple[PipelineState, ...] = (
    PipelineState.INIT,
    PipelineState.VALIDATING_WORKSPACES,
    PipelineState.COMPOSING_PATCH,
    PipelineState.BUILDING_BASELINE,
    PipelineState.SNAPSHOTTING_BEFORE,
    PipelineState.APPLYING_PATCH,
    PipelineState.BUILDING_PATCHED,
    PipelineState.SNAPSHOTTING_AFTER,
    PipelineState.VERIFYING_FINGERPRINT,
    PipelineState.GENERATING_DIST_PATCH,
    PipelineState.COMPARING_IDEMPOTENCY,
    PipelineState.COMMITTING_ARTIFACTS,
    PipelineState.PUBLISHING,
    PipelineState.SUCCESS,
)

NEXT_STATE: Dict[PipelineState, PipelineState] = {
    state: STATE_ORDER[index + 1] for index, state in enumerate(STATE_ORDER[:-1])
}

# Undo order: refs first, then the commit they point at, then the dependency workspace
ROLLBACK_EFFECTS: Tuple[Effect, ...] = (
    Effect.DISCARD_TAG,
    Effect.DISCARD_BRANCH,
    Effect.RESTORE_ARTIFACT_REPO,
    Effect.RESTORE_DEPENDENCY_WORKSPACE,
)

# Events that end a run early without an error
SHORT_CIRCUITS: Dict[PipelineEvent, Tuple[PipelineState, ...]] = {
    PipelineEvent.NO_CHANGES: (PipelineState.GENERATING_DIST_PATCH,),
    PipelineEvent.UNCHANGED: (PipelineState.COMPARING_IDEMPOTENCY,),
    PipelineEvent.DECLINED: (PipelineState.COMPARING_IDEMPOTENCY,),
}


class InvalidTransition(ValueError):
    """Event not accepted in the given state"""


@dataclass(frozen=True)
class Transition:
    source: PipelineState
    event: PipelineEvent
    target: PipelineState
    effects: Tuple[Effect, ...] = ()


def position(state: PipelineState) -> int:
    """Index of a non-failure state in the fixed order"""
    return STATE_ORDER.index(state)


def has_side_effects(state: PipelineState) -> bool:
    """States from which artifact-repository or registry effects may exist"""
    return position(state) >= position(PipelineState.COMMITTING_ARTIFACTS)


def touches_dependency(state: PipelineState) -> bool:
    """States from which the dependency workspace may differ from its pristine state"""
    return position(state) >= position(PipelineState.COMPOSING_PATCH)


def _success_effects(dry_run: bool) -> Tuple[Effect, ...]:
    # Dry runs keep the workspace for inspection
    return () if dry_run else (Effect.RELEASE_WORKSPACE,)


def transition(state: PipelineState, event: PipelineEvent, dry_run: bool = False) -> Transition:
    """
    Compute the next state and the side effects to perform.

    Args:
        state: Current (non-terminal) state
        event: Result of the current state's work
        dry_run: Whether commit and publish are simulated

    Returns:
        Transition

    Raises:
        InvalidTransition: for terminal states or events the state does not accept
    """
    if state.is_terminal:
        raise InvalidTransition(f"{state.value} is terminal")

    if event == PipelineEvent.FAILED:
        if has_side_effects(state):
            return Transition(state, event, PipelineState.ROLLED_BACK, ROLLBACK_EFFECTS)
        effects = (Effect.RESTORE_DEPENDENCY_WORKSPACE,) if touches_dependency(state) else ()
        return Transition(state, event, PipelineState.FAILED, effects)

    if event == PipelineEvent.COMPLETED:
        target = NEXT_STATE[state]
        effects = _success_effects(dry_run) if target == PipelineState.SUCCESS else ()
        return Transition(state, event, target, effects)

    if state in SHORT_CIRCUITS.get(event, ()):
        return Transition(state, event, PipelineState.SUCCESS, _success_effects(dry_run))

    raise InvalidTransition(f"Event {event.value} is not accepted in state {state.value}")
