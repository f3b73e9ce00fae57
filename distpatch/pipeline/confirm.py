"""
Decisions that would otherwise suspend a run for user input.
"""
import logging
from abc import ABC, abstractmethod

from ..core.enums import DriftPolicy


class Confirmer(ABC):
    """Answers the run's questions: release tag selection and drift overwrite"""

    @abstractmethod
    def choose_release_tag(self, default: str) -> str:
        pass

    @abstractmethod
    def confirm_overwrite(self, key: str, stored_hash: str, new_hash: str) -> bool:
        pass


class PolicyConfirmer(Confirmer):
    """Non-interactive answers taken from configuration"""

    def __init__(self, on_drift: DriftPolicy = DriftPolicy.ABORT):
        self.on_drift = on_drift
        self.logger = logging.getLogger(__name__)

    def choose_release_tag(self, default: str) -> str:
        return default

    def confirm_overwrite(self, key: str, stored_hash: str, new_hash: str) -> bool:
        # PROMPT has nobody to ask here, so it behaves like ABORT
        overwrite = self.on_drift == DriftPolicy.OVERWRITE
        self.logger.info(
            f"Drift policy '{self.on_drift.value}': "
            f"{'overwriting' if overwrite else 'keeping'} published '{key}'"
        )
        return overwrite
