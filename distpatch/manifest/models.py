from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import ComparisonDecision


class ManifestEntry(BaseModel):
    """Provenance of one published DistPatch, keyed by the DistPatch name"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    upstream: str
    source_patch: str = Field(alias="sourcePatch")
    change_refs: List[str] = Field(alias="changeRefs")
    created: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    sha256: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        """Manifest file representation (camelCase keys)"""
        return self.model_dump(by_alias=True, exclude_none=True)

    def same_provenance(self, other: 'ManifestEntry') -> bool:
        return self.upstream == other.upstream and list(self.change_refs) == list(other.change_refs)


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing a fresh DistPatch with the published one"""
    decision: ComparisonDecision
    key: str
    new_hash: str
    stored_hash: Optional[str] = None
