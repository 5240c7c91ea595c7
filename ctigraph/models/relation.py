"""Candidate edges between entities of the same run."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ctigraph.models.types import RelationType


class Relation(BaseModel):
    """A directed, typed, confidence-scored edge. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    source: str
    target: str
    relation: RelationType = RelationType.RELATED_TO
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    context: str = ""

    @property
    def triple(self) -> tuple[str, str, str]:
        return (self.source, self.target, str(self.relation))
