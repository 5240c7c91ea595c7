"""Feedback data models — user corrections of extraction results."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ctigraph.errors import FeedbackSubmissionError
from ctigraph.models.entity import normalize_text
from ctigraph.models.types import EntityType


class EntityRef(BaseModel):
    """The entity a correction refers to, as the user saw it."""

    text: str = Field(min_length=1)
    type: EntityType = EntityType.UNKNOWN
    start: int | None = None
    end: int | None = None
    confidence: float | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> EntityType:
        return EntityType.parse(v)

    @field_validator("text")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("entity text is blank")
        return v

    @property
    def key(self) -> str:
        return normalize_text(self.text)


class FeedbackCorrection(BaseModel):
    """Retype, rename or delete one extracted entity."""

    original_entity: EntityRef
    corrected_type: EntityType | None = None
    corrected_text: str | None = None
    should_delete: bool = False
    reason: str | None = None

    @field_validator("corrected_type", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> EntityType | None:
        if v is None or v == "":
            return None
        return EntityType.parse(v)

    @property
    def is_retype(self) -> bool:
        return self.corrected_type is not None and not self.should_delete

    @property
    def has_action(self) -> bool:
        return self.should_delete or self.corrected_type is not None or bool(self.corrected_text)


class FeedbackBatch(BaseModel):
    """Corrections submitted for one prior extraction."""

    extraction_id: str = Field(min_length=1)
    corrections: list[FeedbackCorrection] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    user_id: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> FeedbackBatch:
        """Validate raw input, raising FeedbackSubmissionError on bad shape."""
        if not isinstance(data, dict):
            raise FeedbackSubmissionError(
                f"Feedback batch must be an object, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise FeedbackSubmissionError(f"Malformed feedback batch: {e}") from e

    @property
    def deletions(self) -> int:
        return sum(1 for c in self.corrections if c.should_delete)


class CorrectionVote(BaseModel):
    """Current agreeing vote for one entity text."""

    model_config = ConfigDict(frozen=True)

    type: EntityType
    frequency: int = 1


class FeedbackStats(BaseModel):
    total_feedback: int = 0
    total_corrections: int = 0
    improvement_rate: float = Field(default=1.0, ge=0.0, le=1.0)
