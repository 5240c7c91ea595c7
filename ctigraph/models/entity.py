"""Candidate entities produced by one extraction run."""

from __future__ import annotations

import hashlib

from pydantic import BaseModel, Field

from ctigraph.models.types import EntityType


def normalize_text(text: str) -> str:
    """Dedup key for surface strings: trimmed and case-folded."""
    return text.strip().casefold()


class Entity(BaseModel):
    """A recognized span of text tagged with a type and confidence.

    ``id`` is only stable within one run (``e1``, ``e2``, ...). Use
    :meth:`storage_key` for identity across runs.
    """

    id: str
    text: str
    type: EntityType = EntityType.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    start: int = Field(default=0, ge=0)
    end: int = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        return normalize_text(self.text)

    def storage_key(self) -> str:
        """Deterministic ID from type + normalized text."""
        raw = f"{self.type}:{self.key}"
        return hashlib.sha256(raw.encode()).hexdigest()[:16]
