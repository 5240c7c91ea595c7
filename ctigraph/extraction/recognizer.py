"""Entity recognizer — catalog-driven scan with dedup and feedback bias."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from ctigraph.config import ExtractionSettings, FeedbackSettings
from ctigraph.feedback.corrector import apply_corrections
from ctigraph.models.entity import Entity, normalize_text
from ctigraph.models.types import EntityType
from ctigraph.patterns.catalog import FALLBACK_BAND, FALLBACK_TOKEN, PatternCatalog

if TYPE_CHECKING:
    from ctigraph.feedback.store import FeedbackStore

logger = logging.getLogger(__name__)

_FALLBACK_RE = re.compile(FALLBACK_TOKEN)

# Match length at which a pattern's band reaches its top
_FULL_LENGTH = 20


def score(band: tuple[float, float], text: str) -> float:
    """Deterministic confidence inside ``band``; longer matches score higher."""
    low, high = band
    weight = min(1.0, len(text.strip()) / _FULL_LENGTH)
    return round(low + (high - low) * weight, 4)


def _inside(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(s <= start and end <= e for s, e in spans)


class EntityRecognizer:
    """Finds typed entities in text.

    Usage::

        recognizer = EntityRecognizer(feedback=store)
        entities = recognizer.recognize("APT28 uses Zebrocy")
    """

    def __init__(
        self,
        catalog: PatternCatalog | None = None,
        feedback: FeedbackStore | None = None,
        settings: ExtractionSettings | None = None,
    ) -> None:
        self.catalog = catalog or PatternCatalog.default()
        self.feedback = feedback
        self.settings = settings or ExtractionSettings()

    def recognize(self, text: str) -> list[Entity]:
        """Entities in catalog order, first match per case-folded text wins.

        A match lying inside a span an earlier match already claimed is
        skipped, so "PowerShell Empire" does not also yield "PowerShell".
        """
        entities: list[Entity] = []
        seen: set[str] = set()
        claimed: list[tuple[int, int]] = []

        for pattern in self.catalog.entity_patterns:
            for match in pattern.compiled.finditer(text):
                surface = match.group(0)
                key = normalize_text(surface)
                if not key or key in seen:
                    continue
                if _inside(match.start(), match.end(), claimed):
                    continue
                seen.add(key)
                claimed.append((match.start(), match.end()))
                entities.append(Entity(
                    id=f"e{len(entities) + 1}",
                    text=surface,
                    type=pattern.type,
                    confidence=score(pattern.band, surface),
                    start=match.start(),
                    end=match.end(),
                ))

        if not entities:
            entities = self._fallback(text)
            if entities:
                logger.debug("No catalog matches, using %d generic tokens", len(entities))

        return self._apply_feedback(entities)

    def _fallback(self, text: str) -> list[Entity]:
        """Distinct capitalized tokens as UNKNOWN entities."""
        entities: list[Entity] = []
        seen: set[str] = set()
        limit = self.settings.fallback_token_limit

        for match in _FALLBACK_RE.finditer(text):
            if len(entities) >= limit:
                break
            surface = match.group(0)
            key = normalize_text(surface)
            if key in seen:
                continue
            seen.add(key)
            entities.append(Entity(
                id=f"e{len(entities) + 1}",
                text=surface,
                type=EntityType.UNKNOWN,
                confidence=score(FALLBACK_BAND, surface),
                start=match.start(),
                end=match.end(),
            ))
        return entities

    def _apply_feedback(self, entities: list[Entity]) -> list[Entity]:
        if self.feedback is None or not entities:
            return entities
        fb: FeedbackSettings = self.feedback.settings
        votes = self.feedback.snapshot()
        return apply_corrections(
            entities, votes.get, min_votes=fb.min_votes, boost=fb.confidence_boost,
        )
