"""Relation extractor — phrase, typed-proximity and fallback relations."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from ctigraph.config import ExtractionSettings
from ctigraph.models.entity import Entity, normalize_text
from ctigraph.models.relation import Relation
from ctigraph.models.types import RelationType
from ctigraph.patterns.catalog import PatternCatalog, RelationPattern

logger = logging.getLogger(__name__)

# Confidence bands (low, high) for synthesized scores
EXPLICIT_BAND = (0.88, 0.99)
FALLBACK_BAND = (0.80, 0.90)
COOCCURRENCE_CONFIDENCE = 0.7
MAX_CONFIDENCE = 0.99


def _band_score(band: tuple[float, float], source: Entity, target: Entity) -> float:
    """Place the pair's mean entity confidence (0.5..1.0) inside ``band``."""
    low, high = band
    mean = (source.confidence + target.confidence) / 2
    weight = max(0.0, min(1.0, (mean - 0.5) / 0.5))
    return round(low + (high - low) * weight, 4)


class RelationSet:
    """Ordered relations with (source, target, relation) dedup."""

    def __init__(self, prefix: str = "r") -> None:
        self._prefix = prefix
        self._relations: list[Relation] = []
        self._triples: set[tuple[str, str, str]] = set()

    def __len__(self) -> int:
        return len(self._relations)

    def has(self, source: Entity, target: Entity, relation: RelationType) -> bool:
        return (source.id, target.id, str(relation)) in self._triples

    def add(
        self,
        source: Entity,
        target: Entity,
        relation: RelationType,
        confidence: float,
        context: str = "",
    ) -> bool:
        if source.id == target.id or self.has(source, target, relation):
            return False
        self._relations.append(Relation(
            id=f"{self._prefix}{len(self._relations) + 1}",
            source=source.id,
            target=target.id,
            relation=relation,
            confidence=max(0.0, min(confidence, 1.0)),
            context=context.strip(),
        ))
        self._triples.add((source.id, target.id, str(relation)))
        return True

    def to_list(self) -> list[Relation]:
        return list(self._relations)


class RelationExtractor:
    """Infers directed relations between recognized entities."""

    def __init__(
        self,
        catalog: PatternCatalog | None = None,
        settings: ExtractionSettings | None = None,
    ) -> None:
        self.catalog = catalog or PatternCatalog.default()
        self.settings = settings or ExtractionSettings()

    def extract(
        self,
        text: str,
        entities: Sequence[Entity],
        include_cooccurrences: bool | None = None,
    ) -> list[Relation]:
        """Relations for one run, in discovery order.

        1. explicit ``<entity> <verb> <entity>`` phrases
        2. typed keyword matches between nearby entity pairs
        3. ``related_to`` chain when the result is still sparse
        """
        relations = RelationSet()
        if not entities:
            return []

        self._explicit(text, entities, relations)
        explicit = len(relations)
        self._typed(text, entities, relations)
        typed = len(relations) - explicit

        fallback = 0
        if len(relations) < self.settings.sparse_relation_minimum and len(entities) >= 2:
            fallback = self._chain(text, entities, relations)

        if include_cooccurrences is None:
            include_cooccurrences = self.settings.include_cooccurrences
        if include_cooccurrences:
            self._cooccurrences(entities, self.settings.cooccurrence_window, relations)

        logger.debug(
            "Relations: %d explicit, %d typed, %d fallback, %d total",
            explicit, typed, fallback, len(relations),
        )
        return relations.to_list()

    def extract_cooccurrences(
        self, entities: Sequence[Entity], window: int | None = None,
    ) -> list[Relation]:
        """Weak ``co-occurs_with`` edges for entities whose starts are within ``window``."""
        relations = RelationSet(prefix="c")
        if window is None:
            window = self.settings.cooccurrence_window
        self._cooccurrences(entities, window, relations)
        return relations.to_list()

    # --- Steps ---

    def _explicit(self, text: str, entities: Sequence[Entity], out: RelationSet) -> None:
        by_key: dict[str, Entity] = {}
        for entity in entities:
            by_key.setdefault(entity.key, entity)

        names = sorted(
            {re.escape(e.text.strip()) for e in by_key.values() if e.text.strip()},
            key=len,
            reverse=True,
        )
        if not names:
            return
        alt = "|".join(names)

        for phrase in self.catalog.phrase_patterns:
            # Zero-width lookahead so chained phrases ("A uses B uses C") overlap
            regex = re.compile(
                rf"(?<!\w)(?=(?P<src>{alt})\s+(?:{phrase.verbs})\s+"
                rf"(?:(?:the|a|an)\s+)?(?P<tgt>{alt})(?!\w))",
                re.IGNORECASE,
            )
            for match in regex.finditer(text):
                source = by_key.get(normalize_text(match.group("src")))
                target = by_key.get(normalize_text(match.group("tgt")))
                if source is None or target is None:
                    continue
                out.add(
                    source,
                    target,
                    phrase.relation,
                    _band_score(EXPLICIT_BAND, source, target),
                    text[match.end("src"):match.start("tgt")],
                )

    def _typed(self, text: str, entities: Sequence[Entity], out: RelationSet) -> None:
        max_gap = self.settings.max_entity_gap
        ordered = sorted(entities, key=lambda e: (e.start, e.end))

        for i, source in enumerate(ordered):
            for target in ordered[i + 1:]:
                gap = target.start - source.end
                if gap > max_gap:
                    break
                if gap < 0:
                    continue
                context = text[source.end:target.start]
                best = self._best_match(source, target, context)
                if best is None:
                    continue
                relation, confidence = best
                out.add(source, target, relation, confidence, context)

    def _best_match(
        self, source: Entity, target: Entity, context: str,
    ) -> tuple[RelationType, float] | None:
        """Highest-confidence typed pattern for this ordered pair."""
        lowered = context.lower()
        mean = (source.confidence + target.confidence) / 2
        distance = max(0.7, 1 - len(context) / max(self.settings.max_entity_gap, 1))

        best: tuple[RelationType, float] | None = None
        for pattern in self.catalog.relation_patterns:
            if not pattern.applies_to(source.type, target.type):
                continue
            for keyword, regex in pattern.compiled:
                if not regex.search(lowered):
                    continue
                confidence = min(mean * distance * _keyword_quality(keyword), MAX_CONFIDENCE)
                if best is None or confidence > best[1]:
                    best = (pattern.relation, round(confidence, 4))
        return best

    def _chain(self, text: str, entities: Sequence[Entity], out: RelationSet) -> int:
        ordered = sorted(entities, key=lambda e: (e.start, e.end))
        added = 0
        for source, target in zip(
            ordered[: self.settings.fallback_chain_limit],
            ordered[1 : self.settings.fallback_chain_limit + 1],
        ):
            context = text[source.end:target.start] if target.start >= source.end else ""
            if out.add(
                source,
                target,
                RelationType.RELATED_TO,
                _band_score(FALLBACK_BAND, source, target),
                context,
            ):
                added += 1
        return added

    @staticmethod
    def _cooccurrences(entities: Sequence[Entity], window: int, out: RelationSet) -> None:
        for i, source in enumerate(entities):
            for target in entities[i + 1:]:
                if abs(target.start - source.start) <= window:
                    out.add(source, target, RelationType.CO_OCCURS_WITH, COOCCURRENCE_CONFIDENCE)

    # --- Catalog passthrough ---

    def add_pattern(self, pattern: RelationPattern) -> None:
        self.catalog.add_relation_pattern(pattern)

    def patterns(self) -> list[RelationPattern]:
        return list(self.catalog.relation_patterns)


def _keyword_quality(keyword: str) -> float:
    """Longer, more specific keywords are stronger evidence."""
    return 0.95 if len(keyword) > 5 else 0.85
