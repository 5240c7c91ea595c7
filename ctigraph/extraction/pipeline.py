"""Extraction orchestrator — Recognizer → Extractor → Graph Assembler."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ctigraph.config import Settings
from ctigraph.errors import ExtractionFailure, InvalidInputError
from ctigraph.events.bus import EventBus, EventType
from ctigraph.extraction.graph import build_graph
from ctigraph.extraction.recognizer import EntityRecognizer
from ctigraph.extraction.relations import RelationExtractor
from ctigraph.feedback.corrector import apply_corrections
from ctigraph.feedback.store import FeedbackStore
from ctigraph.models.result import ExtractionMetadata, ExtractionResult
from ctigraph.patterns.catalog import PatternCatalog

if TYPE_CHECKING:
    from ctigraph.extraction.ai import TripleProvider
    from ctigraph.feedback.models import FeedbackBatch, FeedbackStats
    from ctigraph.models.entity import Entity
    from ctigraph.models.relation import Relation
    from ctigraph.storage.graph_store import GraphStore

logger = logging.getLogger(__name__)

METHOD_PATTERN = "pattern"
METHOD_AI = "ai"


class ExtractionPipeline:
    """Turns CTI text into an :class:`ExtractionResult`.

    The feedback store is shared across runs; everything else is local to
    one ``process`` call, so concurrent calls need no coordination.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        feedback: FeedbackStore | None = None,
        catalog: PatternCatalog | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.bus = bus
        self.feedback = feedback or FeedbackStore(self.settings.feedback, bus=bus)
        self.catalog = catalog or PatternCatalog.default()
        self.recognizer = EntityRecognizer(
            self.catalog, self.feedback, self.settings.extraction,
        )
        self.extractor = RelationExtractor(self.catalog, self.settings.extraction)

    # --- Inbound ---

    def validate_input(self, text: Any) -> str:
        if text is None:
            raise InvalidInputError("Invalid input: text is required")
        if not isinstance(text, str):
            raise InvalidInputError(
                f"Invalid input: text must be a string, got {type(text).__name__}"
            )
        if not text.strip():
            raise InvalidInputError("Invalid input: text is empty")
        limit = self.settings.extraction.max_text_length
        if limit and len(text) > limit:
            raise InvalidInputError(
                f"Invalid input: text is {len(text)} characters, limit is {limit}"
            )
        return text

    def process(self, text: Any) -> ExtractionResult:
        """Run the full pattern pipeline on one text.

        Raises:
            InvalidInputError: text missing, not a string, empty or too long.
            ExtractionFailure: any internal error; no partial result escapes.
        """
        text = self.validate_input(text)
        started = time.perf_counter()
        threshold = self.feedback.confidence_threshold

        try:
            self.catalog.validate()
            entities = self.recognizer.recognize(text)
            relations = self.extractor.extract(text, entities)
            result = self._assemble(
                text, entities, relations, started, threshold,
                model_version=self.settings.extraction.model_version,
                method=METHOD_PATTERN,
            )
        except ExtractionFailure as e:
            self._failed(text, e)
            raise
        except Exception as e:
            self._failed(text, e)
            raise ExtractionFailure(f"Extraction failed: {type(e).__name__}: {e}") from e

        self._completed(result)
        return result

    async def process_ai(self, text: Any, provider: TripleProvider) -> ExtractionResult:
        """Extract through an external provider, falling back to patterns on failure."""
        from ctigraph.extraction.ai import triples_to_graph

        text = self.validate_input(text)
        started = time.perf_counter()
        threshold = self.feedback.confidence_threshold

        try:
            triples = await provider.extract_triples(text)
        except Exception as e:
            logger.warning("AI extraction failed, using pattern pipeline: %s", e)
            return self.process(text)

        try:
            entities, relations = triples_to_graph(triples, text)
            fb = self.feedback.settings
            entities = apply_corrections(
                entities, self.feedback.corrections_for,
                min_votes=fb.min_votes, boost=fb.confidence_boost,
            )
            result = self._assemble(
                text, entities, relations, started, threshold,
                model_version=provider.model,
                method=METHOD_AI,
            )
        except Exception as e:
            self._failed(text, e)
            raise ExtractionFailure(f"Extraction failed: {type(e).__name__}: {e}") from e

        self._completed(result)
        return result

    async def process_and_store(self, text: Any, store: GraphStore) -> ExtractionResult:
        """``process`` plus best-effort persistence of the result."""
        result = self.process(text)
        await self.persist(result, store)
        return result

    async def persist(self, result: ExtractionResult, store: GraphStore) -> bool:
        """Upsert a result into ``store``. Store errors are logged, not raised."""
        by_id = {e.id: e for e in result.entities}
        try:
            for entity in result.entities:
                await store.store_entity(entity)
            for relation in result.relations:
                await store.store_relation(
                    relation, by_id[relation.source], by_id[relation.target],
                )
        except Exception as e:
            logger.warning("Failed to persist extraction result: %s", e)
            self._emit(EventType.STORE_FAILED, {"error": str(e)})
            return False
        return True

    # --- Feedback ---

    def submit_feedback(self, batch: FeedbackBatch | dict[str, Any]) -> FeedbackBatch:
        return self.feedback.submit(batch)

    def feedback_stats(self) -> FeedbackStats:
        return self.feedback.stats()

    # --- Internals ---

    @staticmethod
    def _assemble(
        text: str,
        entities: list[Entity],
        relations: list[Relation],
        started: float,
        threshold: float,
        *,
        model_version: str,
        method: str,
    ) -> ExtractionResult:
        ids = {e.id for e in entities}
        for r in relations:
            if r.source not in ids or r.target not in ids:
                raise ExtractionFailure(f"Relation {r.id} references an unknown entity")

        return ExtractionResult(
            entities=entities,
            relations=relations,
            graph=build_graph(entities, relations),
            metadata=ExtractionMetadata(
                processing_time=round(time.perf_counter() - started, 6),
                model_version=model_version,
                extraction_method=method,
                confidence_threshold=threshold,
                text_length=len(text),
                entities_found=len(entities),
                relations_found=len(relations),
            ),
        )

    def _completed(self, result: ExtractionResult) -> None:
        meta = result.metadata
        logger.info(
            "Extracted %d entities, %d relations in %.3fs (%s)",
            meta.entities_found, meta.relations_found, meta.processing_time,
            meta.extraction_method,
        )
        self._emit(EventType.EXTRACTION_COMPLETED, meta.model_dump())

    def _failed(self, text: str, error: Exception) -> None:
        logger.error("Extraction failed on %d chars: %s", len(text), error)
        self._emit(EventType.EXTRACTION_FAILED, {
            "text_length": len(text),
            "error": f"{type(error).__name__}: {error}",
        })

    def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self.bus is not None:
            self.bus.publish(event_type, data)
