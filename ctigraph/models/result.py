"""Extraction result — the interchange shape consumed by UIs and stores."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ctigraph.models.entity import Entity
from ctigraph.models.relation import Relation


class GraphNode(BaseModel):
    id: str
    label: str
    type: str
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    label: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class Graph(BaseModel):
    """Visualization-ready graph."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


class ExtractionMetadata(BaseModel):
    processing_time: float = 0.0
    model_version: str = ""
    extraction_method: str = "pattern"
    confidence_threshold: float = 0.85
    text_length: int = 0
    entities_found: int = 0
    relations_found: int = 0


class ExtractionResult(BaseModel):
    """Entities, relations, assembled graph and run metadata."""

    entities: list[Entity] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
    graph: Graph = Field(default_factory=Graph)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict in the ``{entities, relations, graph, metadata}`` shape."""
        return self.model_dump(mode="json")

    def entity(self, entity_id: str) -> Entity | None:
        for e in self.entities:
            if e.id == entity_id:
                return e
        return None

    def above_threshold(self, threshold: float | None = None) -> ExtractionResult:
        """Copy with items below ``threshold`` dropped.

        Defaults to the threshold recorded in the metadata. Relations whose
        endpoints were dropped are removed with them.
        """
        from ctigraph.extraction.graph import build_graph

        cutoff = self.metadata.confidence_threshold if threshold is None else threshold
        entities = [e for e in self.entities if e.confidence >= cutoff]
        kept = {e.id for e in entities}
        relations = [
            r for r in self.relations
            if r.confidence >= cutoff and r.source in kept and r.target in kept
        ]
        metadata = self.metadata.model_copy(update={
            "entities_found": len(entities),
            "relations_found": len(relations),
        })
        return ExtractionResult(
            entities=entities,
            relations=relations,
            graph=build_graph(entities, relations),
            metadata=metadata,
        )
