"""Data models for entities, relations and extraction results."""

from ctigraph.models.entity import Entity, normalize_text
from ctigraph.models.relation import Relation
from ctigraph.models.result import (
    ExtractionMetadata,
    ExtractionResult,
    Graph,
    GraphEdge,
    GraphNode,
)
from ctigraph.models.types import EntityType, RelationType

__all__ = [
    "Entity",
    "EntityType",
    "ExtractionMetadata",
    "ExtractionResult",
    "Graph",
    "GraphEdge",
    "GraphNode",
    "Relation",
    "RelationType",
    "normalize_text",
]
