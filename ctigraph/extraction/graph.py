"""Graph assembler — entities and relations to visualization nodes/edges."""

from __future__ import annotations

from collections.abc import Sequence

from ctigraph.models.entity import Entity
from ctigraph.models.relation import Relation
from ctigraph.models.result import Graph, GraphEdge, GraphNode


def build_graph(entities: Sequence[Entity], relations: Sequence[Relation]) -> Graph:
    nodes = [
        GraphNode(
            id=e.id,
            label=e.text,
            type=str(e.type),
            properties={"confidence": e.confidence},
        )
        for e in entities
    ]
    edges = [
        GraphEdge(
            id=r.id,
            source=r.source,
            target=r.target,
            label=str(r.relation),
            confidence=r.confidence,
        )
        for r in relations
    ]
    return Graph(nodes=nodes, edges=edges)
