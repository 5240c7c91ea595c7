from ctigraph.storage.graph_store import (
    GraphStore,
    InMemoryGraphStore,
    SqliteGraphStore,
    StoredEntity,
    StoredRelation,
)

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "SqliteGraphStore",
    "StoredEntity",
    "StoredRelation",
]
