"""Graph persistence — idempotent upserts of extracted entities/relations."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite
from pydantic import BaseModel, Field

from ctigraph.models.entity import Entity
from ctigraph.models.relation import Relation
from ctigraph.models.result import Graph, GraphEdge, GraphNode
from ctigraph.models.types import EntityType, RelationType

logger = logging.getLogger(__name__)


class StoredEntity(BaseModel):
    """An entity merged across runs, keyed by type + normalized text."""

    id: str
    text: str
    type: EntityType
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    mentions: int = 1
    first_seen: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_seen: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StoredRelation(BaseModel):
    source_id: str
    target_id: str
    relation: RelationType
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    context: str = ""


def merge_confidence(old: float, new: float) -> float:
    """Probabilistic OR: 1 - (1-old) * (1-new)."""
    return min(1.0 - (1.0 - old) * (1.0 - new), 1.0)


@runtime_checkable
class GraphStore(Protocol):
    """Outbound persistence interface. All writes are upserts."""

    async def store_entity(self, entity: Entity) -> str: ...

    async def store_relation(
        self, relation: Relation, source: Entity, target: Entity,
    ) -> None: ...

    async def query_graph(self) -> Graph: ...


def _to_graph(entities: list[StoredEntity], relations: list[StoredRelation]) -> Graph:
    return Graph(
        nodes=[
            GraphNode(
                id=e.id,
                label=e.text,
                type=str(e.type),
                properties={"confidence": e.confidence, "mentions": e.mentions},
            )
            for e in entities
        ],
        edges=[
            GraphEdge(
                id=f"r{idx}",
                source=r.source_id,
                target=r.target_id,
                label=str(r.relation),
                confidence=r.confidence,
            )
            for idx, r in enumerate(relations, start=1)
        ],
    )


class InMemoryGraphStore:
    """Dict-backed store for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._entities: dict[str, StoredEntity] = {}
        self._relations: dict[tuple[str, str, str], StoredRelation] = {}

    @property
    def entity_count(self) -> int:
        return len(self._entities)

    @property
    def relation_count(self) -> int:
        return len(self._relations)

    async def store_entity(self, entity: Entity) -> str:
        key = entity.storage_key()
        existing = self._entities.get(key)
        now = datetime.now(UTC)
        if existing is None:
            self._entities[key] = StoredEntity(
                id=key, text=entity.text, type=entity.type,
                confidence=entity.confidence, first_seen=now, last_seen=now,
            )
        else:
            existing.confidence = merge_confidence(existing.confidence, entity.confidence)
            existing.mentions += 1
            existing.last_seen = now
        return key

    async def store_relation(self, relation: Relation, source: Entity, target: Entity) -> None:
        triple = (source.storage_key(), target.storage_key(), str(relation.relation))
        existing = self._relations.get(triple)
        if existing is None:
            self._relations[triple] = StoredRelation(
                source_id=triple[0],
                target_id=triple[1],
                relation=relation.relation,
                confidence=relation.confidence,
                context=relation.context,
            )
        else:
            existing.confidence = max(existing.confidence, relation.confidence)

    async def query_graph(self) -> Graph:
        return _to_graph(list(self._entities.values()), list(self._relations.values()))


GRAPH_SCHEMA = """
CREATE TABLE IF NOT EXISTS cti_entities (
    id TEXT PRIMARY KEY,
    text TEXT NOT NULL,
    type TEXT NOT NULL,
    confidence REAL DEFAULT 0.0,
    mentions INTEGER DEFAULT 1,
    first_seen TEXT,
    last_seen TEXT
);

CREATE TABLE IF NOT EXISTS cti_relations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id TEXT NOT NULL REFERENCES cti_entities(id),
    target_id TEXT NOT NULL REFERENCES cti_entities(id),
    relation TEXT NOT NULL,
    confidence REAL DEFAULT 0.0,
    context TEXT DEFAULT '',
    UNIQUE(source_id, target_id, relation)
);
CREATE INDEX IF NOT EXISTS idx_cti_rel_source ON cti_relations(source_id);
CREATE INDEX IF NOT EXISTS idx_cti_rel_target ON cti_relations(target_id);
"""


class SqliteGraphStore:
    """Persist extracted graphs to SQLite."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    @classmethod
    async def open(cls, path: Path | str, *, wal_mode: bool = True) -> SqliteGraphStore:
        """Open (or create) the graph database."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(path))
        if wal_mode:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
        store = cls(db)
        await store.init_schema()
        return store

    async def init_schema(self) -> None:
        """Create graph tables if they don't exist."""
        await self.db.executescript(GRAPH_SCHEMA)

    async def close(self) -> None:
        await self.db.close()

    async def store_entity(self, entity: Entity) -> str:
        """Upsert; repeated mentions merge confidence and bump the count."""
        key = entity.storage_key()
        now = datetime.now(UTC).isoformat()
        await self.db.execute(
            """INSERT INTO cti_entities (id, text, type, confidence, mentions,
                first_seen, last_seen)
            VALUES (?, ?, ?, ?, 1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                confidence = MIN(1.0, 1.0 - (1.0 - confidence) * (1.0 - excluded.confidence)),
                mentions = mentions + 1,
                last_seen = excluded.last_seen
            """,
            (key, entity.text, entity.type.value, entity.confidence, now, now),
        )
        await self.db.commit()
        return key

    async def store_relation(self, relation: Relation, source: Entity, target: Entity) -> None:
        """Upsert on (source, target, relation), keeping the higher confidence."""
        await self.db.execute(
            """INSERT INTO cti_relations (source_id, target_id, relation, confidence, context)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(source_id, target_id, relation) DO UPDATE SET
                confidence = MAX(confidence, excluded.confidence)
            """,
            (
                source.storage_key(),
                target.storage_key(),
                relation.relation.value,
                relation.confidence,
                relation.context,
            ),
        )
        await self.db.commit()

    async def query_graph(self) -> Graph:
        """Load the full stored graph."""
        entities: list[StoredEntity] = []
        async with self.db.execute(
            "SELECT id, text, type, confidence, mentions, first_seen, last_seen "
            "FROM cti_entities ORDER BY first_seen, id",
        ) as cursor:
            async for row in cursor:
                entities.append(StoredEntity(
                    id=row[0],
                    text=row[1],
                    type=EntityType.parse(row[2]),
                    confidence=row[3],
                    mentions=row[4],
                    first_seen=row[5],
                    last_seen=row[6],
                ))

        relations: list[StoredRelation] = []
        async with self.db.execute(
            "SELECT source_id, target_id, relation, confidence, context "
            "FROM cti_relations ORDER BY id",
        ) as cursor:
            async for row in cursor:
                relations.append(StoredRelation(
                    source_id=row[0],
                    target_id=row[1],
                    relation=RelationType.parse(row[2]),
                    confidence=row[3],
                    context=row[4] or "",
                ))

        return _to_graph(entities, relations)
