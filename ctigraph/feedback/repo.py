"""Async SQLite persistence for feedback history."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite

from ctigraph.feedback.models import FeedbackBatch, FeedbackCorrection

if TYPE_CHECKING:
    from ctigraph.feedback.store import FeedbackStore

logger = logging.getLogger(__name__)

FEEDBACK_SCHEMA = """
CREATE TABLE IF NOT EXISTS feedback_batches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    extraction_id TEXT NOT NULL,
    user_id TEXT,
    timestamp TEXT NOT NULL,
    corrections TEXT NOT NULL DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_feedback_extraction ON feedback_batches(extraction_id);
"""


class FeedbackRepository:
    """Append-only batch log. Rows are never updated or deleted."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    @classmethod
    async def open(cls, path: Path | str, *, wal_mode: bool = True) -> FeedbackRepository:
        """Open (or create) the feedback database."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(path))
        if wal_mode:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute("PRAGMA synchronous=NORMAL")
        repo = cls(db)
        await repo.init_schema()
        return repo

    async def init_schema(self) -> None:
        await self.db.executescript(FEEDBACK_SCHEMA)

    async def close(self) -> None:
        await self.db.close()

    async def append(self, batch: FeedbackBatch) -> None:
        await self.db.execute(
            """INSERT INTO feedback_batches (extraction_id, user_id, timestamp, corrections)
            VALUES (?, ?, ?, ?)
            """,
            (
                batch.extraction_id,
                batch.user_id,
                batch.timestamp.isoformat(),
                json.dumps([c.model_dump(mode="json") for c in batch.corrections]),
            ),
        )
        await self.db.commit()

    async def load_batches(self) -> list[FeedbackBatch]:
        """All batches in submission order."""
        batches: list[FeedbackBatch] = []
        async with self.db.execute(
            "SELECT extraction_id, user_id, timestamp, corrections "
            "FROM feedback_batches ORDER BY id",
        ) as cursor:
            async for row in cursor:
                batches.append(FeedbackBatch(
                    extraction_id=row[0],
                    user_id=row[1],
                    timestamp=row[2],
                    corrections=[
                        FeedbackCorrection.model_validate(c) for c in json.loads(row[3])
                    ],
                ))
        return batches

    async def count(self) -> int:
        async with self.db.execute("SELECT COUNT(*) FROM feedback_batches") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def restore(self, store: FeedbackStore) -> int:
        """Replay the persisted history into ``store``."""
        return store.restore(await self.load_batches())
