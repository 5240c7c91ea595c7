"""Tests for SQLite feedback persistence."""

import aiosqlite
import pytest

from ctigraph.feedback.models import FeedbackBatch
from ctigraph.feedback.repo import FeedbackRepository
from ctigraph.feedback.store import FeedbackStore
from ctigraph.models.types import EntityType


@pytest.fixture
async def repo():
    db = await aiosqlite.connect(":memory:")
    repo = FeedbackRepository(db)
    await repo.init_schema()
    yield repo
    await repo.close()


class TestFeedbackRepository:
    async def test_append_and_load(self, repo, retype_batch):
        batch = FeedbackBatch.from_dict(retype_batch("Zebrocy", "malware", "tool"))
        await repo.append(batch)

        loaded = await repo.load_batches()
        assert len(loaded) == 1
        assert loaded[0].extraction_id == "x1"
        correction = loaded[0].corrections[0]
        assert correction.original_entity.text == "Zebrocy"
        assert correction.corrected_type is EntityType.TOOL
        assert loaded[0].timestamp == batch.timestamp

    async def test_order_preserved(self, repo, retype_batch):
        for i in range(3):
            await repo.append(FeedbackBatch.from_dict(retype_batch("a", "malware", "tool", f"x{i}")))
        assert [b.extraction_id for b in await repo.load_batches()] == ["x0", "x1", "x2"]
        assert await repo.count() == 3

    async def test_restore_into_store(self, repo, retype_batch):
        for i in range(2):
            await repo.append(
                FeedbackBatch.from_dict(retype_batch("Zebrocy", "malware", "tool", f"x{i}"))
            )
        store = FeedbackStore()
        assert await repo.restore(store) == 2
        assert store.corrections_for("zebrocy").frequency == 2

    async def test_open_file(self, tmp_path, delete_batch):
        path = tmp_path / "sub" / "feedback.db"
        repo = await FeedbackRepository.open(path)
        await repo.append(FeedbackBatch.from_dict(delete_batch("noise")))
        await repo.close()

        reopened = await FeedbackRepository.open(path)
        try:
            assert await reopened.count() == 1
        finally:
            await reopened.close()
