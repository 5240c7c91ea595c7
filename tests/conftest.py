"""Shared test fixtures."""

from __future__ import annotations

import pytest

from ctigraph.config import Settings
from ctigraph.events.bus import EventBus
from ctigraph.extraction.pipeline import ExtractionPipeline
from ctigraph.feedback.store import FeedbackStore
from ctigraph.models.entity import Entity
from ctigraph.models.types import EntityType


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def feedback_store(settings, bus):
    return FeedbackStore(settings.feedback, bus=bus)


@pytest.fixture
def pipeline(settings, feedback_store, bus):
    return ExtractionPipeline(settings, feedback=feedback_store, bus=bus)


@pytest.fixture
def apt28():
    return Entity(
        id="e1", text="APT28", type=EntityType.THREAT_ACTOR, confidence=0.9, start=0, end=5,
    )


@pytest.fixture
def zebrocy():
    return Entity(
        id="e2", text="Zebrocy", type=EntityType.MALWARE, confidence=0.9, start=11, end=18,
    )


@pytest.fixture
def retype_batch():
    """Factory for raw feedback batches retyping one entity."""

    def make(text: str, old: str, new: str, extraction_id: str = "x1") -> dict:
        return {
            "extraction_id": extraction_id,
            "corrections": [
                {"original_entity": {"text": text, "type": old}, "corrected_type": new},
            ],
        }

    return make


@pytest.fixture
def delete_batch():
    def make(text: str, extraction_id: str = "x1") -> dict:
        return {
            "extraction_id": extraction_id,
            "corrections": [
                {"original_entity": {"text": text, "type": "unknown"}, "should_delete": True},
            ],
        }

    return make
