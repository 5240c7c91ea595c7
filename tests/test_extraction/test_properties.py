"""Invariants that hold for every extraction result."""

import pytest

from ctigraph.extraction.pipeline import ExtractionPipeline
from ctigraph.feedback.store import FeedbackStore
from ctigraph.models.entity import normalize_text
from ctigraph.models.types import RelationType

SAMPLES = [
    "APT28 uses Zebrocy",
    "Lazarus Group, also known as APT38, targets financial institutions in Asia.",
    "Emotet communicates via 185.220.101.4 and drops TrickBot, which deploys Ryuk.",
    "APT29 exploits CVE-2020-0688 and leverages spear phishing against government networks.",
    "During Operation Aurora, attackers attributed to China used PowerShell and Mimikatz.",
    "The FIN7 group attacks healthcare; FIN7 is located in Eastern Europe. fin7 again.",
    "Alpha Bravo Charlie Delta Echo Foxtrot Golf Hotel India Juliett Kilo Lima",
    "hash d41d8cd98f00b204e9800998ecf8427e seen with njRAT and DarkComet",
    "Sandworm " + "quietly " * 30 + "uses NotPetya",
]

TYPED = set(RelationType) - {RelationType.RELATED_TO, RelationType.CO_OCCURS_WITH}


@pytest.fixture
def fresh_pipeline():
    return ExtractionPipeline()


class TestResultInvariants:
    @pytest.mark.parametrize("text", SAMPLES)
    def test_deterministic(self, fresh_pipeline, text):
        a = fresh_pipeline.process(text)
        b = fresh_pipeline.process(text)
        assert a.entities == b.entities
        assert a.relations == b.relations
        assert a.graph == b.graph

    @pytest.mark.parametrize("text", SAMPLES)
    def test_no_duplicate_entity_text(self, fresh_pipeline, text):
        keys = [normalize_text(e.text) for e in fresh_pipeline.process(text).entities]
        assert len(keys) == len(set(keys))

    @pytest.mark.parametrize("text", SAMPLES)
    def test_confidence_bounds(self, fresh_pipeline, text):
        result = fresh_pipeline.process(text)
        for item in [*result.entities, *result.relations]:
            assert 0.0 <= item.confidence <= 1.0

    @pytest.mark.parametrize("text", SAMPLES)
    def test_no_dangling_relations(self, fresh_pipeline, text):
        result = fresh_pipeline.process(text)
        ids = {e.id for e in result.entities}
        for r in result.relations:
            assert r.source in ids
            assert r.target in ids
            assert r.source != r.target

    @pytest.mark.parametrize("text", SAMPLES)
    def test_unique_triples(self, fresh_pipeline, text):
        triples = [r.triple for r in fresh_pipeline.process(text).relations]
        assert len(triples) == len(set(triples))

    def test_distant_mentions_only_fall_back(self, fresh_pipeline):
        result = fresh_pipeline.process(SAMPLES[-1])
        assert not any(r.relation in TYPED for r in result.relations)


class TestThresholdBounds:
    def test_stays_in_hysteresis_range(self, retype_batch, delete_batch):
        store = FeedbackStore()
        for i in range(30):
            store.submit(delete_batch("noise", extraction_id=f"d{i}"))
            assert 0.75 <= store.confidence_threshold <= 0.95
        assert store.confidence_threshold == 0.95

        for i in range(40):
            store.submit(retype_batch("Zebrocy", "malware", "tool", extraction_id=f"r{i}"))
            assert 0.75 <= store.confidence_threshold <= 0.95
        assert store.confidence_threshold == 0.75

    def test_manual_override_clamped(self):
        store = FeedbackStore()
        assert store.set_confidence_threshold(1.5) == 0.99
        assert store.set_confidence_threshold(0.1) == 0.5
