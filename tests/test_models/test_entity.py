"""Tests for Entity and Relation models."""

import pytest
from pydantic import ValidationError

from ctigraph.models.entity import Entity, normalize_text
from ctigraph.models.relation import Relation
from ctigraph.models.types import EntityType, RelationType


class TestNormalizeText:
    def test_casefold_and_strip(self):
        assert normalize_text("  APT28 ") == "apt28"
        assert normalize_text("Straße") == normalize_text("STRASSE")


class TestEntity:
    def test_key(self):
        e = Entity(id="e1", text=" Zebrocy", type=EntityType.MALWARE, confidence=0.9)
        assert e.key == "zebrocy"

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            Entity(id="e1", text="x", confidence=1.5)
        with pytest.raises(ValidationError):
            Entity(id="e1", text="x", confidence=-0.1)

    def test_storage_key_stable_across_runs(self):
        a = Entity(id="e1", text="APT28", type=EntityType.THREAT_ACTOR, confidence=0.9)
        b = Entity(id="e7", text="apt28", type=EntityType.THREAT_ACTOR, confidence=0.5)
        assert a.storage_key() == b.storage_key()
        assert len(a.storage_key()) == 16

    def test_storage_key_depends_on_type(self):
        a = Entity(id="e1", text="Mimikatz", type=EntityType.MALWARE)
        b = Entity(id="e1", text="Mimikatz", type=EntityType.TOOL)
        assert a.storage_key() != b.storage_key()


class TestRelation:
    def test_triple(self):
        r = Relation(id="r1", source="e1", target="e2", relation=RelationType.USES, confidence=0.9)
        assert r.triple == ("e1", "e2", "uses")

    def test_frozen(self):
        r = Relation(id="r1", source="e1", target="e2")
        with pytest.raises(ValidationError):
            r.confidence = 0.5

    def test_defaults(self):
        r = Relation(id="r1", source="e1", target="e2")
        assert r.relation is RelationType.RELATED_TO
        assert r.context == ""
