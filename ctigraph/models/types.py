"""Closed type vocabularies for entities and relations."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class EntityType(StrEnum):
    THREAT_ACTOR = "threat-actor"
    MALWARE = "malware"
    VULNERABILITY = "vulnerability"
    TOOL = "tool"
    TECHNIQUE = "technique"
    INDICATOR = "indicator"
    CAMPAIGN = "campaign"
    LOCATION = "location"
    ORGANIZATION = "organization"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> EntityType:
        """Map a loosely-typed string to a member, falling back to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        key = value.strip().lower().replace("_", "-").replace(" ", "-")
        key = _LEGACY_ENTITY_TYPES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN


# Type names used by older extractors
_LEGACY_ENTITY_TYPES: dict[str, str] = {
    "ip-address": "indicator",
    "domain": "indicator",
    "hash": "indicator",
    "url": "indicator",
    "target-sector": "organization",
    "actor": "threat-actor",
    "entity": "unknown",
}


class RelationType(StrEnum):
    USES = "uses"
    TARGETS = "targets"
    EXPLOITS = "exploits"
    LEVERAGES = "leverages"
    COMMUNICATES_VIA = "communicates_via"
    CONNECTS_TO = "connects_to"
    AKA = "aka"
    LOCATED_IN = "located_in"
    ATTRIBUTED_TO = "attributed_to"
    RELATED_TO = "related_to"
    CO_OCCURS_WITH = "co-occurs_with"

    @classmethod
    def parse(cls, value: Any) -> RelationType:
        """Map a relation label to a member; unknown labels become RELATED_TO."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.RELATED_TO
        key = value.strip().lower().replace(" ", "_")
        if key in ("co-occurs_with", "co_occurs_with", "co-occurs-with"):
            return cls.CO_OCCURS_WITH
        key = key.replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            return _RELATION_ALIASES.get(key, cls.RELATED_TO)


_RELATION_ALIASES: dict[str, RelationType] = {
    "communicates_with": RelationType.CONNECTS_TO,
    "deploys": RelationType.USES,
    "associated_with": RelationType.RELATED_TO,
    "also_known_as": RelationType.AKA,
}
