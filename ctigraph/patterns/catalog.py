"""Pattern catalog — entity regexes and relation phrase/keyword tables.

Entity patterns are scanned in declaration order; the first pattern to claim a
surface string decides its type. Relation patterns come in two flavours:

- phrase patterns: ``<entity> <verb phrase> <entity>`` matched on raw text
- typed patterns: keywords searched between two nearby entities whose types
  fall in the pattern's source/target sets
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ctigraph.errors import CatalogError
from ctigraph.models.types import EntityType, RelationType

# Confidence bands (low, high)
NAMED_BAND = (0.85, 0.99)
STRUCTURED_BAND = (0.90, 0.99)
FALLBACK_BAND = (0.75, 0.90)

FALLBACK_TOKEN = r"\b[A-Z][a-zA-Z0-9]{2,}\b"


@dataclass
class EntityPattern:
    """Regex that tags every match with ``type``."""

    type: EntityType
    regex: str
    band: tuple[float, float] = NAMED_BAND
    ignore_case: bool = True
    compiled: re.Pattern[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.type = EntityType.parse(self.type)
        _check_band(self.band, f"entity pattern {self.type}")
        flags = re.IGNORECASE if self.ignore_case else 0
        try:
            self.compiled = re.compile(self.regex, flags)
        except (re.error, TypeError) as e:
            raise CatalogError(f"Invalid regex for {self.type}: {e}") from e


@dataclass
class PhrasePattern:
    """Directional verb phrase, e.g. ``uses|deploys`` → ``uses``."""

    relation: RelationType
    verbs: str

    def __post_init__(self) -> None:
        self.relation = RelationType.parse(self.relation)
        try:
            re.compile(self.verbs)
        except (re.error, TypeError) as e:
            raise CatalogError(f"Invalid verb phrase for {self.relation}: {e}") from e


@dataclass
class RelationPattern:
    """Keywords that signal ``relation`` between typed entity pairs."""

    source_types: list[EntityType]
    target_types: list[EntityType]
    keywords: list[str]
    relation: RelationType
    compiled: list[tuple[str, re.Pattern[str]]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.keywords:
            raise CatalogError(f"Relation pattern {self.relation} has no keywords")
        self.relation = RelationType.parse(self.relation)
        self.source_types = [EntityType.parse(t) for t in self.source_types]
        self.target_types = [EntityType.parse(t) for t in self.target_types]
        try:
            self.compiled = [
                (kw.lower(), re.compile(rf"\b{re.escape(kw.lower())}\b"))
                for kw in self.keywords
            ]
        except AttributeError as e:
            raise CatalogError(f"Relation pattern {self.relation} has a non-string keyword") from e

    def applies_to(self, source: EntityType, target: EntityType) -> bool:
        return source in self.source_types and target in self.target_types


def _check_band(band: tuple[float, float], what: str) -> None:
    if len(band) != 2:
        raise CatalogError(f"Confidence band for {what} must be (low, high)")
    low, high = band
    if not 0.0 <= low <= high <= 1.0:
        raise CatalogError(f"Confidence band for {what} out of range: {band}")


# === Default tables ===

def default_entity_patterns() -> list[EntityPattern]:
    return [
        EntityPattern(
            EntityType.THREAT_ACTOR,
            r"\b(?:APT\d+|Lazarus(?: Group)?|Fancy Bear|Cozy Bear|Sandworm|Equation Group"
            r"|Carbanak|FIN\d+|Turla|Winnti|Kimsuky|Dark Caracal|OilRig|Charming Kitten"
            r"|Wizard Spider|Bronze Butler)\b",
        ),
        EntityPattern(
            EntityType.MALWARE,
            r"\b(?:Zebrocy|TrickBot|Emotet|Ryuk|WannaCry|NotPetya|Maze|REvil|Conti|DarkSide"
            r"|BlackMatter|LockBit|Qbot|Dridex|IcedID|BazarLoader|CobaltStrike|Mimikatz"
            r"|PowerShell Empire|Metasploit|njRAT|DarkComet|AsyncRAT)\b",
        ),
        EntityPattern(
            EntityType.VULNERABILITY,
            r"\b(?:CVE-\d{4}-\d{4,7}|MS\d{2}-\d{3})\b",
            band=STRUCTURED_BAND,
        ),
        EntityPattern(
            EntityType.INDICATOR,
            r"\b(?:(?:\d{1,3}\.){3}\d{1,3}|[a-fA-F0-9]{32,64})\b",
            band=STRUCTURED_BAND,
            ignore_case=False,
        ),
        # Domains and URLs; the alphabetic TLD keeps version numbers and IPs out
        EntityPattern(
            EntityType.INDICATOR,
            r"\b(?:https?://)?(?:[a-z0-9](?:[a-z0-9-]*[a-z0-9])?\.)+[a-z]{2,24}\b"
            r"(?:/[\w\-./?=&%#~+]*[\w/=#~+-])?",
            band=STRUCTURED_BAND,
        ),
        EntityPattern(
            EntityType.TECHNIQUE,
            r"\b(?:spear[- ]?phishing|phishing|lateral movement|privilege escalation"
            r"|credential dumping|pass[- ]the[- ]hash|dll injection|process injection"
            r"|ransomware|backdoor|command[- ]and[- ]control|C2|exfiltration|data theft"
            r"|DDoS|SQL injection|XSS|buffer overflow)\b",
        ),
        EntityPattern(
            EntityType.LOCATION,
            r"\b(?:Russia|China|North Korea|Iran|Ukraine|United States|Eastern Europe"
            r"|Middle East|Asia|Europe)\b",
            ignore_case=False,
        ),
        EntityPattern(
            EntityType.ORGANIZATION,
            r"\b(?:government|military|healthcare|financial|finance|energy"
            r"|critical infrastructure|defense contractor)\b",
        ),
        EntityPattern(
            EntityType.TOOL,
            r"\b(?:Mimikatz|PowerShell|WMI|PsExec|Cobalt Strike|Metasploit|Empire|BloodHound)\b",
        ),
        EntityPattern(
            EntityType.CAMPAIGN,
            r"\bOperation [A-Z][A-Za-z]+\b",
            ignore_case=False,
        ),
    ]


def default_phrase_patterns() -> list[PhrasePattern]:
    return [
        PhrasePattern(RelationType.USES, r"uses?|deploys?|leverages?|utilizes?"),
        PhrasePattern(RelationType.TARGETS, r"targets?|attacks?"),
        PhrasePattern(RelationType.EXPLOITS, r"exploits?"),
        PhrasePattern(RelationType.AKA, r"also known as|aka"),
        PhrasePattern(RelationType.COMMUNICATES_VIA, r"communicates? via|uses? for C2"),
        PhrasePattern(RelationType.LOCATED_IN, r"located in|originates? from"),
        PhrasePattern(RelationType.ATTRIBUTED_TO, r"attributed to|linked to"),
    ]


def default_relation_patterns() -> list[RelationPattern]:
    ta, mw, tool = EntityType.THREAT_ACTOR, EntityType.MALWARE, EntityType.TOOL
    return [
        RelationPattern(
            [ta], [mw, tool],
            ["uses", "deploys", "leverages", "distributes", "operates"],
            RelationType.USES,
        ),
        RelationPattern(
            [ta, EntityType.CAMPAIGN], [EntityType.ORGANIZATION],
            ["targets", "attacks", "compromises", "infiltrates"],
            RelationType.TARGETS,
        ),
        RelationPattern(
            [mw, ta, tool], [EntityType.VULNERABILITY],
            ["exploits", "leverages", "abuses", "takes advantage of"],
            RelationType.EXPLOITS,
        ),
        RelationPattern(
            [ta], [EntityType.TECHNIQUE],
            ["uses", "employs", "leverages", "utilizes"],
            RelationType.LEVERAGES,
        ),
        RelationPattern(
            [mw], [EntityType.INDICATOR],
            ["communicates via", "connects through"],
            RelationType.COMMUNICATES_VIA,
        ),
        RelationPattern(
            [ta], [ta],
            ["also known as", "aka", "identified as", "aliases"],
            RelationType.AKA,
        ),
        RelationPattern(
            [mw], [EntityType.INDICATOR],
            ["connects to", "communicates with", "beacons to", "contacts"],
            RelationType.CONNECTS_TO,
        ),
        RelationPattern(
            [EntityType.ORGANIZATION, ta], [EntityType.LOCATION],
            ["located in", "based in", "operates in", "originates from"],
            RelationType.LOCATED_IN,
        ),
        RelationPattern(
            [EntityType.CAMPAIGN, ta], [ta, EntityType.LOCATION],
            ["attributed to", "linked to"],
            RelationType.ATTRIBUTED_TO,
        ),
    ]


class PatternCatalog:
    """Ordered entity and relation pattern tables."""

    def __init__(
        self,
        entity_patterns: list[EntityPattern] | None = None,
        phrase_patterns: list[PhrasePattern] | None = None,
        relation_patterns: list[RelationPattern] | None = None,
    ) -> None:
        self.entity_patterns = list(entity_patterns or [])
        self.phrase_patterns = list(phrase_patterns or [])
        self.relation_patterns = list(relation_patterns or [])

    @classmethod
    def default(cls) -> PatternCatalog:
        return cls(
            default_entity_patterns(),
            default_phrase_patterns(),
            default_relation_patterns(),
        )

    def add_entity_pattern(self, pattern: EntityPattern) -> None:
        """Append a pattern. Earlier patterns keep tie-break priority."""
        self.entity_patterns.append(pattern)

    def add_phrase_pattern(self, pattern: PhrasePattern) -> None:
        self.phrase_patterns.append(pattern)

    def add_relation_pattern(self, pattern: RelationPattern) -> None:
        self.relation_patterns.append(pattern)

    def validate(self) -> None:
        """Raise CatalogError if any table holds something that is not a pattern."""
        tables = (
            ("entity", self.entity_patterns, EntityPattern),
            ("phrase", self.phrase_patterns, PhrasePattern),
            ("relation", self.relation_patterns, RelationPattern),
        )
        for name, entries, expected in tables:
            for i, entry in enumerate(entries):
                if not isinstance(entry, expected):
                    raise CatalogError(
                        f"{name} pattern #{i} is {type(entry).__name__}, "
                        f"expected {expected.__name__}"
                    )

    def summary(self) -> dict[str, int]:
        return {
            "entity_patterns": len(self.entity_patterns),
            "phrase_patterns": len(self.phrase_patterns),
            "relation_patterns": len(self.relation_patterns),
        }
