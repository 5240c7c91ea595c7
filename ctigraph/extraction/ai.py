"""LLM-backed triple extraction with a regex fallback.

The provider talks to any OpenAI-compatible ``/chat/completions`` endpoint
and is only used when explicitly enabled. Its output is normalized through
the same closed type vocabularies as the pattern pipeline.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

import aiohttp
from pydantic import BaseModel, Field

from ctigraph.config import AISettings
from ctigraph.errors import ExtractionFailure
from ctigraph.extraction.relations import RelationSet
from ctigraph.models.entity import Entity, normalize_text
from ctigraph.models.relation import Relation
from ctigraph.models.types import EntityType, RelationType

logger = logging.getLogger(__name__)

DEFAULT_TRIPLE_CONFIDENCE = 0.7

SYSTEM_PROMPT = """You are a cybersecurity threat intelligence analyst. \
Extract entity-relation-entity triples from CTI text.

For each triple, identify:
1. entity1: First entity (threat actor, malware, vulnerability, tool, etc.)
2. entity1_type: one of threat-actor, malware, vulnerability, tool, technique, \
indicator, campaign, location, organization
3. relation: uses, exploits, targets, communicates_via, connects_to, aka, \
located_in, attributed_to, leverages, related_to
4. entity2: Second entity
5. entity2_type: Type of second entity
6. confidence: Confidence score 0-1

Return a JSON object {"triples": [...]}. Extract ALL relationships, not just obvious ones."""


class ExtractedTriple(BaseModel):
    entity1: str
    entity1_type: EntityType = EntityType.UNKNOWN
    relation: RelationType = RelationType.RELATED_TO
    entity2: str
    entity2_type: EntityType = EntityType.UNKNOWN
    confidence: float = Field(default=DEFAULT_TRIPLE_CONFIDENCE, ge=0.0, le=1.0)


def _confidence(value: Any) -> float:
    try:
        c = float(value)
    except (TypeError, ValueError):
        return DEFAULT_TRIPLE_CONFIDENCE
    if c != c:  # NaN
        return DEFAULT_TRIPLE_CONFIDENCE
    return max(0.0, min(c, 1.0))


def validate_triples(raw: Any) -> list[ExtractedTriple]:
    """Normalize loosely-shaped triples; incomplete entries are dropped."""
    if not isinstance(raw, list):
        return []
    triples: list[ExtractedTriple] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        e1 = str(item.get("entity1") or "").strip()
        e2 = str(item.get("entity2") or "").strip()
        rel = item.get("relation")
        if not e1 or not e2 or not rel:
            continue
        triples.append(ExtractedTriple(
            entity1=e1,
            entity1_type=EntityType.parse(item.get("entity1_type") or item.get("entity1Type")),
            relation=RelationType.parse(rel),
            entity2=e2,
            entity2_type=EntityType.parse(item.get("entity2_type") or item.get("entity2Type")),
            confidence=_confidence(item.get("confidence", DEFAULT_TRIPLE_CONFIDENCE)),
        ))
    return triples


_TYPE_HINTS: list[tuple[re.Pattern[str], EntityType]] = [
    (re.compile(r"apt\d+|fancy bear|cozy bear|lazarus", re.IGNORECASE), EntityType.THREAT_ACTOR),
    (re.compile(r"malware|trojan|ransomware|backdoor", re.IGNORECASE), EntityType.MALWARE),
    (re.compile(r"cve-\d{4}-\d+", re.IGNORECASE), EntityType.VULNERABILITY),
    (re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"), EntityType.INDICATOR),
    (re.compile(r"mimikatz|powershell|cobalt strike", re.IGNORECASE), EntityType.TOOL),
]


def infer_entity_type(text: str) -> EntityType:
    for regex, entity_type in _TYPE_HINTS:
        if regex.search(text):
            return entity_type
    return EntityType.UNKNOWN


_TRIPLE_PATTERNS: list[tuple[re.Pattern[str], RelationType]] = [
    (re.compile(r"([\w-]+)\s+(?:uses|utilizing|deploys)\s+([\w-]+)", re.IGNORECASE),
     RelationType.USES),
    (re.compile(r"([\w-]+)\s+(?:exploits|exploiting)\s+(CVE-\d{4}-\d+|[\w-]+)", re.IGNORECASE),
     RelationType.EXPLOITS),
    (re.compile(r"([\w-]+)\s+(?:targets|targeting)\s+([\w-]+)", re.IGNORECASE),
     RelationType.TARGETS),
    (re.compile(r"([\w-]+)\s+(?:aka|also known as)\s+([\w-]+)", re.IGNORECASE),
     RelationType.AKA),
]


def extract_triples_pattern(text: str) -> list[ExtractedTriple]:
    """Regex triples for when no AI provider is available."""
    triples: list[ExtractedTriple] = []
    for regex, relation in _TRIPLE_PATTERNS:
        for match in regex.finditer(text):
            e1, e2 = match.group(1).strip(), match.group(2).strip()
            triples.append(ExtractedTriple(
                entity1=e1,
                entity1_type=infer_entity_type(e1),
                relation=relation,
                entity2=e2,
                entity2_type=infer_entity_type(e2),
            ))
    return triples


def triples_to_graph(
    triples: Sequence[ExtractedTriple], text: str,
) -> tuple[list[Entity], list[Relation]]:
    """Entities and relations from triples, with the same dedup rules."""
    entities: list[Entity] = []
    by_key: dict[str, Entity] = {}
    lowered = text.casefold()

    def resolve(name: str, entity_type: EntityType, confidence: float) -> Entity:
        key = normalize_text(name)
        existing = by_key.get(key)
        if existing is not None:
            return existing
        start = lowered.find(key)
        entity = Entity(
            id=f"e{len(entities) + 1}",
            text=name,
            type=entity_type,
            confidence=confidence,
            start=max(start, 0),
            end=max(start, 0) + len(name) if start >= 0 else 0,
        )
        entities.append(entity)
        by_key[key] = entity
        return entity

    relations = RelationSet()
    for t in triples:
        source = resolve(t.entity1, t.entity1_type, t.confidence)
        target = resolve(t.entity2, t.entity2_type, t.confidence)
        relations.add(source, target, t.relation, t.confidence)
    return entities, relations.to_list()


@runtime_checkable
class TripleProvider(Protocol):
    """Pluggable external extraction backend."""

    model: str

    async def extract_triples(self, text: str) -> list[ExtractedTriple]: ...


class PatternTripleProvider:
    """Offline provider backed by :func:`extract_triples_pattern`."""

    model = "pattern-triples-v1"

    async def extract_triples(self, text: str) -> list[ExtractedTriple]:
        return extract_triples_pattern(text)


def parse_completion(payload: dict[str, Any]) -> list[ExtractedTriple]:
    """Triples from a chat-completions response body."""
    try:
        content = payload["choices"][0]["message"]["content"] or "{}"
    except (KeyError, IndexError, TypeError) as e:
        raise ExtractionFailure(f"Unexpected completion payload: {e}") from e
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"Completion is not valid JSON: {e}") from e
    if isinstance(parsed, dict):
        parsed = parsed.get("triples") or parsed.get("results") or []
    return validate_triples(parsed)


class OpenAITripleProvider:
    """Chat-completions client for triple extraction.

    Usage::

        async with OpenAITripleProvider(settings.ai) as provider:
            triples = await provider.extract_triples(text)
    """

    def __init__(
        self, settings: AISettings, session: aiohttp.ClientSession | None = None,
    ) -> None:
        if not settings.api_key:
            raise ExtractionFailure("AI extraction requires an API key")
        self.settings = settings
        self.model = settings.model
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> OpenAITripleProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def extract_triples(self, text: str) -> list[ExtractedTriple]:
        session = await self._ensure_session()
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": f"Extract all entity-relation-entity triples "
                               f"from this CTI text:\n\n{text}",
                },
            ],
            "temperature": self.settings.temperature,
            "response_format": {"type": "json_object"},
        }
        url = f"{self.settings.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.settings.api_key}"}
        try:
            async with session.post(url, json=body, headers=headers) as resp:
                if resp.status != 200:
                    detail = await resp.text()
                    raise ExtractionFailure(
                        f"AI provider returned HTTP {resp.status}: {detail[:200]}"
                    )
                payload = await resp.json()
        except (aiohttp.ClientError, TimeoutError) as e:
            raise ExtractionFailure(f"AI provider request failed: {e}") from e

        triples = parse_completion(payload)
        logger.info("AI provider %s returned %d triples", self.model, len(triples))
        return triples
