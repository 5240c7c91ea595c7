"""Feedback corrector — vote tallying, entity biasing, threshold control."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence

from ctigraph.config import FeedbackSettings
from ctigraph.feedback.models import CorrectionVote, FeedbackBatch
from ctigraph.models.entity import Entity

logger = logging.getLogger(__name__)

MAX_CONFIDENCE = 0.99


def tally_votes(
    votes: Mapping[str, CorrectionVote], batch: FeedbackBatch,
) -> dict[str, CorrectionVote]:
    """Return a new vote map with ``batch`` folded in.

    A retype agreeing with the current vote increments it; a disagreeing
    retype replaces it with a fresh vote of 1. Deletions do not vote.
    """
    updated = dict(votes)
    for correction in batch.corrections:
        if not correction.is_retype:
            continue
        key = correction.original_entity.key
        current = updated.get(key)
        if current is not None and current.type == correction.corrected_type:
            updated[key] = CorrectionVote(type=current.type, frequency=current.frequency + 1)
        else:
            updated[key] = CorrectionVote(type=correction.corrected_type, frequency=1)
    return updated


def apply_corrections(
    entities: Sequence[Entity],
    lookup: Callable[[str], CorrectionVote | None],
    min_votes: int = 2,
    boost: float = 0.05,
) -> list[Entity]:
    """Retype and boost entities with enough corroborating votes.

    Entities with fewer than ``min_votes`` agreeing corrections are returned
    unchanged.
    """
    corrected: list[Entity] = []
    for entity in entities:
        vote = lookup(entity.key)
        if vote is not None and vote.frequency >= min_votes:
            logger.debug(
                "Feedback override '%s': %s -> %s (%d votes)",
                entity.text, entity.type, vote.type, vote.frequency,
            )
            entity = entity.model_copy(update={
                "type": vote.type,
                "confidence": min(entity.confidence + boost, MAX_CONFIDENCE),
            })
        corrected.append(entity)
    return corrected


def false_positive_rate(batch: FeedbackBatch) -> float | None:
    """Share of corrections flagged for deletion, None for an empty batch."""
    if not batch.corrections:
        return None
    return batch.deletions / len(batch.corrections)


def adjust_threshold(
    threshold: float, batch: FeedbackBatch, settings: FeedbackSettings,
) -> float:
    """Hysteresis step: tighten on many false positives, relax on few."""
    rate = false_positive_rate(batch)
    if rate is None:
        return threshold
    if rate > settings.raise_rate and threshold < settings.auto_ceiling:
        return round(min(threshold + settings.raise_step, settings.auto_ceiling), 4)
    if rate < settings.lower_rate and threshold > settings.auto_floor:
        return round(max(threshold - settings.lower_step, settings.auto_floor), 4)
    return threshold


def improvement_rate(batches: Sequence[FeedbackBatch], window: int = 10) -> float:
    """Fewer recent corrections per batch means a higher improvement rate."""
    recent = list(batches)[-window:] if window > 0 else []
    if not recent:
        return 1.0
    per_batch = sum(len(b.corrections) for b in recent) / len(recent)
    return max(0.0, min(1.0, 1.0 - per_batch / 10))
