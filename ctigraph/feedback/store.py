"""Process-wide feedback state — correction history, votes, threshold."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from ctigraph.config import FeedbackSettings
from ctigraph.errors import FeedbackSubmissionError
from ctigraph.events.bus import EventBus, EventType
from ctigraph.feedback.corrector import adjust_threshold, improvement_rate, tally_votes
from ctigraph.feedback.models import CorrectionVote, FeedbackBatch, FeedbackStats
from ctigraph.models.entity import normalize_text

logger = logging.getLogger(__name__)

MIN_THRESHOLD = 0.5
MAX_THRESHOLD = 0.99


class FeedbackStore:
    """Append-only correction history shared by all extraction runs.

    Writers serialize on a lock. Readers use the last published vote
    snapshot without locking, so a concurrent ``submit`` is either fully
    visible or not at all.
    """

    def __init__(
        self, settings: FeedbackSettings | None = None, bus: EventBus | None = None,
    ) -> None:
        self.settings = settings or FeedbackSettings()
        self._bus = bus
        self._lock = threading.Lock()
        self._history: list[FeedbackBatch] = []
        self._votes: Mapping[str, CorrectionVote] = MappingProxyType({})
        self._threshold = self.settings.default_threshold

    # --- Writes ---

    def submit(self, batch: FeedbackBatch | dict[str, Any]) -> FeedbackBatch:
        """Validate and record a batch, then re-tune the threshold."""
        batch = self._validate(batch)
        with self._lock:
            old, new = self._record(batch)

        logger.info(
            "Feedback recorded for %s: %d corrections (%d deletions)",
            batch.extraction_id, len(batch.corrections), batch.deletions,
        )
        self._emit(EventType.FEEDBACK_SUBMITTED, {
            "extraction_id": batch.extraction_id,
            "corrections": len(batch.corrections),
            "deletions": batch.deletions,
            "user_id": batch.user_id,
        })
        if new != old:
            logger.info("Adjusted confidence threshold %.2f -> %.2f", old, new)
            self._emit(EventType.THRESHOLD_ADJUSTED, {"old": old, "new": new})
        return batch

    def restore(self, batches: Iterable[FeedbackBatch]) -> int:
        """Replay persisted batches in order. Returns how many were applied."""
        count = 0
        with self._lock:
            for batch in batches:
                self._record(batch)
                count += 1
        logger.info("Restored %d feedback batches (threshold %.2f)", count, self._threshold)
        return count

    def _record(self, batch: FeedbackBatch) -> tuple[float, float]:
        self._history.append(batch)
        self._votes = MappingProxyType(tally_votes(self._votes, batch))
        old = self._threshold
        self._threshold = adjust_threshold(old, batch, self.settings)
        return old, self._threshold

    @staticmethod
    def _validate(batch: FeedbackBatch | dict[str, Any]) -> FeedbackBatch:
        if isinstance(batch, dict):
            batch = FeedbackBatch.from_dict(batch)
        if not isinstance(batch, FeedbackBatch):
            raise FeedbackSubmissionError(
                f"Expected a feedback batch, got {type(batch).__name__}"
            )
        if not batch.extraction_id.strip():
            raise FeedbackSubmissionError("Feedback batch is missing extraction_id")
        for i, correction in enumerate(batch.corrections):
            if not correction.has_action:
                raise FeedbackSubmissionError(
                    f"Correction #{i} ('{correction.original_entity.text}') "
                    "changes nothing: set corrected_type, corrected_text or should_delete"
                )
        return batch

    # --- Reads ---

    def corrections_for(self, text: str) -> CorrectionVote | None:
        """Current vote for an entity text (normalized here if needed)."""
        return self._votes.get(normalize_text(text))

    def snapshot(self) -> Mapping[str, CorrectionVote]:
        return self._votes

    @property
    def history(self) -> tuple[FeedbackBatch, ...]:
        return tuple(self._history)

    @property
    def confidence_threshold(self) -> float:
        return self._threshold

    def set_confidence_threshold(self, threshold: float) -> float:
        """Manually set the threshold, clamped to [0.5, 0.99]."""
        with self._lock:
            self._threshold = max(MIN_THRESHOLD, min(threshold, MAX_THRESHOLD))
            return self._threshold

    def stats(self) -> FeedbackStats:
        history = self.history
        return FeedbackStats(
            total_feedback=len(history),
            total_corrections=sum(len(b.corrections) for b in history),
            improvement_rate=improvement_rate(history, self.settings.recent_window),
        )

    def _emit(self, event_type: EventType, data: dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.publish(event_type, data)
