"""User feedback — correction history and the confidence control loop."""

from ctigraph.feedback.models import (
    CorrectionVote,
    EntityRef,
    FeedbackBatch,
    FeedbackCorrection,
    FeedbackStats,
)
from ctigraph.feedback.store import FeedbackStore

__all__ = [
    "CorrectionVote",
    "EntityRef",
    "FeedbackBatch",
    "FeedbackCorrection",
    "FeedbackStats",
    "FeedbackStore",
]
