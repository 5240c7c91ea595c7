"""ctigraph — knowledge-graph triples from cyber threat intelligence text."""

from __future__ import annotations

__version__ = "1.0.0"

from ctigraph.errors import (  # noqa: E402
    CtiGraphError,
    ExtractionFailure,
    FeedbackSubmissionError,
    InvalidInputError,
)
from ctigraph.extraction.pipeline import ExtractionPipeline  # noqa: E402
from ctigraph.feedback.store import FeedbackStore  # noqa: E402
from ctigraph.models.result import ExtractionResult  # noqa: E402

__all__ = [
    "CtiGraphError",
    "ExtractionFailure",
    "ExtractionPipeline",
    "ExtractionResult",
    "FeedbackStore",
    "FeedbackSubmissionError",
    "InvalidInputError",
    "__version__",
]
