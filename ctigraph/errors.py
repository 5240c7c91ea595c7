"""Error taxonomy for the extraction core."""

from __future__ import annotations


class CtiGraphError(Exception):
    """Base class for all ctigraph errors."""


class InvalidInputError(CtiGraphError):
    """Input text is missing, not a string, empty, or too long."""


class ExtractionFailure(CtiGraphError):
    """Internal failure while extracting — no partial result is returned."""


class CatalogError(ExtractionFailure):
    """Pattern catalog entry is malformed."""


class FeedbackSubmissionError(CtiGraphError):
    """Feedback batch is malformed and was not recorded."""
