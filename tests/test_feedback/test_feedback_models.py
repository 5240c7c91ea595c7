"""Tests for feedback data models."""

import pytest
from pydantic import ValidationError

from ctigraph.errors import FeedbackSubmissionError
from ctigraph.feedback.models import EntityRef, FeedbackBatch, FeedbackCorrection
from ctigraph.models.types import EntityType


class TestEntityRef:
    def test_type_parsed(self):
        ref = EntityRef(text="Zebrocy", type="Malware")
        assert ref.type is EntityType.MALWARE
        assert ref.key == "zebrocy"

    def test_unknown_type(self):
        assert EntityRef(text="x", type="gizmo").type is EntityType.UNKNOWN

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_rejected(self, text):
        with pytest.raises(ValidationError):
            EntityRef(text=text)


class TestFeedbackCorrection:
    def test_retype(self):
        c = FeedbackCorrection(original_entity=EntityRef(text="x"), corrected_type="tool")
        assert c.is_retype
        assert c.has_action

    def test_empty_corrected_type_is_none(self):
        c = FeedbackCorrection(original_entity=EntityRef(text="x"), corrected_type="")
        assert c.corrected_type is None
        assert not c.has_action

    def test_delete_is_not_retype(self):
        c = FeedbackCorrection(
            original_entity=EntityRef(text="x"), corrected_type="tool", should_delete=True,
        )
        assert not c.is_retype
        assert c.has_action

    def test_rename_only(self):
        c = FeedbackCorrection(original_entity=EntityRef(text="x"), corrected_text="y")
        assert c.has_action
        assert not c.is_retype


class TestFeedbackBatch:
    def test_from_dict(self):
        batch = FeedbackBatch.from_dict({
            "extraction_id": "run-1",
            "user_id": "analyst",
            "corrections": [
                {"original_entity": {"text": "a"}, "should_delete": True},
                {"original_entity": {"text": "b"}, "corrected_type": "tool"},
            ],
        })
        assert batch.deletions == 1
        assert batch.timestamp.tzinfo is not None

    def test_from_dict_missing_id(self):
        with pytest.raises(FeedbackSubmissionError):
            FeedbackBatch.from_dict({"corrections": []})

    def test_from_dict_not_a_dict(self):
        with pytest.raises(FeedbackSubmissionError):
            FeedbackBatch.from_dict(["nope"])

    def test_from_dict_bad_correction(self):
        with pytest.raises(FeedbackSubmissionError):
            FeedbackBatch.from_dict({
                "extraction_id": "x",
                "corrections": [{"original_entity": {"text": ""}}],
            })
