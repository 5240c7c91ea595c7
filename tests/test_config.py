"""Tests for Settings configuration loading."""

from ctigraph.config import (
    AISettings,
    ExtractionSettings,
    FeedbackSettings,
    Settings,
    StorageSettings,
)


class TestSettingsDefaults:
    def test_extraction_defaults(self):
        s = ExtractionSettings()
        assert s.max_entity_gap == 100
        assert s.fallback_token_limit == 10
        assert s.fallback_chain_limit == 5
        assert s.sparse_relation_minimum == 3
        assert s.include_cooccurrences is False
        assert s.model_version == "pattern-ner-v1.0"

    def test_feedback_defaults(self):
        s = FeedbackSettings()
        assert s.default_threshold == 0.85
        assert s.min_votes == 2
        assert s.auto_floor == 0.75
        assert s.auto_ceiling == 0.95

    def test_storage_defaults(self):
        s = StorageSettings()
        assert s.wal_mode is True
        assert s.db_path == "ctigraph.db"

    def test_ai_disabled_by_default(self):
        s = AISettings()
        assert s.enabled is False
        assert s.model == "gpt-4o-mini"

    def test_root_settings_defaults(self):
        s = Settings()
        assert isinstance(s.extraction, ExtractionSettings)
        assert isinstance(s.feedback, FeedbackSettings)
        assert s.log_dir is None
        assert s.log_level == "INFO"


class TestSettingsLoad:
    def test_load_default(self):
        s = Settings.load()
        assert isinstance(s, Settings)
        assert s.extraction.max_entity_gap == 100

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "test_config.yaml"
        config_file.write_text(
            "extraction:\n"
            "  max_entity_gap: 40\n"
            "  include_cooccurrences: true\n"
            "feedback:\n"
            "  default_threshold: 0.9\n"
        )
        s = Settings.load(config_file)
        assert s.extraction.max_entity_gap == 40
        assert s.extraction.include_cooccurrences is True
        assert s.feedback.default_threshold == 0.9

    def test_load_nonexistent_path(self, tmp_path):
        s = Settings.load(tmp_path / "nonexistent.yaml")
        assert s.extraction.max_entity_gap == 100

    def test_load_empty_yaml(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        s = Settings.load(config_file)
        assert isinstance(s, Settings)

    def test_load_partial_config(self, tmp_path):
        config_file = tmp_path / "partial.yaml"
        config_file.write_text("storage:\n  db_path: other.db\n")
        s = Settings.load(str(config_file))
        assert s.storage.db_path == "other.db"
        assert s.storage.wal_mode is True  # default

    def test_log_dir_is_path(self, tmp_path):
        config_file = tmp_path / "logs.yaml"
        config_file.write_text(f"log_dir: {tmp_path / 'audit'}\n")
        s = Settings.load(config_file)
        assert s.log_dir == tmp_path / "audit"
