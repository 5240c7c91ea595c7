"""Tests for CLI commands via typer.testing.CliRunner."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from ctigraph import __version__
from ctigraph.cli import app
from ctigraph.errors import ExtractionFailure
from ctigraph.extraction.pipeline import ExtractionPipeline

runner = CliRunner()


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"storage:\n  db_path: {tmp_path / 'ctigraph.db'}\n"
        f"log_dir: {tmp_path / 'logs'}\n"
        "log_level: WARNING\n"
    )
    return str(path)


def _batch_file(tmp_path, name, batch):
    path = tmp_path / name
    path.write_text(json.dumps(batch))
    return str(path)


class TestVersionCommand:
    def test_version_output(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "Usage" in result.output or "ctigraph" in result.output.lower()


class TestExtractCommand:
    def test_table_output(self, config):
        result = runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--config", config])
        assert result.exit_code == 0
        assert "APT28" in result.output
        assert "threat-actor" in result.output
        assert "uses" in result.output

    def test_json_output(self, config):
        result = runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--json", "--config", config])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [e["text"] for e in data["entities"]] == ["APT28", "Zebrocy"]
        assert data["metadata"]["extraction_method"] == "pattern"

    def test_from_file(self, tmp_path, config):
        src = tmp_path / "report.txt"
        src.write_text("Lazarus Group exploits CVE-2017-0199", encoding="utf-8")
        result = runner.invoke(app, ["extract", "--file", str(src), "--json", "--config", config])
        assert result.exit_code == 0
        assert "CVE-2017-0199" in result.output

    def test_output_file(self, tmp_path, config):
        out = tmp_path / "out" / "result.json"
        result = runner.invoke(
            app, ["extract", "APT28 uses Zebrocy", "-o", str(out), "--config", config],
        )
        assert result.exit_code == 0
        assert json.loads(out.read_text())["metadata"]["entities_found"] == 2

    def test_min_confidence(self, config):
        result = runner.invoke(app, [
            "extract", "APT28 uses Zebrocy", "--json", "--min-confidence", "0.999",
            "--config", config,
        ])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["entities"] == []
        assert data["relations"] == []

    def test_missing_text(self, config):
        result = runner.invoke(app, ["extract", "--config", config])
        assert result.exit_code == 1

    def test_empty_text(self, config):
        result = runner.invoke(app, ["extract", "   ", "--config", config])
        assert result.exit_code == 1
        assert "Invalid input" in result.output

    def test_extraction_failure_exit_code(self, config, monkeypatch):
        def fail(self, text):
            raise ExtractionFailure("Extraction failed: boom")

        monkeypatch.setattr(ExtractionPipeline, "process", fail)
        result = runner.invoke(app, ["extract", "APT28", "--config", config])
        assert result.exit_code == 2

    def test_ai_without_key_uses_regex_triples(self, config, monkeypatch):
        monkeypatch.delenv("CTIGRAPH_AI_API_KEY", raising=False)
        result = runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--ai", "--json",
                                     "--config", config])
        assert result.exit_code == 0
        assert '"model_version": "pattern-triples-v1"' in result.output

    def test_writes_audit_trail(self, tmp_path, config):
        runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--config", config])
        sessions = list((tmp_path / "logs").iterdir())
        assert len(sessions) == 1
        events = (sessions[0] / "events.jsonl").read_text(encoding="utf-8")
        assert "EXTRACTION_COMPLETED" in events


class TestFeedbackCommands:
    BATCH = {
        "extraction_id": "run-1",
        "corrections": [
            {"original_entity": {"text": "Zebrocy", "type": "malware"}, "corrected_type": "tool"},
        ],
    }

    def test_corroborated_feedback_changes_extraction(self, tmp_path, config):
        path = _batch_file(tmp_path, "batch.json", self.BATCH)
        for _ in range(2):
            result = runner.invoke(app, ["feedback", path, "--config", config])
            assert result.exit_code == 0
            assert "Recorded 1 corrections" in result.output

        result = runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--json", "--config", config])
        entities = {e["text"]: e["type"] for e in json.loads(result.output)["entities"]}
        assert entities["Zebrocy"] == "tool"

    def test_stats(self, tmp_path, config):
        runner.invoke(app, ["feedback", _batch_file(tmp_path, "b.json", self.BATCH),
                            "--config", config])
        result = runner.invoke(app, ["stats", "--config", config])
        assert result.exit_code == 0
        assert "Batches" in result.output
        assert "0.84" in result.output

    def test_stats_without_database(self, config):
        result = runner.invoke(app, ["stats", "--config", config])
        assert result.exit_code == 0
        assert "0.85" in result.output

    def test_malformed_batch(self, tmp_path, config):
        path = _batch_file(tmp_path, "bad.json", {"corrections": []})
        result = runner.invoke(app, ["feedback", path, "--config", config])
        assert result.exit_code == 1

    def test_unreadable_batch(self, tmp_path, config):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = runner.invoke(app, ["feedback", str(path), "--config", config])
        assert result.exit_code == 1


class TestGraphCommand:
    def test_store_then_graph(self, config):
        result = runner.invoke(app, ["extract", "APT28 uses Zebrocy", "--store",
                                     "--config", config])
        assert result.exit_code == 0

        result = runner.invoke(app, ["graph", "--json", "--config", config])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert {n["label"] for n in data["nodes"]} == {"APT28", "Zebrocy"}
        assert "uses" in {e["label"] for e in data["edges"]}

    def test_no_database(self, config):
        result = runner.invoke(app, ["graph", "--config", config])
        assert result.exit_code == 1


class TestPatternsCommand:
    def test_lists_patterns(self):
        result = runner.invoke(app, ["patterns"])
        assert result.exit_code == 0
        assert "Entity Patterns" in result.output
        assert "Relation Patterns" in result.output
