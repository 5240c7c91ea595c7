"""Configuration — Pydantic Settings + YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"


class ExtractionSettings(BaseSettings):
    max_entity_gap: int = 100
    fallback_token_limit: int = 10
    fallback_chain_limit: int = 5
    sparse_relation_minimum: int = 3
    cooccurrence_window: int = 50
    include_cooccurrences: bool = False
    max_text_length: int = 100_000
    model_version: str = "pattern-ner-v1.0"


class FeedbackSettings(BaseSettings):
    default_threshold: float = Field(default=0.85, ge=0.5, le=0.99)
    min_votes: int = 2
    confidence_boost: float = 0.05
    # False-positive rate above raise_rate tightens, below lower_rate relaxes
    raise_rate: float = 0.3
    lower_rate: float = 0.1
    raise_step: float = 0.02
    lower_step: float = 0.01
    auto_ceiling: float = 0.95
    auto_floor: float = 0.75
    recent_window: int = 10


class StorageSettings(BaseSettings):
    db_path: str = "ctigraph.db"
    wal_mode: bool = True


class AISettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CTIGRAPH_AI_")

    enabled: bool = False
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    timeout: float = 60.0


class Settings(BaseSettings):
    """Root settings — merges defaults, YAML config, and env vars."""

    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    feedback: FeedbackSettings = Field(default_factory=FeedbackSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    ai: AISettings = Field(default_factory=AISettings)
    log_dir: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> Settings:
        """Load settings from YAML file, falling back to defaults."""
        data: dict[str, Any] = {}

        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
                if isinstance(raw, dict):
                    data = raw

        return cls(**data)
