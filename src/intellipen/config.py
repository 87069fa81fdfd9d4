"""Application configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass(frozen=True)
class LLMConfig:
    model: str = "claude-haiku-4-5-20251001"
    max_retries: int = 3
    timeout: int = 60


@dataclass(frozen=True)
class PipelineConfig:
    debounce_ms: int = 300
    max_queue_size: int = 10
    min_confidence: float = 0.3
    long_sentence_words: int = 25
    cache_size: int = 100


@dataclass(frozen=True)
class HistoryConfig:
    max_size: int = 50
    edit_debounce_ms: int = 500


@dataclass(frozen=True)
class LearningConfig:
    min_sample_size: int = 5
    decay_factor: float = 0.95
    session_window_seconds: int = 3600
    threshold: float = 0.3
    max_suggestions: int = 10


@dataclass(frozen=True)
class StoreConfig:
    db_path: str = "~/.intellipen/preferences.db"

    @property
    def resolved_db_path(self) -> Path:
        return Path(self.db_path).expanduser()


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    store: StoreConfig = field(default_factory=StoreConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        candidates = [
            Path.cwd() / "config.yaml",
            Path(__file__).resolve().parent.parent.parent / "config.yaml",
        ]
        for c in candidates:
            if c.exists():
                path = c
                break

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**raw.get("llm", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        history=HistoryConfig(**raw.get("history", {})),
        learning=LearningConfig(**raw.get("learning", {})),
        store=StoreConfig(**raw.get("store", {})),
    )
