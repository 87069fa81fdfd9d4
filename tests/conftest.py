"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from intellipen.clients.llm_client import LLMClient, LLMResponse
from intellipen.clients.providers import (
    ClaudeProofreader,
    ClaudeRewriter,
    ClaudeRewriterSession,
    ClaudeWriter,
    ProofreadResult,
)
from intellipen.learning.preference_learning import UserPreferenceLearning
from intellipen.learning.store import MemoryStore
from intellipen.models.suggestion import Suggestion, TextRange
from intellipen.text_source import InMemoryTextSource

# 2026-03-02 10:00:00 UTC
FIXED_NOW = 1772445600.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = FIXED_NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_text() -> str:
    return "this is a test. Their going to the store tomorow."


@pytest.fixture
def make_suggestion():
    """Factory for suggestions; ``original`` is sliced from ``text`` when given."""

    def _make(
        start: int = 0,
        end: int = 4,
        replacement: str = "This",
        *,
        text: str | None = None,
        original: str = "",
        type: str = "grammar",
        confidence: float = 0.9,
        severity: str = "error",
        explanation: str = "",
    ) -> Suggestion:
        if text is not None:
            original = text[start:end]
        return Suggestion(
            type=type,
            range=TextRange(start=start, end=end),
            original=original,
            replacement=replacement,
            confidence=confidence,
            explanation=explanation,
            severity=severity,
        )

    return _make


@pytest.fixture
def text_source(sample_text) -> InMemoryTextSource:
    return InMemoryTextSource(sample_text, platform="mail.example.org", kind="textarea")


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Create a mock LLM client."""
    client = AsyncMock(spec=LLMClient)
    client.generate = AsyncMock(
        return_value=LLMResponse(text="{}", input_tokens=100, output_tokens=50)
    )
    client.generate_json = AsyncMock(return_value={})
    return client


@pytest.fixture
def mock_grammar() -> ClaudeProofreader:
    """Grammar provider that finds nothing."""
    provider = AsyncMock(spec=ClaudeProofreader)
    provider.proofread = AsyncMock(return_value=ProofreadResult())
    return provider


@pytest.fixture
def mock_style() -> ClaudeWriter:
    """Style provider that suggests nothing."""
    provider = AsyncMock(spec=ClaudeWriter)
    provider.write = AsyncMock(return_value="")
    return provider


@pytest.fixture
def mock_rewriter_session() -> ClaudeRewriterSession:
    session = MagicMock(spec=ClaudeRewriterSession)
    session.rewrite = AsyncMock(return_value="REWRITTEN")
    return session


@pytest.fixture
def mock_rewriter(mock_rewriter_session) -> ClaudeRewriter:
    rewriter = AsyncMock(spec=ClaudeRewriter)
    rewriter.create = AsyncMock(return_value=mock_rewriter_session)
    return rewriter


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def learning(memory_store, clock) -> UserPreferenceLearning:
    return UserPreferenceLearning(memory_store, clock=clock)
