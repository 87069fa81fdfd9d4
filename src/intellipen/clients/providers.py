"""AI capability contracts and their Claude-backed implementations.

The pipeline and application manager depend only on the protocols below;
the ``Claude*`` classes implement them on top of :class:`LLMClient`.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from intellipen.clients.llm_client import LLMClient

logger = logging.getLogger(__name__)


class Correction(BaseModel):
    """One ranged correction returned by a grammar provider."""

    model_config = ConfigDict(populate_by_name=True)

    start_index: int = Field(alias="startIndex")
    end_index: int = Field(alias="endIndex")
    replacement: str
    explanation: str = ""


class ProofreadResult(BaseModel):
    corrections: list[Correction] = Field(default_factory=list)


@runtime_checkable
class GrammarProvider(Protocol):
    async def proofread(self, text: str) -> ProofreadResult | dict: ...


@runtime_checkable
class StyleProvider(Protocol):
    async def write(self, prompt: str, context: str = "") -> str: ...


@runtime_checkable
class RewriterSession(Protocol):
    async def rewrite(self, segment: str, options: dict) -> str: ...

    def destroy(self) -> None: ...


@runtime_checkable
class RewriterCapability(Protocol):
    async def create(self, options: dict) -> RewriterSession: ...


PROOFREAD_SYSTEM = """\
You are a meticulous proofreader. Find spelling, grammar and punctuation
errors in the user's text. Do not rewrite for style.

Respond with JSON only:
{"corrections": [{"original": "exact erroneous span copied from the text",
  "replacement": "corrected span", "explanation": "short reason"}]}

List corrections in the order they appear. Return {"corrections": []} when
the text is correct."""

WRITER_SYSTEM = """\
You are a writing assistant that reviews text for style, clarity, tone and
word choice. Follow the output format you are given exactly and do not add
any other commentary."""

REWRITE_SYSTEM = """\
You rewrite a passage according to the instructions given. Preserve the
meaning and the language of the passage. Reply with the rewritten passage
only, without quotes or commentary."""

TONE_INSTRUCTIONS = {
    "more-formal": "Make the tone more formal.",
    "more-casual": "Make the tone more casual.",
    "as-is": "Keep the tone as it is.",
}

LENGTH_INSTRUCTIONS = {
    "shorter": "Make it shorter and more concise.",
    "longer": "Expand it with a little more detail.",
    "as-is": "Keep roughly the same length.",
}


class ClaudeProofreader:
    """Grammar provider backed by Claude.

    The model is asked for the erroneous spans verbatim; character offsets
    are then located in the text here, left to right, so they are exact.
    """

    def __init__(self, llm: LLMClient, model: str | None = None):
        self.llm = llm
        self.model = model

    async def proofread(self, text: str) -> ProofreadResult:
        data = await self.llm.generate_json(
            prompt=f"Proofread this text:\n\n{text}",
            system=PROOFREAD_SYSTEM,
            model=self.model,
            purpose="proofread",
        )
        items = data.get("corrections", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            return ProofreadResult()

        corrections = []
        cursor = 0
        for item in items:
            if not isinstance(item, dict) or not item.get("original"):
                continue
            original = str(item["original"])
            start = text.find(original, cursor)
            if start == -1:
                start = text.find(original)
            if start == -1:
                logger.debug("Proofreader span not found in text: %r", original)
                continue
            end = start + len(original)
            cursor = end
            corrections.append(
                Correction(
                    start_index=start,
                    end_index=end,
                    replacement=str(item.get("replacement", "")),
                    explanation=str(item.get("explanation", "")),
                )
            )
        return ProofreadResult(corrections=corrections)


class ClaudeWriter:
    """Style provider backed by Claude."""

    def __init__(self, llm: LLMClient, model: str | None = None):
        self.llm = llm
        self.model = model

    async def write(self, prompt: str, context: str = "") -> str:
        system = WRITER_SYSTEM + (f"\n\nContext: {context}" if context else "")
        response = await self.llm.generate(prompt=prompt, system=system, model=self.model, purpose="style")
        return response.text


class ClaudeRewriterSession:
    def __init__(self, llm: LLMClient, options: dict, model: str | None = None):
        self.llm = llm
        self.options = dict(options)
        self.model = model
        self.closed = False

    async def rewrite(self, segment: str, options: dict) -> str:
        if self.closed:
            raise RuntimeError("Rewriter session has been destroyed")
        merged = {**self.options, **{k: v for k, v in options.items() if v}}

        instructions = [
            TONE_INSTRUCTIONS.get(merged.get("tone", "as-is"), ""),
            LENGTH_INSTRUCTIONS.get(merged.get("length", "as-is"), ""),
        ]
        if merged.get("shared_context"):
            instructions.append(f"Background: {merged['shared_context']}")
        if merged.get("context"):
            instructions.append(f"Goal: {merged['context']}")

        prompt = "\n".join(i for i in instructions if i) + f"\n\nPassage:\n{segment}"
        response = await self.llm.generate(
            prompt=prompt, system=REWRITE_SYSTEM, model=self.model, purpose="rewrite",
        )
        return _strip_wrapping_quotes(response.text.strip())

    def destroy(self) -> None:
        self.closed = True


class ClaudeRewriter:
    """Rewriting capability backed by Claude."""

    def __init__(self, llm: LLMClient, model: str | None = None):
        self.llm = llm
        self.model = model

    async def create(self, options: dict) -> ClaudeRewriterSession:
        return ClaudeRewriterSession(self.llm, options, model=self.model)


def _strip_wrapping_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return text[1:-1]
    return text
