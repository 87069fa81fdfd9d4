"""Async Claude client shared by the proofreading, style and rewriting providers."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

import anthropic
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from intellipen.utils.json_parser import extract_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"

# Only failures that a second attempt can plausibly fix
TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


@dataclass
class LLMResponse:
    text: str
    input_tokens: int
    output_tokens: int
    stop_reason: str | None = None


@dataclass
class UsageRecord:
    purpose: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMClient:
    """Thin AsyncAnthropic wrapper.

    Transient API errors (connection, rate limit, 5xx) are retried with
    exponential backoff up to ``max_retries`` attempts; anything else is
    raised on the first failure. Every successful call is logged against a
    ``purpose`` label so the CLI can report where tokens went.
    """

    retry_wait = wait_exponential(min=1, max=10)

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        model: str = DEFAULT_MODEL,
        max_retries: int = 3,
    ):
        kwargs: dict = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if timeout is not None:
            kwargs["timeout"] = timeout
        self.client = anthropic.AsyncAnthropic(**kwargs)
        self.model = model
        self.max_retries = max(1, max_retries)
        self._usage: list[UsageRecord] = []

    async def _create_message(self, **kwargs) -> anthropic.types.Message:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("Retrying Claude call (attempt %d)", attempt.retry_state.attempt_number)
                message = await self.client.messages.create(**kwargs)
        return message

    async def generate(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        purpose: str = "general",
    ) -> LLMResponse:
        model = model or self.model
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        logger.debug("Claude %s call: model=%s, prompt=%d chars", purpose, model, len(prompt))
        try:
            message = await self._create_message(**kwargs)
        except Exception:
            logger.error("Claude %s call failed", purpose, exc_info=True)
            raise

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        if message.stop_reason == "max_tokens":
            logger.warning("Claude %s reply truncated at %d tokens", purpose, max_tokens)

        usage = UsageRecord(
            purpose=purpose,
            model=model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
        )
        self._usage.append(usage)
        return LLMResponse(
            text=text,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            stop_reason=message.stop_reason,
        )

    async def generate_json(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        purpose: str = "general",
    ) -> dict | list:
        """Like ``generate`` but returns the JSON payload of the reply.

        Raises ValueError when no JSON can be recovered, even after closing
        brackets left open by a truncated reply.
        """
        response = await self.generate(
            prompt=prompt,
            system=system,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            purpose=purpose,
        )
        return extract_json(response.text)

    def get_token_summary(self, reset: bool = True) -> dict:
        by_purpose: dict[str, dict[str, int]] = defaultdict(lambda: {"input": 0, "output": 0, "calls": 0})
        for record in self._usage:
            bucket = by_purpose[record.purpose]
            bucket["input"] += record.input_tokens
            bucket["output"] += record.output_tokens
            bucket["calls"] += 1

        summary = {
            "input": sum(r.input_tokens for r in self._usage),
            "output": sum(r.output_tokens for r in self._usage),
            "calls": len(self._usage),
            "by_purpose": dict(by_purpose),
        }
        if reset:
            self._usage.clear()
        return summary
