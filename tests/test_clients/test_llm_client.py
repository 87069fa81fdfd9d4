"""Tests for LLMClient (Claude API wrapper)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest
from tenacity import wait_none

from intellipen.clients.llm_client import LLMClient, LLMResponse


def _make_api_message(
    text: str,
    input_tokens: int = 100,
    output_tokens: int = 50,
    stop_reason: str = "end_turn",
) -> MagicMock:
    """Build a mock anthropic Message-like object with one text block."""
    message = MagicMock()
    message.usage.input_tokens = input_tokens
    message.usage.output_tokens = output_tokens
    message.stop_reason = stop_reason
    message.content = [MagicMock(type="text", text=text)]
    return message


def _connection_error() -> anthropic.APIConnectionError:
    return anthropic.APIConnectionError(
        request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    )


@pytest.fixture
def api():
    """Patch AsyncAnthropic and hand back the fake ``messages.create``."""
    with patch("intellipen.clients.llm_client.anthropic.AsyncAnthropic") as mock_cls:
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=_make_api_message("ok"))
        mock_cls.return_value = client
        yield client.messages.create


@pytest.fixture
def llm(api) -> LLMClient:
    client = LLMClient(model="test-model")
    client.retry_wait = wait_none()
    return client


class TestLLMClientInit:
    @pytest.mark.parametrize(
        "kwargs, expected",
        [
            ({}, {}),
            ({"api_key": "k"}, {"api_key": "k"}),
            ({"timeout": 30.0}, {"timeout": 30.0}),
            ({"api_key": "k", "timeout": 30.0, "model": "m"}, {"api_key": "k", "timeout": 30.0}),
        ],
    )
    def test_sdk_kwargs(self, kwargs, expected):
        with patch("intellipen.clients.llm_client.anthropic.AsyncAnthropic") as mock_cls:
            LLMClient(**kwargs)
            mock_cls.assert_called_once_with(**expected)

    def test_at_least_one_attempt(self, api):
        assert LLMClient(max_retries=0).max_retries == 1


class TestLLMClientGenerate:
    @pytest.mark.asyncio
    async def test_request_shape(self, api, llm):
        await llm.generate("check this", system="be strict", temperature=0.2, max_tokens=300)

        kwargs = api.call_args.kwargs
        assert kwargs == {
            "model": "test-model",
            "max_tokens": 300,
            "temperature": 0.2,
            "messages": [{"role": "user", "content": "check this"}],
            "system": "be strict",
        }

    @pytest.mark.asyncio
    async def test_empty_system_prompt_omitted(self, api, llm):
        await llm.generate("check this", model="other-model")

        assert "system" not in api.call_args.kwargs
        assert api.call_args.kwargs["model"] == "other-model"

    @pytest.mark.asyncio
    async def test_joins_text_blocks_only(self, api, llm):
        message = _make_api_message("Hello ")
        message.content.append(MagicMock(type="tool_use"))
        message.content.append(MagicMock(type="text", text="world"))
        api.return_value = message

        result = await llm.generate("prompt")

        assert isinstance(result, LLMResponse)
        assert result.text == "Hello world"
        assert (result.input_tokens, result.output_tokens) == (100, 50)
        assert result.stop_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_truncated_reply_still_returned(self, api, llm):
        api.return_value = _make_api_message('{"a": [1,', stop_reason="max_tokens")

        result = await llm.generate("prompt")

        assert result.stop_reason == "max_tokens"
        assert result.text == '{"a": [1,'


class TestLLMClientRetry:
    @pytest.mark.asyncio
    async def test_transient_error_retried(self, api, llm):
        api.side_effect = [_connection_error(), _make_api_message("recovered")]

        result = await llm.generate("prompt")

        assert result.text == "recovered"
        assert api.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, api, llm):
        api.side_effect = _connection_error()

        with pytest.raises(anthropic.APIConnectionError):
            await llm.generate("prompt")

        assert api.await_count == 3
        assert llm.get_token_summary()["calls"] == 0

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, api, llm):
        api.side_effect = ValueError("bad request body")

        with pytest.raises(ValueError):
            await llm.generate("prompt")

        assert api.await_count == 1


class TestLLMClientGenerateJson:
    @pytest.mark.asyncio
    async def test_parses_fenced_json(self, api, llm):
        api.return_value = _make_api_message('```json\n{"corrections": []}\n```')

        assert await llm.generate_json("give me json") == {"corrections": []}

    @pytest.mark.asyncio
    async def test_raises_on_non_json_response(self, api, llm):
        api.return_value = _make_api_message("this is plain text, not json")

        with pytest.raises(ValueError):
            await llm.generate_json("give me json")


class TestLLMClientTokenSummary:
    @pytest.mark.asyncio
    async def test_grouped_by_purpose(self, api, llm):
        api.return_value = _make_api_message("{}", input_tokens=10, output_tokens=5)
        await llm.generate("a", purpose="proofread")
        await llm.generate_json("b", purpose="proofread")
        await llm.generate("c", purpose="rewrite")

        summary = llm.get_token_summary()

        assert summary["input"] == 30
        assert summary["output"] == 15
        assert summary["calls"] == 3
        assert summary["by_purpose"] == {
            "proofread": {"input": 20, "output": 10, "calls": 2},
            "rewrite": {"input": 10, "output": 5, "calls": 1},
        }

    @pytest.mark.asyncio
    async def test_reset(self, api, llm):
        await llm.generate("a")

        assert llm.get_token_summary(reset=False)["calls"] == 1
        assert llm.get_token_summary()["calls"] == 1
        assert llm.get_token_summary() == {"input": 0, "output": 0, "calls": 0, "by_purpose": {}}
