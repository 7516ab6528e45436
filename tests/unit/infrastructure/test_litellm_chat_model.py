"""
Unit Tests for LiteLLMChatModel

litellm.acompletion is patched; no provider is contacted.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest
from pydantic import BaseModel, ValidationError

from webpilot.core.domain.errors import (
    ChatModelAuthError,
    ChatModelBadRequestError,
)
from webpilot.infrastructure.llm.litellm_chat_model import (
    LiteLLMChatModel,
    LLMConfig,
    RetryPolicy,
    _strip_code_fence,
)

ACOMPLETION = "webpilot.infrastructure.llm.litellm_chat_model.litellm.acompletion"


class Answer(BaseModel):
    value: int


class RateLimitError(Exception):
    pass


def completion(content: str):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=12),
    )


@pytest.fixture
def config():
    return LLMConfig(
        models={"main": "gpt-4.1", "fast": "gpt-4.1-mini"},
        model_params={"gpt-4.1": {"temperature": 0.1, "max_tokens": 4000, "seed": 7}},
        default_params={"temperature": 0.5},
        retry_policy=RetryPolicy(max_attempts=3, retry_on_errors=["RateLimitError"]),
    )


@pytest.fixture
def no_sleep():
    with patch("webpilot.infrastructure.llm.litellm_chat_model.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestConfiguration:
    def test_alias_resolution(self, config):
        assert LiteLLMChatModel(config).model == "gpt-4.1"
        assert LiteLLMChatModel(config, "fast").model == "gpt-4.1-mini"
        assert LiteLLMChatModel(config, "claude-sonnet").model == "claude-sonnet"

    def test_parameters_filtered_and_prefix_matched(self, config):
        assert LiteLLMChatModel(config).params == {"temperature": 0.1, "max_tokens": 4000}
        # gpt-4.1-mini falls back to the gpt-4.1 family entry
        assert LiteLLMChatModel(config, "fast").params == {"temperature": 0.1, "max_tokens": 4000}
        assert LiteLLMChatModel(config, "other").params == {"temperature": 0.5}

    def test_from_file(self, tmp_path):
        path = tmp_path / "llm.yaml"
        path.write_text(
            "default_model: fast\n"
            "models:\n  fast: gpt-4.1-mini\n"
            "retry_policy:\n  max_attempts: 5\n"
            "providers:\n  openai:\n    api_key_env: MY_KEY\n",
            encoding="utf-8",
        )

        config = LLMConfig.from_file(path)

        assert config.default_model == "fast"
        assert config.retry_policy.max_attempts == 5
        assert config.api_key_env == "MY_KEY"
        assert LiteLLMChatModel(config).model == "gpt-4.1-mini"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LLMConfig.from_file(tmp_path / "absent.yaml")

    def test_config_without_models_rejected(self, tmp_path):
        path = tmp_path / "llm.yaml"
        path.write_text("default_model: main\n", encoding="utf-8")
        with pytest.raises(ValueError, match="at least one model"):
            LLMConfig.from_file(path)


class TestInvoke:
    @pytest.mark.asyncio
    async def test_parses_structured_output(self, config):
        with patch(ACOMPLETION, new=AsyncMock(return_value=completion('{"value": 3}'))) as acompletion:
            result = await LiteLLMChatModel(config).invoke([{"role": "user", "content": "hi"}], Answer)

        assert result == Answer(value=3)
        kwargs = acompletion.await_args.kwargs
        assert kwargs["model"] == "gpt-4.1"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "user", "content": "hi"}
        assert '"value"' in kwargs["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_code_fence_stripped(self, config):
        with patch(ACOMPLETION, new=AsyncMock(return_value=completion('```json\n{"value": 1}\n```'))):
            result = await LiteLLMChatModel(config).invoke([], Answer)
        assert result.value == 1

    @pytest.mark.asyncio
    async def test_invalid_output_raises_validation_error(self, config):
        with patch(ACOMPLETION, new=AsyncMock(return_value=completion('{"value": "many"}'))):
            with pytest.raises(ValidationError):
                await LiteLLMChatModel(config).invoke([], Answer)


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_authentication_error_is_fatal(self, config):
        error = litellm.AuthenticationError(message="bad key", llm_provider="openai", model="gpt-4.1")
        with patch(ACOMPLETION, new=AsyncMock(side_effect=error)) as acompletion:
            with pytest.raises(ChatModelAuthError):
                await LiteLLMChatModel(config).invoke([], Answer)
        assert acompletion.await_count == 1

    @pytest.mark.asyncio
    async def test_bad_request_is_fatal(self, config):
        error = litellm.BadRequestError(message="too long", model="gpt-4.1", llm_provider="openai")
        with patch(ACOMPLETION, new=AsyncMock(side_effect=error)):
            with pytest.raises(ChatModelBadRequestError):
                await LiteLLMChatModel(config).invoke([], Answer)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, config):
        with patch(ACOMPLETION, new=AsyncMock(side_effect=asyncio.CancelledError())) as acompletion:
            with pytest.raises(asyncio.CancelledError):
                await LiteLLMChatModel(config).invoke([], Answer)
        assert acompletion.await_count == 1

    @pytest.mark.asyncio
    async def test_wait_for_timeout_surfaces(self, config):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        with patch(ACOMPLETION, new=hang):
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(LiteLLMChatModel(config).invoke([], Answer), 0.01)

    @pytest.mark.asyncio
    async def test_retryable_error_retried_with_backoff(self, config, no_sleep):
        responses = [RateLimitError("slow down"), completion('{"value": 2}')]
        with patch(ACOMPLETION, new=AsyncMock(side_effect=responses)) as acompletion:
            result = await LiteLLMChatModel(config).invoke([], Answer)

        assert result.value == 2
        assert acompletion.await_count == 2
        no_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, config, no_sleep):
        with patch(ACOMPLETION, new=AsyncMock(side_effect=RateLimitError("slow down"))) as acompletion:
            with pytest.raises(RateLimitError):
                await LiteLLMChatModel(config).invoke([], Answer)
        assert acompletion.await_count == 3

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self, config, no_sleep):
        with patch(ACOMPLETION, new=AsyncMock(side_effect=KeyError("choices"))) as acompletion:
            with pytest.raises(KeyError):
                await LiteLLMChatModel(config).invoke([], Answer)
        assert acompletion.await_count == 1
        no_sleep.assert_not_awaited()


@pytest.mark.parametrize(
    "content, expected",
    [
        ('{"a": 1}', '{"a": 1}'),
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}```', '{"a": 1}'),
        ("  ```", ""),
    ],
)
def test_strip_code_fence(content, expected):
    assert _strip_code_fence(content) == expected
