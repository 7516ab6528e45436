"""
LiteLLM Chat Model

Structured-output ChatModel backed by litellm. Model aliases, per-model
parameters and the retry policy come from a YAML configuration file:

    default_model: main
    models:
      main: gpt-4.1
      fast: gpt-4.1-mini
    model_params:
      gpt-4.1: {temperature: 0.1, max_tokens: 4000}
    default_params: {temperature: 0.2, max_tokens: 2000}
    retry_policy:
      max_attempts: 3
      backoff_multiplier: 2.0
      timeout: 60
      retry_on_errors: [RateLimitError, Timeout, APIConnectionError]

Provider failures are translated into the domain's fatal error types; any
other exception is re-raised unchanged so the caller may retry it.
asyncio.CancelledError is never caught: task cancellation and timeouts
reach the host as-is, cooperative stop goes through the CancellationToken.
"""

import asyncio
import json
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import litellm
import structlog
import yaml
from pydantic import ValidationError

from webpilot.core.domain.errors import (
    LLM_FORBIDDEN_ERROR_MESSAGE,
    ChatModelAuthError,
    ChatModelBadRequestError,
    ChatModelForbiddenError,
)
from webpilot.core.interfaces.llm import SchemaT

ALLOWED_PARAMS = ("temperature", "top_p", "max_tokens", "frequency_penalty", "presence_penalty")

SCHEMA_INSTRUCTION = (
    "Respond with a single JSON object that validates against this JSON schema. "
    "Do not wrap it in markdown.\n{schema}"
)


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 3
    backoff_multiplier: float = 2.0
    timeout: int = 60
    retry_on_errors: list[str] = field(default_factory=list)


@dataclass
class LLMConfig:
    """Parsed contents of the LLM YAML configuration."""

    default_model: str = "main"
    models: dict[str, str] = field(default_factory=dict)
    model_params: dict[str, dict[str, Any]] = field(default_factory=dict)
    default_params: dict[str, Any] = field(default_factory=dict)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    api_key_env: str = "OPENAI_API_KEY"

    @classmethod
    def from_file(cls, config_path: str | Path) -> "LLMConfig":
        """
        Load and validate configuration from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is empty or defines no models
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"LLM config not found: {config_path}")

        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is None:
            raise ValueError(f"Config file is empty or invalid: {config_path}")

        models = config.get("models", {})
        if not models:
            raise ValueError("Config must define at least one model in 'models' section")

        retry_config = config.get("retry_policy", {})
        return cls(
            default_model=config.get("default_model", "main"),
            models=models,
            model_params=config.get("model_params", {}),
            default_params=config.get("default_params", {}),
            retry_policy=RetryPolicy(
                max_attempts=retry_config.get("max_attempts", 3),
                backoff_multiplier=retry_config.get("backoff_multiplier", 2.0),
                timeout=retry_config.get("timeout", 60),
                retry_on_errors=retry_config.get("retry_on_errors", []),
            ),
            api_key_env=config.get("providers", {})
            .get("openai", {})
            .get("api_key_env", "OPENAI_API_KEY"),
        )


class LiteLLMChatModel:
    """
    ChatModel implementation using `litellm.acompletion` in JSON mode.

    Args:
        config: Parsed LLM configuration
        model_alias: Alias from `config.models` (or a literal model name);
            None selects `config.default_model`
    """

    def __init__(self, config: LLMConfig, model_alias: str | None = None):
        self.config = config
        self.model = self._resolve_model(model_alias)
        self.params = self._get_model_parameters(self.model)
        self.logger = structlog.get_logger().bind(component="chat_model", model=self.model)

        if not os.getenv(config.api_key_env):
            self.logger.warning(
                "api_key_missing",
                env_var=config.api_key_env,
                hint="Set environment variable for API access",
            )

    @classmethod
    def from_config_file(
        cls, config_path: str | Path, model_alias: str | None = None
    ) -> "LiteLLMChatModel":
        return cls(LLMConfig.from_file(config_path), model_alias)

    def _resolve_model(self, model_alias: str | None) -> str:
        alias = model_alias or self.config.default_model
        return self.config.models.get(alias, alias)

    def _get_model_parameters(self, model: str) -> dict[str, Any]:
        """Exact match first, then model-family prefix, then defaults."""
        params = self.config.model_params.get(model)
        if params is None:
            params = next(
                (p for key, p in self.config.model_params.items() if model.startswith(key)),
                self.config.default_params,
            )
        return {k: v for k, v in params.items() if k in ALLOWED_PARAMS}

    async def invoke(
        self,
        messages: list[dict[str, Any]],
        response_schema: type[SchemaT],
    ) -> SchemaT:
        """
        Run one completion and parse it into response_schema.

        Raises:
            ChatModelAuthError, ChatModelBadRequestError, ChatModelForbiddenError:
                Provider rejected the request
            pydantic.ValidationError: Model output did not match the schema
        """
        request = list(messages) + [
            {
                "role": "system",
                "content": SCHEMA_INSTRUCTION.format(
                    schema=json.dumps(response_schema.model_json_schema())
                ),
            }
        ]
        content = await self._complete(request)
        try:
            return response_schema.model_validate_json(_strip_code_fence(content))
        except ValidationError as e:
            self.logger.error(
                "llm_output_invalid",
                schema=response_schema.__name__,
                error=str(e)[:200],
                content=content[:200],
            )
            raise

    async def _complete(self, messages: list[dict[str, Any]]) -> str:
        policy = self.config.retry_policy
        attempts = max(1, policy.max_attempts)

        for attempt in range(attempts):
            try:
                start_time = time.time()
                self.logger.debug(
                    "llm_completion_started", attempt=attempt + 1, message_count=len(messages)
                )
                response = await litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    timeout=policy.timeout,
                    response_format={"type": "json_object"},
                    **self.params,
                )
                content = response.choices[0].message.content or ""
                usage = getattr(response, "usage", None)
                self.logger.info(
                    "llm_completion_success",
                    tokens=getattr(usage, "total_tokens", 0) if usage else 0,
                    latency_ms=int((time.time() - start_time) * 1000),
                )
                return content

            except litellm.AuthenticationError as e:
                raise ChatModelAuthError(str(e), e) from e
            except litellm.PermissionDeniedError as e:
                raise ChatModelForbiddenError(LLM_FORBIDDEN_ERROR_MESSAGE, e) from e
            except litellm.BadRequestError as e:
                raise ChatModelBadRequestError(str(e), e) from e
            except Exception as e:
                error_type = type(e).__name__
                should_retry = attempt < attempts - 1 and any(
                    name in error_type or name in str(e) for name in policy.retry_on_errors
                )
                if not should_retry:
                    self.logger.error(
                        "llm_completion_failed",
                        error_type=error_type,
                        error=str(e)[:200],
                        attempts=attempt + 1,
                    )
                    raise

                backoff_time = policy.backoff_multiplier**attempt
                self.logger.warning(
                    "llm_completion_retry",
                    error_type=error_type,
                    attempt=attempt + 1,
                    backoff_seconds=backoff_time,
                )
                await asyncio.sleep(backoff_time)

        raise RuntimeError("LLM retry loop exited without a result")


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
