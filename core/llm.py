"""
Model client abstraction supporting Claude (Anthropic) and OpenAI.

Both clients expose the same two calls:

    response = await client.chat(system_prompt, user_prompt)
    response = await client.chat_with_tools(system_prompt, user_prompt, tools)

``chat_with_tools`` only advertises the tools; proposed calls come back in
``response.tool_calls`` and executing them is the caller's job.

Usage:
    from core.llm import create_model_client, ModelConfig, LLMProvider

    client = create_model_client(ModelConfig(), api_key="...")
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import ConfigurationError, ModelApiError
from .logging import get_logger
from .types import ModelResponse, ToolCall

logger = get_logger(__name__)


class LLMProvider(Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.OPENAI: "gpt-4o",
}


def get_default_model(provider: LLMProvider) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS[LLMProvider.ANTHROPIC])


@dataclass(frozen=True)
class ModelConfig:
    """Settings for model calls.

    Low temperature keeps the JSON-structured answers the pipeline parses
    close to deterministic.
    """
    provider: LLMProvider = LLMProvider.ANTHROPIC
    model: str = DEFAULT_MODELS[LLMProvider.ANTHROPIC]
    max_tokens: int = 4000
    temperature: float = 0.1


class AnthropicModelClient:
    """Wrapper for Anthropic's Messages API."""

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[ModelConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is required")
        from anthropic import AsyncAnthropic

        kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if http_client is not None:
            kwargs["http_client"] = http_client
        if base_url:
            kwargs["base_url"] = base_url
        self.client = AsyncAnthropic(**kwargs)
        self.config = config or ModelConfig()

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        return await self._create(system_prompt, user_prompt, None, config)

    async def chat_with_tools(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Sequence[Any],
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        return await self._create(system_prompt, user_prompt, tools, config)

    async def _create(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Optional[Sequence[Any]],
        config: Optional[ModelConfig],
    ) -> ModelResponse:
        import anthropic

        cfg = config or self.config
        request_kwargs: Dict[str, Any] = {
            "model": cfg.model,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if tools:
            request_kwargs["tools"] = [tool.to_anthropic_format() for tool in tools]

        try:
            response = await self.client.messages.create(**request_kwargs)
        except anthropic.APIStatusError as e:
            logger.error("Model API returned an error", status_code=e.status_code, model=cfg.model)
            raise ModelApiError(f"Model API error {e.status_code}: {e.message}", e.status_code) from e
        except anthropic.APIConnectionError as e:
            logger.error("Model API unreachable", error=str(e), model=cfg.model)
            raise ModelApiError(f"Model API connection failed: {e}") from e

        return self._convert_response(response)

    def _convert_response(self, response: Any) -> ModelResponse:
        """Flatten text blocks and collect tool_use blocks."""
        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []

        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    input=dict(block.input or {}),
                ))

        usage = response.usage
        tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0) if usage else 0
        return ModelResponse(
            content="".join(text_parts),
            tokens_used=tokens,
            stop_reason=response.stop_reason,
            tool_calls=tool_calls,
        )


class OpenAIModelClient:
    """Wrapper for OpenAI's chat completions API."""

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[ModelConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")
        from openai import AsyncOpenAI

        kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if http_client is not None:
            kwargs["http_client"] = http_client
        self.client = AsyncOpenAI(**kwargs)
        self.config = config or ModelConfig(
            provider=LLMProvider.OPENAI,
            model=DEFAULT_MODELS[LLMProvider.OPENAI],
        )

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        return await self._create(system_prompt, user_prompt, None, config)

    async def chat_with_tools(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Sequence[Any],
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        return await self._create(system_prompt, user_prompt, tools, config)

    async def _create(
        self,
        system_prompt: str,
        user_prompt: str,
        tools: Optional[Sequence[Any]],
        config: Optional[ModelConfig],
    ) -> ModelResponse:
        import openai

        cfg = config or self.config
        kwargs: Dict[str, Any] = {
            "model": cfg.model,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if tools:
            kwargs["tools"] = [tool.to_openai_format() for tool in tools]
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error("Model API returned an error", status_code=e.status_code, model=cfg.model)
            raise ModelApiError(f"Model API error {e.status_code}: {e.message}", e.status_code) from e
        except openai.APIConnectionError as e:
            logger.error("Model API unreachable", error=str(e), model=cfg.model)
            raise ModelApiError(f"Model API connection failed: {e}") from e

        choice = response.choices[0]
        message = choice.message
        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                arguments = {"_raw": tc.function.arguments}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, input=arguments))

        tokens = response.usage.total_tokens if response.usage else 0
        return ModelResponse(
            content=message.content or "",
            tokens_used=tokens,
            stop_reason=choice.finish_reason,
            tool_calls=tool_calls,
        )


def create_model_client(
    config: ModelConfig,
    api_key: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    Create a model client for ``config.provider``.

    Raises:
        ConfigurationError: when no API key is available for the provider.
    """
    if config.provider == LLMProvider.ANTHROPIC:
        logger.info("Using Claude (Anthropic) as LLM provider", model=config.model)
        return AnthropicModelClient(api_key=api_key, config=config, http_client=http_client)

    elif config.provider == LLMProvider.OPENAI:
        logger.info("Using OpenAI as LLM provider", model=config.model)
        return OpenAIModelClient(api_key=api_key, config=config, http_client=http_client)

    else:
        raise ConfigurationError(f"Unknown provider: {config.provider}")
