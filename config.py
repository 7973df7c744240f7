"""
Configuration for the Research Orchestrator.

Environment Variables:
    ANTHROPIC_API_KEY    - Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY       - Fallback: Your OpenAI API key (if no Anthropic key)
    SEARCHAPI_API_KEY    - Optional: SearchAPI key for web_search (fallback links if not set)
    TAVILY_API_KEY       - Optional: Tavily key used by the simple agent
    LLM_MODEL            - Optional: LLM model (default: claude-sonnet-4-20250514)
    LLM_PROVIDER         - Optional: LLM provider (default: auto-detected)
    LLM_MAX_TOKENS       - Optional: max tokens per model call (default: 4000)
    LLM_TEMPERATURE      - Optional: sampling temperature (default: 0.1)
    ANALYSIS_MAX_TOKENS  - Optional: max tokens for sub-agent analysis (default: 2000)
    HTTP_TIMEOUT_SECONDS - Optional: timeout for tool HTTP calls (default: 30)
    LOG_LEVEL / LOG_JSON - Optional: logging setup

Create a .env file in this directory with:

    ANTHROPIC_API_KEY=sk-ant-your-key-here
    SEARCHAPI_API_KEY=your-searchapi-key
    LLM_MODEL=claude-sonnet-4-20250514
"""

import os
from dataclasses import dataclass
from typing import Optional

from core.errors import ConfigurationError
from core.llm import LLMProvider, ModelConfig, get_default_model


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # LLM Settings (Claude/Anthropic is primary)
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None  # Fallback
    llm_model: str = "claude-sonnet-4-20250514"
    llm_provider: str = "anthropic"
    max_tokens: int = 4000
    temperature: float = 0.1
    analysis_max_tokens: int = 2000

    # Tool settings
    searchapi_api_key: Optional[str] = None
    tavily_api_key: Optional[str] = None
    http_timeout_seconds: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        # Auto-detect provider based on available keys
        anthropic_key = os.getenv("ANTHROPIC_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        if anthropic_key:
            provider = LLMProvider.ANTHROPIC
        elif openai_key:
            provider = LLMProvider.OPENAI
        else:
            provider = LLMProvider.ANTHROPIC
        provider_name = os.getenv("LLM_PROVIDER", provider.value).strip().lower()
        try:
            provider = LLMProvider(provider_name)
        except ValueError as e:
            allowed = ", ".join(p.value for p in LLMProvider)
            raise ConfigurationError(
                f"Unknown LLM_PROVIDER {provider_name!r}; expected one of: {allowed}"
            ) from e

        return cls(
            anthropic_api_key=anthropic_key,
            openai_api_key=openai_key,
            llm_model=os.getenv("LLM_MODEL", get_default_model(provider)),
            llm_provider=provider.value,
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4000")),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
            analysis_max_tokens=int(os.getenv("ANALYSIS_MAX_TOKENS", "2000")),
            searchapi_api_key=os.getenv("SEARCHAPI_API_KEY"),
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
        )

    def validate(self) -> bool:
        """Check if required configuration is present."""
        return bool(self.get_api_key())

    def get_api_key(self) -> Optional[str]:
        """Get the appropriate API key based on provider."""
        if self.llm_provider == LLMProvider.ANTHROPIC.value:
            return self.anthropic_api_key
        return self.openai_api_key

    def model_config(self) -> ModelConfig:
        """Immutable model settings shared by every agent."""
        return ModelConfig(
            provider=LLMProvider(self.llm_provider),
            model=self.llm_model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


# Global config instance
config = Config.from_env()
