from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence
import uuid

from .llm import ModelConfig
from .logging import get_logger
from .tools import ToolRegistry
from .types import AgentRole, ModelResponse


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for an agent."""
    name: str
    description: str
    role: AgentRole
    model: ModelConfig = field(default_factory=ModelConfig)
    system_prompt: Optional[str] = None


class Agent(ABC):
    """Base class for all agents in the research orchestration system."""

    def __init__(self, config: AgentConfig, model_client: Any, tool_registry: Optional[ToolRegistry] = None):
        self.id = f"{config.role.value}-{str(uuid.uuid4())[:8]}"
        self.config = config
        self.model_client = model_client
        self.tool_registry = tool_registry or ToolRegistry()
        self.logger = get_logger(type(self).__module__).bind(agent=self.id)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def role(self) -> AgentRole:
        return self.config.role

    @property
    def description(self) -> str:
        return self.config.description

    def get_system_prompt(self) -> str:
        """Get the system prompt for this agent."""
        if self.config.system_prompt:
            return self.config.system_prompt
        return self._default_system_prompt()

    @abstractmethod
    def _default_system_prompt(self) -> str:
        """Return the default system prompt for this agent type."""
        pass

    def model_config(self, **overrides: Any) -> ModelConfig:
        """The agent's model settings with per-call ``overrides`` applied."""
        if not overrides:
            return self.config.model
        return replace(self.config.model, **overrides)

    async def _call_model(
        self,
        user_prompt: str,
        system_prompt: Optional[str] = None,
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        """Plain chat call. ``ModelApiError`` propagates to the caller."""
        return await self.model_client.chat(
            system_prompt or self.get_system_prompt(),
            user_prompt,
            config or self.config.model,
        )

    async def _call_model_with_tools(
        self,
        user_prompt: str,
        tools: Sequence[Any],
        system_prompt: Optional[str] = None,
        config: Optional[ModelConfig] = None,
    ) -> ModelResponse:
        """Chat call advertising ``tools``; proposed calls are returned, not run."""
        return await self.model_client.chat_with_tools(
            system_prompt or self.get_system_prompt(),
            user_prompt,
            tools,
            config or self.config.model,
        )
