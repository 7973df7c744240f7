from .types import (
    AgentRole,
    Complexity,
    SubAgentStatus,
    SourceType,
    ResearchPhase,
    ResearchQuery,
    ResearchPlan,
    SubAgentTask,
    Citation,
    ResearchResult,
)
from .errors import (
    ResearchError,
    ConfigurationError,
    ModelApiError,
    JsonParseError,
    SynthesisError,
)
from .base_agent import Agent, AgentConfig
from .tools import Tool, ToolResult, ToolRegistry
from .llm import LLMProvider, ModelConfig, create_model_client, get_default_model

__all__ = [
    "AgentRole",
    "Complexity",
    "SubAgentStatus",
    "SourceType",
    "ResearchPhase",
    "ResearchQuery",
    "ResearchPlan",
    "SubAgentTask",
    "Citation",
    "ResearchResult",
    "ResearchError",
    "ConfigurationError",
    "ModelApiError",
    "JsonParseError",
    "SynthesisError",
    "Agent",
    "AgentConfig",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "LLMProvider",
    "ModelConfig",
    "create_model_client",
    "get_default_model",
]
