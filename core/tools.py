from typing import Any, Awaitable, Callable, Dict, List, Optional, Type
from dataclasses import dataclass
import inspect

from pydantic import BaseModel, ValidationError

from .errors import ToolInputError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass
class ToolResult:
    """Result from a tool execution."""
    tool_name: str
    success: bool
    result: Any
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "success": self.success,
            "result": self.result.to_dict() if hasattr(self.result, "to_dict") else self.result,
            "error": self.error,
        }


class Tool:
    """A named capability the model may ask a sub-agent to run.

    ``input_model`` is a pydantic model; its JSON schema is what the model
    sees as the tool's parameters and every call is validated against it
    before ``handler`` runs.
    """

    def __init__(
        self,
        name: str,
        description: str,
        handler: Callable[[Any], Awaitable[Any]],
        input_model: Type[BaseModel],
    ):
        self.name = name
        self.description = description
        self.handler = handler
        self.input_model = input_model
        self.parameters = self._extract_parameters(input_model)

    @staticmethod
    def _extract_parameters(input_model: Type[BaseModel]) -> Dict[str, Any]:
        schema = input_model.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        schema.setdefault("type", "object")
        return schema

    def validate(self, tool_input: Optional[Dict[str, Any]]) -> BaseModel:
        try:
            return self.input_model.model_validate(tool_input or {})
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in e.errors()
            )
            raise ToolInputError(self.name, problems) from e

    async def execute(self, tool_input: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Validate ``tool_input`` and run the handler. Never raises."""
        try:
            params = self.validate(tool_input)
        except ToolInputError as e:
            logger.warning("Rejected tool input", tool=self.name, error=str(e))
            return ToolResult(tool_name=self.name, success=False, result=None, error=str(e))

        try:
            result = self.handler(params)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.exception("Tool handler raised", tool=self.name)
            return ToolResult(
                tool_name=self.name,
                success=False,
                result=None,
                error=f"Tool execution failed: {e}"
            )
        return ToolResult(tool_name=self.name, success=True, result=result)

    def to_anthropic_format(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters
            }
        }


class ToolRegistry:
    """Registry for managing tools available to agents.

    Filled once at startup and only read afterwards, so a single instance is
    shared by every concurrent research call.
    """

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool", tool=tool.name)

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def unknown(self, names: List[str]) -> List[str]:
        """Names in ``names`` that are not registered."""
        return [n for n in names if n not in self._tools]

    def list_tools(self) -> List[Tool]:
        """List all registered tools."""
        return list(self._tools.values())

    def describe(self) -> str:
        """One ``- name: description`` line per tool, for prompts."""
        return "\n".join(f"- {t.name}: {t.description}" for t in self._tools.values())

    def to_anthropic_format(self) -> List[Dict[str, Any]]:
        return [tool.to_anthropic_format() for tool in self._tools.values()]

    def to_openai_format(self) -> List[Dict[str, Any]]:
        """Convert all tools to OpenAI format."""
        return [tool.to_openai_format() for tool in self._tools.values()]

    async def execute(self, tool_name: str, tool_input: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Execute a tool by name."""
        tool = self.get(tool_name)
        if not tool:
            logger.warning("Model requested an unknown tool", tool=tool_name)
            return ToolResult(
                tool_name=tool_name,
                success=False,
                result=None,
                error=f"Tool '{tool_name}' not found"
            )
        return await tool.execute(tool_input)
