"""Fakes shared by the test modules: a prompt-routed model client and a toolkit over httpx.MockTransport."""

import json
from typing import Any, Callable, List, Optional, Tuple

import httpx

from core.llm import ModelConfig
from core.research_tools import ResearchToolkit
from core.types import ModelResponse, ToolCall

# Markers that identify which stage issued a prompt
PLANNING = "Create a detailed research plan"
ANALYSIS = "Based on these tool results"
SYNTHESIS = "LIVE DATA FROM SUB-AGENTS"
SIMPLE = "SEARCH RESULTS:"
TITLE = "Generate a concise, descriptive title"
TOOL_USE = "chat_with_tools"


def response(content: Any = "", tokens: int = 10, tool_calls: Optional[List[ToolCall]] = None) -> ModelResponse:
    if not isinstance(content, str):
        content = json.dumps(content)
    return ModelResponse(content=content, tokens_used=tokens, tool_calls=tool_calls or [])


class FakeModelClient:
    """Answers by matching a marker in the prompt.

    A route's answer may be a ModelResponse, a dict/str (wrapped in a
    response), an exception to raise, or a callable taking the user prompt
    and returning any of those.
    """

    def __init__(self):
        self.routes: List[Tuple[str, Any]] = []
        self.calls: List[Tuple[str, str, str, Optional[ModelConfig]]] = []

    def route(self, marker: str, answer: Any) -> "FakeModelClient":
        self.routes.append((marker, answer))
        return self

    def calls_for(self, marker: str) -> list:
        return [c for c in self.calls if marker == c[0] or marker in c[2]]

    async def chat(self, system_prompt: str, user_prompt: str, config: Optional[ModelConfig] = None) -> ModelResponse:
        self.calls.append(("chat", system_prompt, user_prompt, config))
        return self._answer(user_prompt, tools=False)

    async def chat_with_tools(self, system_prompt, user_prompt, tools, config=None) -> ModelResponse:
        self.calls.append((TOOL_USE, system_prompt, user_prompt, config))
        return self._answer(user_prompt, tools=True)

    def _answer(self, user_prompt: str, tools: bool) -> ModelResponse:
        for marker, answer in self.routes:
            if (marker == TOOL_USE and tools) or (marker != TOOL_USE and not tools and marker in user_prompt):
                if callable(answer) and not isinstance(answer, type):
                    answer = answer(user_prompt)
                if isinstance(answer, BaseException):
                    raise answer
                if isinstance(answer, ModelResponse):
                    return answer
                return response(answer)
        raise AssertionError(f"No scripted answer for prompt: {user_prompt[:80]!r}")


def make_toolkit(handler: Callable[[httpx.Request], httpx.Response], searchapi_api_key: Optional[str] = None) -> ResearchToolkit:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ResearchToolkit(http_client=client, searchapi_api_key=searchapi_api_key)


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("network disabled in tests", request=request)
