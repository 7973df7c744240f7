import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from core.base_agent import Agent, AgentConfig
from core.errors import JsonParseError, ModelApiError
from core.types import AgentRole, ResearchPlan, ResearchQuery
from core.utils import as_str_list, first_present, parse_model_json


@dataclass(frozen=True)
class PlannerConfig(AgentConfig):
    """Configuration for the Research Planner."""
    name: str = "Research Planner"
    description: str = "Decomposes a query into independent research sub-tasks"
    role: AgentRole = AgentRole.PLANNER


@dataclass
class PlanOutcome:
    """Result of planning. ``plan`` is always usable.

    ``fallback`` is set when the model could not produce a plan and the
    fixed mock plan was substituted; ``error`` then says why.
    """
    plan: ResearchPlan
    tokens_used: int = 0
    fallback: bool = False
    error: Optional[str] = None


def mock_research_plan(query: ResearchQuery) -> ResearchPlan:
    """Two-task plan used when the model cannot plan."""
    return ResearchPlan(
        query_id=query.id,
        approach="Mock research approach (planning model unavailable)",
        sub_tasks=[
            f"Background research: {query.query}",
            f"Current analysis: {query.query}",
        ],
        estimated_complexity=5,
        estimated_time=10,
        tools_required=["web_search", "fetch_url"],
    )


def _as_int(value: Any, default: int) -> int:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default


class ResearchPlanner(Agent):
    """
    Planner: decomposes a query into independent sub-tasks for parallel sub-agents.

    Planning never blocks the pipeline: model failures, unparsable answers
    and empty plans all yield the mock plan. Only capacity errors from the
    model API escape, since fanning out against an overloaded API cannot
    succeed either.
    """

    def _default_system_prompt(self) -> str:
        return f"""You are a world-class research strategist. Your job is to analyze queries and create optimal research plans.

ANALYSIS FRAMEWORK:
- Simple queries: 1 sub-agent, 3-5 tool calls (direct facts, definitions)
- Medium queries: 2-4 sub-agents, 8-12 tool calls each (comparisons, multi-faceted topics)
- Complex queries: 5+ sub-agents, 10+ tool calls each (comprehensive analysis, multiple domains)

AVAILABLE TOOLS:
{self.tool_registry.describe()}

HEURISTICS:
- Start broad, then narrow focus
- Use web_search for current events, unknown terms
- Use academic_search for scientific topics
- Use wikipedia_search for background and established facts
- Use fetch_url to read promising sources in full
- Divide complex topics into independent sub-tasks
- Ensure minimal overlap between sub-agents

OUTPUT: Return only a JSON research plan with clear sub-task divisions."""

    def _build_user_prompt(self, query: ResearchQuery) -> str:
        return f"""Query: "{query.query}"
Complexity: {query.complexity.value}

Create a detailed research plan. Break this into 2-6 independent sub-tasks that can run in parallel. Each sub-task should:
1. Have a clear, specific objective
2. Use different tools/sources
3. Cover different aspects of the main query
4. Be actionable for a sub-agent

Return JSON with:
{{
  "approach": "overall strategy description",
  "sub_tasks": ["task 1", "task 2", ...],
  "estimated_complexity": 1-10,
  "estimated_time": estimated_minutes,
  "tools_required": ["tool1", "tool2", ...]
}}"""

    async def create_research_plan(self, query: ResearchQuery) -> PlanOutcome:
        """Ask the model for a plan; see the class docstring for the fallback rules."""
        try:
            response = await self._call_model(self._build_user_prompt(query))
        except ModelApiError as e:
            if e.is_capacity_error:
                raise
            return self._fallback(query, f"Planning model call failed: {e}")

        try:
            data = parse_model_json(response.content, allow_degraded=False)
        except JsonParseError as e:
            return self._fallback(query, str(e), response.tokens_used)

        if not isinstance(data, dict):
            return self._fallback(query, "Planner returned a non-object plan", response.tokens_used)

        plan = self._plan_from_data(query, data)
        if not plan.sub_tasks:
            return self._fallback(query, "Planner returned no sub-tasks", response.tokens_used)

        unknown = self.tool_registry.unknown(plan.tools_required)
        if unknown:
            self.logger.warning("Plan names tools that are not registered", query_id=query.id, tools=unknown)

        self.logger.info(
            "Research plan created",
            query_id=query.id,
            sub_tasks=len(plan.sub_tasks),
            tools=plan.tools_required,
        )
        return PlanOutcome(plan=plan, tokens_used=response.tokens_used)

    def _plan_from_data(self, query: ResearchQuery, data: Dict[str, Any]) -> ResearchPlan:
        approach = first_present(data, "approach", default="")
        if not isinstance(approach, str):
            approach = json.dumps(approach)
        return ResearchPlan(
            query_id=query.id,
            approach=approach,
            sub_tasks=as_str_list(first_present(data, "sub_tasks", "subTasks")),
            estimated_complexity=_as_int(first_present(data, "estimated_complexity", "estimatedComplexity"), 5),
            estimated_time=_as_int(first_present(data, "estimated_time", "estimatedTime"), 10),
            tools_required=as_str_list(first_present(data, "tools_required", "toolsRequired")),
        )

    def _fallback(self, query: ResearchQuery, reason: str, tokens_used: int = 0) -> PlanOutcome:
        self.logger.warning("Using mock research plan", query_id=query.id, reason=reason)
        return PlanOutcome(
            plan=mock_research_plan(query),
            tokens_used=tokens_used,
            fallback=True,
            error=reason,
        )
