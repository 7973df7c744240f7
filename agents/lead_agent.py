import time
from dataclasses import dataclass
from typing import Any, Optional

from core.base_agent import Agent, AgentConfig
from core.errors import ModelApiError, is_capacity_failure, is_expected_failure
from core.llm import ModelConfig
from core.tools import ToolRegistry
from core.types import (
    AgentRole,
    Citation,
    ResearchPhase,
    ResearchQuery,
    ResearchResult,
    SourceType,
    SubAgentStatus,
)

from .planner_agent import PlannerConfig, ResearchPlanner
from .sub_agent import SubAgentConfig, SubAgentExecutor
from .synthesizer_agent import Synthesizer, SynthesizerConfig

DEGRADED_CONFIDENCE = 0.2
MAX_TITLE_LENGTH = 60


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


def degraded_research_result(
    query: ResearchQuery,
    started: float,
    capacity: bool = True,
    reason: Optional[str] = None,
) -> ResearchResult:
    """Well-formed low-confidence result returned instead of raising."""
    if capacity:
        summary = (
            f'Unable to complete research for "{query.query}" due to temporary service issues. '
            "The research AI is currently experiencing high demand. Please try again in a few minutes."
        )
        snippet = "Research AI experiencing temporary availability issues"
    else:
        summary = (
            f'Unable to complete research for "{query.query}" because an upstream service '
            "returned an unusable response. Please try again in a few minutes."
        )
        snippet = reason or "Research pipeline degraded"

    return ResearchResult(
        query_id=query.id,
        summary=summary,
        key_points=[
            "Research service temporarily unavailable",
            "High demand on AI services detected" if capacity else "Upstream response could not be used",
            "Please retry your request shortly",
            "All research data is preserved and ready for retry",
        ],
        citations=[Citation(
            title="System Status",
            url="internal://status",
            source_type=SourceType.INTERNAL,
            snippet=snippet,
            confidence=0.5,
        )],
        confidence=DEGRADED_CONFIDENCE,
        tokens_used=0,
        time_elapsed_ms=_elapsed_ms(started),
        phase=ResearchPhase.DEGRADED_FALLBACK,
    )


@dataclass(frozen=True)
class LeadAgentConfig(AgentConfig):
    """Configuration for the Lead Researcher."""
    name: str = "Lead Researcher"
    description: str = "Plans research, fans out sub-agents and synthesizes the report"
    role: AgentRole = AgentRole.LEAD
    analysis_max_tokens: int = 2000


class LeadResearcherAgent(Agent):
    """
    Lead Researcher: orchestrates the multi-agent research workflow.

    Phases: planning -> executing -> synthesizing -> done. Any failure from
    the known taxonomy (capacity limits, model API errors, unparsable
    model output) moves the run to ``degraded_fallback`` and a fixed-shape
    result with confidence 0.2 is returned. Anything else is a bug and
    propagates.
    """

    def __init__(
        self,
        config: LeadAgentConfig,
        model_client: Any,
        tool_registry: ToolRegistry,
        planner: Optional[ResearchPlanner] = None,
        executor: Optional[SubAgentExecutor] = None,
        synthesizer: Optional[Synthesizer] = None,
    ):
        super().__init__(config, model_client, tool_registry)
        model = config.model
        self.planner = planner or ResearchPlanner(PlannerConfig(model=model), model_client, tool_registry)
        self.executor = executor or SubAgentExecutor(
            SubAgentConfig(model=model, analysis_max_tokens=config.analysis_max_tokens),
            model_client,
            tool_registry,
        )
        self.synthesizer = synthesizer or Synthesizer(SynthesizerConfig(model=model), model_client, tool_registry)

    @classmethod
    def create(
        cls,
        model_client: Any,
        tool_registry: ToolRegistry,
        model: Optional[ModelConfig] = None,
        analysis_max_tokens: int = 2000,
    ) -> "LeadResearcherAgent":
        config = LeadAgentConfig(model=model or ModelConfig(), analysis_max_tokens=analysis_max_tokens)
        return cls(config, model_client, tool_registry)

    def _default_system_prompt(self) -> str:
        return """You are an expert at creating concise, descriptive titles for research queries.
Your job is to convert user queries into clear, professional titles that would work well in a research library or database.

GUIDELINES:
- Keep titles under 60 characters
- Use title case (First Letter Capitalized)
- Make it descriptive and searchable
- Remove filler words ("how to", "what is", etc.) when possible
- Focus on the core topic/subject

EXAMPLES:
"how to learn math as an adult" -> "Adult Mathematics Learning"
"best programming languages for beginners 2024" -> "Beginner Programming Languages 2024"
"impact of AI on healthcare industry" -> "AI Impact on Healthcare Industry\""""

    async def conduct_research(self, query: ResearchQuery) -> ResearchResult:
        """Run the full pipeline. Always returns a ResearchResult for expected failures."""
        started = time.monotonic()
        phase = ResearchPhase.PLANNING
        log = self.logger.bind(query_id=query.id)
        log.info("Starting research", query=query.query, complexity=query.complexity.value)

        try:
            outcome = await self.planner.create_research_plan(query)
            plan = outcome.plan
            tokens_used = outcome.tokens_used

            phase = self._advance(log, phase, ResearchPhase.EXECUTING, sub_tasks=len(plan.sub_tasks))
            sub_agents = await self.executor.execute_plan(plan, query)
            tokens_used += sum(agent.tokens_used for agent in sub_agents)

            phase = self._advance(
                log,
                phase,
                ResearchPhase.SYNTHESIZING,
                completed=sum(1 for a in sub_agents if a.status is SubAgentStatus.COMPLETED),
                total=len(sub_agents),
            )
            synthesis = await self.synthesizer.synthesize_findings(query, plan, sub_agents)
            tokens_used += synthesis.tokens_used
        except Exception as e:
            if not is_expected_failure(e):
                raise
            capacity = is_capacity_failure(e)
            log.warning(
                "Research degraded",
                failed_phase=phase.value,
                error=str(e),
                capacity=capacity,
            )
            return degraded_research_result(query, started, capacity=capacity, reason=str(e))

        self._advance(log, phase, ResearchPhase.DONE, tokens=tokens_used)
        return ResearchResult(
            query_id=query.id,
            summary=synthesis.summary,
            key_points=synthesis.key_points,
            citations=synthesis.citations,
            confidence=synthesis.confidence,
            tokens_used=tokens_used,
            time_elapsed_ms=_elapsed_ms(started),
            phase=ResearchPhase.DONE,
        )

    @staticmethod
    def _advance(log: Any, current: ResearchPhase, target: ResearchPhase, **context: Any) -> ResearchPhase:
        log.info("Research phase changed", from_phase=current.value, to_phase=target.value, **context)
        return target

    async def generate_title(self, query: str) -> str:
        """Short library-style title for a query; falls back to the query itself."""
        user_prompt = f"""Generate a concise, descriptive title for this research query:
"{query}"

Return only the title, no explanation or quotes."""
        try:
            response = await self._call_model(user_prompt, config=self.model_config(max_tokens=100))
        except ModelApiError as e:
            self.logger.warning("Title generation failed, using query", error=str(e))
            return self._fallback_title(query)

        title = response.content.strip().strip('"').strip()
        return title or self._fallback_title(query)

    @staticmethod
    def _fallback_title(query: str) -> str:
        query = query.strip()
        if len(query) > MAX_TITLE_LENGTH:
            return query[: MAX_TITLE_LENGTH - 3] + "..."
        return query[:1].upper() + query[1:]
