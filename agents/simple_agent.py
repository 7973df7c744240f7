import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from core.base_agent import Agent, AgentConfig
from core.errors import is_capacity_failure, is_expected_failure
from core.tools import ToolRegistry
from core.types import (
    AgentRole,
    Citation,
    ResearchPhase,
    ResearchQuery,
    ResearchResult,
    SearchHit,
    SearchToolResult,
    SourceType,
    clamp_confidence,
)
from core.utils import as_str_list, first_present, parse_model_json

from .lead_agent import _elapsed_ms, degraded_research_result

NO_RESULTS_CONFIDENCE = 0.1


@dataclass(frozen=True)
class SimpleAgentConfig(AgentConfig):
    """Configuration for the single-pass research agent."""
    name: str = "Simple Researcher"
    description: str = "Answers a query from one search and one model call"
    role: AgentRole = AgentRole.SIMPLE
    max_search_results: int = 5
    search_depth: str = "advanced"  # "basic" or "advanced"


class SimpleResearchAgent(Agent):
    """
    Simple Research Agent: one search, one model call, no planning.

    Search goes through Tavily when a client is supplied and through the
    registry's ``web_search`` otherwise (or when Tavily fails).
    """

    def __init__(
        self,
        config: SimpleAgentConfig,
        model_client: Any,
        tool_registry: Optional[ToolRegistry] = None,
        tavily_client: Optional[Any] = None,
    ):
        super().__init__(config, model_client, tool_registry)
        self.tavily_client = tavily_client
        self.max_search_results = config.max_search_results
        self.search_depth = config.search_depth

    def _default_system_prompt(self) -> str:
        return """You are a research assistant. Answer the user's question using ONLY the search results provided.

GUIDELINES:
- Summarize what the sources say in 1-2 paragraphs
- List the most important facts as key points
- Do not invent sources or facts that are not in the results
- Lower your confidence when the results are thin or contradictory

OUTPUT: Return only JSON."""

    def _build_user_prompt(self, query: ResearchQuery, hits: List[SearchHit]) -> str:
        sources = "\n\n".join(
            f"[{i + 1}] {hit.title}\nURL: {hit.url}\n{hit.snippet}"
            for i, hit in enumerate(hits)
        )
        return f"""QUESTION: "{query.query}"

SEARCH RESULTS:
{sources}

Return JSON with:
{{
  "summary": "answer to the question based on the search results",
  "key_points": ["point 1", "point 2", ...],
  "confidence": 0.0-1.0
}}"""

    async def _search(self, query: str) -> List[SearchHit]:
        if self.tavily_client is not None:
            try:
                response = await self.tavily_client.search(
                    query=query,
                    search_depth=self.search_depth,
                    max_results=self.max_search_results,
                )
                return [
                    SearchHit(
                        title=item.get("title", ""),
                        url=item.get("url", ""),
                        snippet=item.get("content", ""),
                        source="tavily",
                        score=clamp_confidence(item.get("score"), default=0.5),
                    )
                    for item in response.get("results", [])
                ]
            except Exception as e:
                self.logger.warning("Tavily search failed, using web_search", error=str(e))

        result = await self.tool_registry.execute(
            "web_search", {"query": query, "num_results": self.max_search_results}
        )
        if not result.success or not isinstance(result.result, SearchToolResult):
            self.logger.warning("web_search unavailable", error=result.error)
            return []
        return list(result.result.results)

    async def conduct_research(self, query: ResearchQuery) -> ResearchResult:
        started = time.monotonic()
        log = self.logger.bind(query_id=query.id)
        log.info("Starting simple research", query=query.query)

        hits = await self._search(query.query)
        if not hits:
            log.info("No search results, skipping model call")
            return ResearchResult(
                query_id=query.id,
                summary=f'No current search results were found for "{query.query}".',
                key_points=[
                    "No current search results available",
                    "Try broader search terms",
                ],
                citations=[],
                confidence=NO_RESULTS_CONFIDENCE,
                tokens_used=0,
                time_elapsed_ms=_elapsed_ms(started),
            )

        try:
            response = await self._call_model(self._build_user_prompt(query, hits))
            data = parse_model_json(response.content)
        except Exception as e:
            if not is_expected_failure(e):
                raise
            log.warning("Simple research degraded", error=str(e))
            return degraded_research_result(query, started, capacity=is_capacity_failure(e), reason=str(e))

        if not isinstance(data, dict):
            data = {"summary": response.content}

        accessed = datetime.now()
        citations = [
            Citation(
                title=hit.title or hit.url,
                url=hit.url or None,
                source_type=SourceType.WEB,
                snippet=hit.snippet or None,
                confidence=clamp_confidence(hit.score),
                date_accessed=accessed,
            )
            for hit in hits
        ]
        quality = sum(hit.score for hit in hits) / len(hits)
        confidence = clamp_confidence(clamp_confidence(data.get("confidence"), default=0.5) * quality)

        log.info("Simple research completed", citations=len(citations), tokens=response.tokens_used)
        return ResearchResult(
            query_id=query.id,
            summary=str(first_present(data, "summary", default="")),
            key_points=as_str_list(first_present(data, "key_points", "keyPoints")),
            citations=citations,
            confidence=confidence,
            tokens_used=response.tokens_used,
            time_elapsed_ms=_elapsed_ms(started),
            phase=ResearchPhase.DONE,
        )
