import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.base_agent import Agent, AgentConfig
from core.errors import JsonParseError, ModelApiError, SynthesisError
from core.types import (
    AgentRole,
    Citation,
    ResearchPlan,
    ResearchQuery,
    SourceType,
    SubAgentStatus,
    SubAgentTask,
    clamp_confidence,
)
from core.utils import as_str_list, first_present, parse_model_json


SOURCE_TYPE_ALIASES: Dict[str, SourceType] = {
    **{source_type.value: source_type for source_type in SourceType},
    "wikipedia": SourceType.REFERENCE,
    "encyclopedia": SourceType.REFERENCE,
    "paper": SourceType.ACADEMIC,
    "journal": SourceType.ACADEMIC,
    "scholarly": SourceType.ACADEMIC,
    "direct": SourceType.WEB,
    "website": SourceType.WEB,
    "press": SourceType.NEWS,
}


def map_source_type(source_type: Any) -> SourceType:
    """Map a free-text source type onto the canonical set. Unknown values map to ``other``."""
    if not isinstance(source_type, str):
        return SourceType.OTHER
    return SOURCE_TYPE_ALIASES.get(source_type.strip().lower(), SourceType.OTHER)


def evidence_quality(sub_agents: List[SubAgentTask]) -> float:
    """Mean score of every search hit gathered by the sub-agents (1.0 if none)."""
    scores = [score for agent in sub_agents for score in agent.search_scores()]
    if not scores:
        return 1.0
    return sum(scores) / len(scores)


def citation_from_data(data: Dict[str, Any], accessed: Optional[datetime] = None) -> Citation:
    snippet = data.get("snippet")
    url = data.get("url") or None
    return Citation(
        title=str(data.get("title") or url or "Untitled source"),
        url=url,
        source_type=map_source_type(first_present(data, "source_type", "sourceType", "type")),
        snippet=str(snippet) if snippet is not None else None,
        confidence=clamp_confidence(data.get("confidence"), default=0.5),
        date_accessed=accessed or datetime.now(),
    )


@dataclass(frozen=True)
class SynthesizerConfig(AgentConfig):
    """Configuration for the Synthesizer."""
    name: str = "Research Synthesizer"
    description: str = "Merges sub-agent findings into one cited report"
    role: AgentRole = AgentRole.SYNTHESIZER


@dataclass
class Synthesis:
    summary: str
    key_points: List[str]
    citations: List[Citation]
    confidence: float
    tokens_used: int = 0
    limitations: Optional[str] = None
    sources_considered: int = 0


class Synthesizer(Agent):
    """
    Synthesizer: combines completed sub-agent findings into the final report.

    Unlike planning there is no placeholder answer, so any model or parse
    failure is raised as ``SynthesisError``.
    """

    def _default_system_prompt(self) -> str:
        return """You are an expert research synthesizer working with LIVE DATA from real sources. Your job is to combine findings from multiple research sub-agents into a comprehensive, well-cited final report using current, verified information.

SYNTHESIS PRINCIPLES:
1. Integrate findings from live sources into a coherent narrative
2. Highlight key insights and current developments
3. Cross-reference information across multiple sources
4. Note conflicting information and uncertainties from live data
5. Prioritize high-credibility, authoritative sources
6. Provide specific, actionable takeaways based on current information
7. Include proper citations with working URLs

QUALITY STANDARDS:
- Every major claim must have a citation from live sources
- Use primary sources and official publications when available
- Note the recency and reliability of information
- Identify gaps where live data is insufficient
- Be honest about limitations and conflicting sources
- Distinguish between established facts and recent developments"""

    def _build_user_prompt(
        self,
        query: ResearchQuery,
        plan: ResearchPlan,
        findings: List[Dict[str, Any]],
    ) -> str:
        if findings:
            blocks = "\n".join(
                f"\nSub-Agent {i + 1} (Live Sources):\n{json.dumps(finding, indent=2, default=str)}\n"
                for i, finding in enumerate(findings)
            )
        else:
            blocks = "\n(No sub-agent completed successfully; no findings are available.)\n"

        return f"""ORIGINAL QUERY: "{query.query}"

RESEARCH PLAN: {plan.approach}

LIVE DATA FROM SUB-AGENTS:
{blocks}
Synthesize these LIVE RESEARCH FINDINGS into a comprehensive, current report. Return JSON with:
{{
  "summary": "comprehensive 2-3 paragraph synthesis based on current information",
  "key_points": ["current insight 1 with source", "recent development 2 with source", ...] (5-8 points),
  "citations": [{{"title": "", "url": "", "source_type": "web|news|reference|document|academic", "snippet": "", "confidence": 0.0-1.0}}],
  "confidence": 0.0-1.0 (overall confidence based on source quality and consistency),
  "limitations": "what current questions remain unanswered or require further live research"
}}"""

    async def synthesize_findings(
        self,
        query: ResearchQuery,
        plan: ResearchPlan,
        sub_agents: List[SubAgentTask],
    ) -> Synthesis:
        completed = [a for a in sub_agents if a.status is SubAgentStatus.COMPLETED]
        findings = [a.results for a in completed if a.results]
        self.logger.info(
            "Synthesizing findings",
            query_id=query.id,
            completed=len(completed),
            failed=len(sub_agents) - len(completed),
        )

        try:
            response = await self._call_model(self._build_user_prompt(query, plan, findings))
            data = parse_model_json(response.content)
        except (ModelApiError, JsonParseError) as e:
            self.logger.error("Synthesis failed", query_id=query.id, error=str(e))
            raise SynthesisError(f"Failed to synthesize research findings: {e}") from e

        if not isinstance(data, dict):
            raise SynthesisError("Failed to synthesize research findings: model returned a non-object")

        accessed = datetime.now()
        raw_citations = first_present(data, "citations", default=[])
        if not isinstance(raw_citations, list):
            self.logger.warning("Ignoring malformed citations", query_id=query.id, citations=repr(raw_citations)[:120])
            raw_citations = []
        citations = [citation_from_data(c, accessed) for c in raw_citations if isinstance(c, dict)]
        quality = evidence_quality(completed)
        confidence = clamp_confidence(
            clamp_confidence(data.get("confidence"), default=0.5) * quality
        )
        limitations = data.get("limitations")

        return Synthesis(
            summary=str(first_present(data, "summary", default="")),
            key_points=as_str_list(first_present(data, "key_points", "keyPoints")),
            citations=citations,
            confidence=confidence,
            tokens_used=response.tokens_used,
            limitations=str(limitations) if limitations else None,
            sources_considered=len(findings),
        )
