import re

import httpx
import pytest

from agents.lead_agent import LeadResearcherAgent
from core.errors import ModelApiError
from core.research_tools import build_tool_registry
from core.types import ResearchPhase, ResearchQuery, SourceType, ToolCall

from fakes import (
    ANALYSIS,
    PLANNING,
    SYNTHESIS,
    TITLE,
    TOOL_USE,
    FakeModelClient,
    make_toolkit,
    response,
    unreachable,
)

TESLA_URL = "https://en.wikipedia.org/wiki/Tesla,_Inc."
WIKI_URL = re.compile(r"https://en\.wikipedia\.org/wiki/[^\"\s\\]+")


def _wikipedia_handler(request):
    if request.url.host == "en.wikipedia.org":
        return httpx.Response(200, json=[
            "Tesla Inc",
            ["Tesla, Inc."],
            ["American multinational automotive and clean energy company"],
            [TESLA_URL],
        ])
    return httpx.Response(503)


def _script_pipeline(model, tool_calls, synthesis_confidence=0.9):
    model.route(PLANNING, response({
        "approach": "Encyclopedic background",
        "sub_tasks": ["Company background"],
        "tools_required": ["wikipedia_search"],
    }, tokens=10))
    model.route(TOOL_USE, response("", tokens=30, tool_calls=tool_calls))
    # The analysis echoes back every Wikipedia URL its tool results contain
    model.route(ANALYSIS, lambda prompt: response({
        "findings": "Background gathered",
        "sources": [{"title": "Wikipedia", "url": url, "type": "wikipedia"} for url in WIKI_URL.findall(prompt)],
        "confidence": 0.8,
    }, tokens=12))
    model.route(SYNTHESIS, lambda prompt: response({
        "summary": "Synthesized report",
        "key_points": ["point"],
        "citations": [
            {"title": "Wikipedia article", "url": url, "source_type": "reference", "confidence": 0.85}
            for url in sorted(set(WIKI_URL.findall(prompt)))
        ],
        "confidence": synthesis_confidence,
    }, tokens=55))


@pytest.mark.asyncio
async def test_wikipedia_hit_surfaces_in_citations(model):
    registry = build_tool_registry(make_toolkit(_wikipedia_handler))
    _script_pipeline(model, [ToolCall(name="wikipedia_search", input={"query": "Tesla Inc"}, id="t1")])
    lead = LeadResearcherAgent.create(model, registry)

    result = await lead.conduct_research(ResearchQuery(query="Tesla Inc"))

    assert result.phase is ResearchPhase.DONE
    assert TESLA_URL in [c.url for c in result.citations]
    assert result.tokens_used == 10 + 30 + 12 + 55
    assert 0.0 <= result.confidence <= 1.0
    assert result.time_elapsed_ms >= 0


@pytest.mark.asyncio
async def test_missing_search_key_completes_with_lower_confidence():
    web_search = [ToolCall(name="web_search", input={"query": "Tesla Inc"}, id="t1")]

    def searchapi_handler(request):
        return httpx.Response(200, json={"organic_results": [
            {"title": "Tesla", "link": "https://www.tesla.com", "snippet": "Electric cars"},
        ]})

    fallback_model = FakeModelClient()
    _script_pipeline(fallback_model, web_search)
    without_key = LeadResearcherAgent.create(fallback_model, build_tool_registry(make_toolkit(unreachable)))
    degraded = await without_key.conduct_research(ResearchQuery(query="Tesla Inc"))

    live_model = FakeModelClient()
    _script_pipeline(live_model, web_search)
    with_key = LeadResearcherAgent.create(
        live_model, build_tool_registry(make_toolkit(searchapi_handler, searchapi_api_key="key"))
    )
    live = await with_key.conduct_research(ResearchQuery(query="Tesla Inc"))

    assert degraded.phase is ResearchPhase.DONE
    assert live.phase is ResearchPhase.DONE
    assert degraded.confidence < live.confidence
    assert live.confidence == pytest.approx(0.9)
    assert degraded.confidence == pytest.approx(0.9 * 0.8)
    # the fallback links (one of them a Wikipedia URL) made it into the report
    assert "https://en.wikipedia.org/wiki/Tesla_Inc" in [c.url for c in degraded.citations]


@pytest.mark.asyncio
async def test_capacity_error_while_planning_degrades(model, offline_registry):
    model.route(PLANNING, ModelApiError("Model API error 529: Overloaded", 529))
    lead = LeadResearcherAgent.create(model, offline_registry)

    result = await lead.conduct_research(ResearchQuery(query="Tesla Inc"))

    assert result.phase is ResearchPhase.DEGRADED_FALLBACK
    assert result.degraded
    assert result.confidence == 0.2
    assert result.tokens_used == 0
    assert [c.source_type for c in result.citations] == [SourceType.INTERNAL]
    assert result.citations[0].url == "internal://status"
    assert '"Tesla Inc"' in result.summary
    assert result.key_points[0] == "Research service temporarily unavailable"
    assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_capacity_error_while_synthesizing_degrades(model, offline_registry):
    _script_pipeline(model, [])
    model.routes = [r for r in model.routes if r[0] != SYNTHESIS]
    model.route(SYNTHESIS, ModelApiError("Model API error 503: service temporarily unavailable", 503))
    lead = LeadResearcherAgent.create(model, offline_registry)

    result = await lead.conduct_research(ResearchQuery(query="q"))

    assert result.phase is ResearchPhase.DEGRADED_FALLBACK
    assert result.tokens_used == 0
    assert result.confidence == 0.2


@pytest.mark.asyncio
async def test_unparsable_synthesis_degrades(model, offline_registry):
    _script_pipeline(model, [])
    model.routes = [r for r in model.routes if r[0] != SYNTHESIS]
    model.route(SYNTHESIS, "<<<not json>>>")
    lead = LeadResearcherAgent.create(model, offline_registry)

    result = await lead.conduct_research(ResearchQuery(query="q"))

    assert result.phase is ResearchPhase.DEGRADED_FALLBACK
    assert result.key_points[1] == "Upstream response could not be used"


@pytest.mark.asyncio
async def test_programming_errors_propagate(model, offline_registry):
    _script_pipeline(model, [])
    model.routes = [r for r in model.routes if r[0] != SYNTHESIS]
    model.route(SYNTHESIS, KeyError("summary"))
    lead = LeadResearcherAgent.create(model, offline_registry)

    with pytest.raises(KeyError):
        await lead.conduct_research(ResearchQuery(query="q"))


@pytest.mark.asyncio
async def test_generate_title_strips_quotes(model, offline_registry):
    model.route(TITLE, '"Adult Mathematics Learning"\n')
    lead = LeadResearcherAgent.create(model, offline_registry)

    assert await lead.generate_title("how to learn math as an adult") == "Adult Mathematics Learning"
    assert model.calls[0][3].max_tokens == 100


@pytest.mark.asyncio
async def test_generate_title_falls_back_to_query(model, offline_registry):
    model.route(TITLE, ModelApiError("Model API error 529: Overloaded", 529))
    lead = LeadResearcherAgent.create(model, offline_registry)

    assert await lead.generate_title("tesla battery chemistry") == "Tesla battery chemistry"
    long_query = "x" * 80
    assert await lead.generate_title(long_query) == "x" * 57 + "..."
