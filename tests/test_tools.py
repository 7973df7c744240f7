import httpx
import pytest
from pydantic import BaseModel

from core.research_tools import (
    FALLBACK_ENGINE,
    READER_PROXY_URL,
    build_tool_registry,
    clean_text,
    extract_title,
)
from core.tools import Tool, ToolRegistry
from core.types import SearchToolResult

from fakes import make_toolkit, unreachable


class EchoInput(BaseModel):
    text: str


async def _echo(params: EchoInput):
    return {"echo": params.text}


async def _explode(params: EchoInput):
    raise RuntimeError("handler bug")


def test_tool_schema_comes_from_input_model():
    tool = Tool(name="echo", description="Echo text", handler=_echo, input_model=EchoInput)
    assert tool.parameters == {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }
    assert tool.to_anthropic_format()["input_schema"] is tool.parameters
    assert tool.to_openai_format()["function"]["name"] == "echo"


def test_duplicate_registration_is_rejected():
    registry = ToolRegistry()
    registry.register(Tool(name="echo", description="", handler=_echo, input_model=EchoInput))
    with pytest.raises(ValueError):
        registry.register(Tool(name="echo", description="", handler=_echo, input_model=EchoInput))


@pytest.mark.asyncio
async def test_registry_reports_unknown_tool():
    registry = ToolRegistry()
    result = await registry.execute("crystal_ball", {"query": "x"})
    assert not result.success
    assert result.error == "Tool 'crystal_ball' not found"


@pytest.mark.asyncio
async def test_invalid_input_never_reaches_handler():
    tool = Tool(name="echo", description="", handler=_explode, input_model=EchoInput)
    result = await tool.execute({"wrong": 1})
    assert not result.success
    assert result.error.startswith("Invalid input for tool 'echo'")


@pytest.mark.asyncio
async def test_handler_exception_becomes_failed_result():
    tool = Tool(name="echo", description="", handler=_explode, input_model=EchoInput)
    result = await tool.execute({"text": "hi"})
    assert not result.success
    assert result.error == "Tool execution failed: handler bug"


def test_registry_lists_all_research_tools():
    registry = build_tool_registry(make_toolkit(unreachable))
    assert registry.names() == [
        "web_search", "fetch_url", "vector_search", "academic_search", "wikipedia_search",
    ]
    assert registry.unknown(["web_search", "crystal_ball"]) == ["crystal_ball"]
    assert "- wikipedia_search:" in registry.describe()


@pytest.mark.asyncio
async def test_web_search_without_key_returns_three_fallback_links():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(500)

    registry = build_tool_registry(make_toolkit(handler))
    result = await registry.execute("web_search", {"query": "Tesla Inc"})

    assert result.success
    search = result.result
    assert isinstance(search, SearchToolResult)
    assert search.search_engine == FALLBACK_ENGINE
    assert search.error is None
    assert [hit.score for hit in search.results] == [0.9, 0.8, 0.7]
    assert "google.com/search" in search.results[0].url
    assert search.results[1].url == "https://en.wikipedia.org/wiki/Tesla_Inc"
    assert "scholar.google.com" in search.results[2].url
    assert requests == []


@pytest.mark.asyncio
async def test_web_search_http_error_falls_back_with_error():
    registry = build_tool_registry(make_toolkit(lambda request: httpx.Response(502), searchapi_api_key="key"))
    search = (await registry.execute("web_search", {"query": "Tesla Inc"})).result

    assert search.error == "Web search failed: HTTP 502"
    assert len(search.results) == 3
    assert search.search_engine == FALLBACK_ENGINE


@pytest.mark.asyncio
async def test_web_search_success():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={"organic_results": [
            {"title": "Tesla", "link": "https://www.tesla.com", "snippet": "Electric cars"},
            {"title": "Tesla news", "link": "https://news.example.com/tesla"},
        ]})

    registry = build_tool_registry(make_toolkit(handler, searchapi_api_key="key"))
    search = (await registry.execute("web_search", {"query": "Tesla", "num_results": 2, "timeframe": "week"})).result

    assert seen["q"] == "Tesla"
    assert seen["time_period"] == "last_week"
    assert [hit.url for hit in search.results] == ["https://www.tesla.com", "https://news.example.com/tesla"]
    assert search.results[1].snippet == "No description available"
    assert all(hit.score == 1.0 for hit in search.results)


@pytest.mark.asyncio
async def test_web_search_rejects_out_of_range_num_results():
    registry = build_tool_registry(make_toolkit(unreachable))
    result = await registry.execute("web_search", {"query": "q", "num_results": 50})
    assert not result.success
    assert "num_results" in result.error


@pytest.mark.asyncio
async def test_wikipedia_search_success():
    def handler(request):
        assert request.url.host == "en.wikipedia.org"
        return httpx.Response(200, json=[
            "Tesla Inc",
            ["Tesla, Inc."],
            ["American electric vehicle company"],
            ["https://en.wikipedia.org/wiki/Tesla,_Inc."],
        ])

    registry = build_tool_registry(make_toolkit(handler))
    search = (await registry.execute("wikipedia_search", {"query": "Tesla Inc"})).result

    assert search.error is None
    assert len(search.results) == 1
    hit = search.results[0]
    assert hit.url == "https://en.wikipedia.org/wiki/Tesla,_Inc."
    assert hit.score == 0.85


@pytest.mark.asyncio
async def test_wikipedia_search_failure_returns_direct_link():
    registry = build_tool_registry(make_toolkit(unreachable))
    search = (await registry.execute("wikipedia_search", {"query": "Tesla Inc"})).result

    assert search.error.startswith("Wikipedia search failed:")
    assert search.results[0].url == "https://en.wikipedia.org/wiki/Tesla_Inc"


@pytest.mark.asyncio
async def test_fetch_url_cleans_and_truncates():
    def handler(request):
        assert str(request.url).startswith(READER_PROXY_URL)
        return httpx.Response(200, text="Title: A long enough title\n\n\n\nword   word   word")

    registry = build_tool_registry(make_toolkit(handler))
    fetched = (await registry.execute("fetch_url", {"url": "https://example.com", "max_length": 10})).result

    assert fetched.error is None
    assert fetched.content == "Title: A l"
    assert fetched.truncated
    assert fetched.title == "A long enough title"
    assert fetched.word_count == 8


@pytest.mark.asyncio
async def test_fetch_url_failure():
    registry = build_tool_registry(make_toolkit(lambda request: httpx.Response(404)))
    fetched = (await registry.execute("fetch_url", {"url": "https://example.com/missing"})).result
    assert fetched.error == "Failed to fetch URL content: HTTP 404"
    assert fetched.content == ""


@pytest.mark.asyncio
async def test_vector_search_is_a_stub():
    registry = build_tool_registry(make_toolkit(unreachable))
    vector = (await registry.execute("vector_search", {"query": "internal memo"})).result
    assert vector.results == []
    assert vector.note.startswith("Vector search integration pending")


@pytest.mark.asyncio
async def test_academic_search_sorts_by_citations():
    def handler(request):
        return httpx.Response(200, json={"total": 2, "data": [
            {"title": "Less cited", "citationCount": 3, "year": 2021, "authors": [{"name": "A"}]},
            {"title": "Most cited", "citationCount": 300, "year": 2015, "authors": [{"name": "B"}, {"name": "C"}]},
        ]})

    registry = build_tool_registry(make_toolkit(handler))
    academic = (await registry.execute("academic_search", {"query": "batteries", "sort_by": "citations"})).result

    assert [p.title for p in academic.results] == ["Most cited", "Less cited"]
    assert academic.results[0].authors == "B, C"


@pytest.mark.asyncio
async def test_academic_search_failure_links_to_scholar():
    registry = build_tool_registry(make_toolkit(lambda request: httpx.Response(429)))
    academic = (await registry.execute("academic_search", {"query": "batteries"})).result
    assert academic.error == "Academic search unavailable: HTTP 429"
    assert academic.results[0].url.startswith("https://scholar.google.com/scholar?q=")


def test_clean_text_and_title():
    assert clean_text("a   b\n\n\n c ") == "a b\nc"
    assert extract_title("short\nA sufficiently long heading\nbody") == "A sufficiently long heading"
    assert extract_title("tiny") == "Untitled Document"
