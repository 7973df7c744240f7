"""
Live research tools backed by public HTTP APIs.

Every handler returns its typed result and never raises: network errors,
non-2xx responses and malformed payloads become a result carrying an
``error`` field plus a degraded but non-empty payload (usually a link the
reader can follow by hand).
"""

import re
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote, quote_plus

import httpx
from pydantic import BaseModel, Field

from .logging import get_logger
from .tools import Tool, ToolRegistry
from .types import (
    AcademicPaper,
    AcademicToolResult,
    FetchToolResult,
    SearchHit,
    SearchToolResult,
    VectorToolResult,
)

logger = get_logger(__name__)

SEARCHAPI_URL = "https://www.searchapi.io/api/v1/search"
READER_PROXY_URL = "https://r.jina.ai/"
SEMANTIC_SCHOLAR_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
WIKIPEDIA_OPENSEARCH_URL = "https://en.wikipedia.org/w/api.php"
USER_AGENT = "research-orchestrator/1.0 (httpx)"

# SearchAPI's time_period values
TIMEFRAMES = {
    "hour": "last_hour",
    "day": "last_day",
    "week": "last_week",
    "month": "last_month",
    "year": "last_year",
}

FALLBACK_ENGINE = "Fallback Search"


# --- Tool inputs ---


class WebSearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="Search query - be specific but not overly long")
    num_results: int = Field(5, ge=1, le=10, description="Number of results to return (default: 5, max: 10)")
    timeframe: Optional[Literal["hour", "day", "week", "month", "year", "any"]] = Field(
        None, description="Time filter for results: hour, day, week, month, year, or any"
    )


class FetchUrlInput(BaseModel):
    url: str = Field(..., min_length=1, description="Full URL to fetch content from")
    max_length: int = Field(50000, ge=1, description="Maximum number of characters to return (default: 50000)")


class VectorSearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="Semantic search query")
    top_k: int = Field(5, ge=1, le=20, description="Number of most similar results to return (default: 5, max: 20)")
    min_score: float = Field(0.7, ge=0.0, le=1.0, description="Minimum similarity score threshold (default: 0.7)")


class AcademicSearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="Academic search query")
    num_results: int = Field(5, ge=1, le=10, description="Number of results to return (default: 5, max: 10)")
    sort_by: Literal["relevance", "date", "citations"] = Field(
        "relevance", description="Sort order: relevance, date, or citations"
    )


class WikipediaSearchInput(BaseModel):
    query: str = Field(..., min_length=1, description="Wikipedia search query")
    num_results: int = Field(3, ge=1, le=10, description="Number of results to return (default: 3)")


# --- Helpers ---


def fallback_search_hits(query: str) -> List[SearchHit]:
    """Links a reader can follow when no search backend answered."""
    return [
        SearchHit(
            title=f"Information about {query}",
            url=f"https://www.google.com/search?q={quote_plus(query)}",
            snippet=f'Research results for "{query}". This topic covers various aspects and applications relevant to your query.',
            source="Search Portal",
            score=0.9,
        ),
        SearchHit(
            title=f"{query} - Wikipedia",
            url=wikipedia_article_url(query),
            snippet=f"Wikipedia article about {query}. Comprehensive information and references.",
            source="Wikipedia Portal",
            score=0.8,
        ),
        SearchHit(
            title=f"{query} - Academic Resources",
            url=f"https://scholar.google.com/scholar?q={quote_plus(query)}",
            snippet=f"Academic and scholarly articles about {query}. Research papers and citations.",
            source="Academic Portal",
            score=0.7,
        ),
    ]


def wikipedia_article_url(query: str) -> str:
    return "https://en.wikipedia.org/wiki/" + quote(re.sub(r"\s+", "_", query.strip()))


def clean_text(text: str) -> str:
    """Collapse runs of spaces inside lines and runs of blank lines."""
    lines = [re.sub(r"[ \t\f\v]+", " ", line).strip() for line in text.splitlines()]
    cleaned = "\n".join(lines)
    return re.sub(r"\n{2,}", "\n", cleaned).strip()


def extract_title(content: str) -> str:
    for line in content.split("\n")[:10]:
        line = line.strip()
        if line.startswith("Title:"):
            line = line[len("Title:"):].strip()
        if 10 < len(line) < 200:
            return line
    return "Untitled Document"


def _describe_http_error(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return str(exc) or exc.__class__.__name__


class ResearchToolkit:
    """Handlers for the research tools, sharing one ``httpx.AsyncClient``."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        searchapi_api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
    ):
        self.http_client = http_client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )
        self.searchapi_api_key = searchapi_api_key

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        response = await self.http_client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def web_search(self, params: WebSearchInput) -> SearchToolResult:
        query = params.query
        if not self.searchapi_api_key:
            logger.info("No search API key, using fallback search results", query=query)
            return self._fallback_search(query, params.num_results)

        request_params: Dict[str, Any] = {
            "engine": "google",
            "q": query,
            "api_key": self.searchapi_api_key,
            "num": params.num_results,
        }
        if params.timeframe and params.timeframe in TIMEFRAMES:
            request_params["time_period"] = TIMEFRAMES[params.timeframe]

        try:
            data = await self._get_json(SEARCHAPI_URL, request_params)
            organic = data.get("organic_results") or []
            hits = [
                SearchHit(
                    title=item.get("title") or "Web Search Result",
                    url=item.get("link") or "#",
                    snippet=item.get("snippet") or item.get("description") or "No description available",
                    source="SearchAPI Google Results",
                    score=1.0,
                )
                for item in organic[: params.num_results]
                if isinstance(item, dict)
            ]
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            error = f"Web search failed: {_describe_http_error(e)}"
            logger.warning("Web search failed, using fallback results", query=query, error=error)
            return self._fallback_search(query, params.num_results, error=error)

        if not hits:
            logger.info("Web search returned no organic results, using fallback", query=query)
            return self._fallback_search(query, params.num_results)

        logger.info("Web search completed", query=query, results=len(hits))
        return SearchToolResult(
            query=query,
            results=hits,
            total_found=len(organic),
            search_engine="SearchAPI Google Search",
        )

    def _fallback_search(self, query: str, num_results: int, error: Optional[str] = None) -> SearchToolResult:
        hits = fallback_search_hits(query)[:num_results]
        return SearchToolResult(
            query=query,
            results=hits,
            total_found=len(hits),
            search_engine=FALLBACK_ENGINE,
            error=error,
        )

    async def fetch_url(self, params: FetchUrlInput) -> FetchToolResult:
        url = params.url
        try:
            response = await self.http_client.get(READER_PROXY_URL + url)
            response.raise_for_status()
            text = response.text
        except httpx.HTTPError as e:
            error = f"Failed to fetch URL content: {_describe_http_error(e)}"
            logger.warning("URL fetch failed", url=url, error=error)
            return FetchToolResult(url=url, error=error)

        cleaned = clean_text(text)
        return FetchToolResult(
            url=url,
            content=cleaned[: params.max_length],
            title=extract_title(cleaned),
            word_count=len(cleaned.split()),
            truncated=len(cleaned) > params.max_length,
        )

    async def vector_search(self, params: VectorSearchInput) -> VectorToolResult:
        logger.info(
            "Vector search requested", query=params.query, top_k=params.top_k, min_score=params.min_score
        )
        return VectorToolResult(
            query=params.query,
            note="Vector search integration pending - no internal knowledge base is connected",
        )

    async def academic_search(self, params: AcademicSearchInput) -> AcademicToolResult:
        query = params.query
        try:
            data = await self._get_json(SEMANTIC_SCHOLAR_URL, {
                "query": query,
                "limit": params.num_results,
                "fields": "title,authors,year,citationCount,url,abstract,venue",
            })
            papers = [
                AcademicPaper(
                    title=paper.get("title") or "Untitled paper",
                    authors=", ".join(
                        a.get("name", "") for a in paper.get("authors") or [] if isinstance(a, dict)
                    ),
                    year=paper.get("year"),
                    citation_count=paper.get("citationCount"),
                    url=paper.get("url"),
                    abstract=paper.get("abstract"),
                    venue=paper.get("venue"),
                )
                for paper in data.get("data") or []
                if isinstance(paper, dict)
            ]
            total = int(data.get("total") or len(papers))
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            error = f"Academic search unavailable: {_describe_http_error(e)}"
            logger.warning("Academic search failed", query=query, error=error)
            return AcademicToolResult(
                query=query,
                results=[AcademicPaper(
                    title=f"{query} - Google Scholar",
                    url=f"https://scholar.google.com/scholar?q={quote_plus(query)}",
                )],
                total_found=1,
                error=error,
            )

        if params.sort_by == "date":
            papers.sort(key=lambda p: p.year or 0, reverse=True)
        elif params.sort_by == "citations":
            papers.sort(key=lambda p: p.citation_count or 0, reverse=True)

        logger.info("Academic search completed", query=query, results=len(papers))
        return AcademicToolResult(query=query, results=papers, total_found=total)

    async def wikipedia_search(self, params: WikipediaSearchInput) -> SearchToolResult:
        query = params.query
        try:
            data = await self._get_json(WIKIPEDIA_OPENSEARCH_URL, {
                "action": "opensearch",
                "search": query,
                "limit": params.num_results,
                "namespace": 0,
                "format": "json",
            })
            if not isinstance(data, list) or len(data) < 4:
                raise ValueError("unexpected OpenSearch payload")
            _, titles, descriptions, urls = data[:4]
            hits = [
                SearchHit(
                    title=title,
                    url=urls[i],
                    snippet=(descriptions[i] if i < len(descriptions) else "") or "No description available",
                    source="Wikipedia",
                    score=0.85,
                )
                for i, title in enumerate(titles)
                if i < len(urls)
            ]
        except (httpx.HTTPError, ValueError, TypeError, IndexError) as e:
            error = f"Wikipedia search failed: {_describe_http_error(e)}"
            logger.warning("Wikipedia search failed, using direct link", query=query, error=error)
            return SearchToolResult(
                query=query,
                results=[SearchHit(
                    title=f"Wikipedia: {query}",
                    url=wikipedia_article_url(query),
                    snippet=f'Search Wikipedia for "{query}"',
                    source="Wikipedia Direct Link",
                    score=0.5,
                )],
                total_found=1,
                search_engine="Wikipedia Direct Link",
                error=error,
            )

        logger.info("Wikipedia search completed", query=query, results=len(hits))
        return SearchToolResult(
            query=query,
            results=hits,
            total_found=len(titles),
            search_engine="Wikipedia OpenSearch",
        )

    def tools(self) -> List[Tool]:
        return [
            Tool(
                name="web_search",
                description=(
                    "Search the public web for current information, news, facts, or unknown terms. "
                    "Returns top results with titles, snippets, and URLs. Best for time-sensitive queries."
                ),
                handler=self.web_search,
                input_model=WebSearchInput,
            ),
            Tool(
                name="fetch_url",
                description=(
                    "Fetch and return cleaned text content from a specific URL. Use for reading full "
                    "articles, papers, or documents found in search results."
                ),
                handler=self.fetch_url,
                input_model=FetchUrlInput,
            ),
            Tool(
                name="vector_search",
                description=(
                    "Search internal knowledge base using semantic similarity. Best for proprietary "
                    "documents, past research, or internal company information."
                ),
                handler=self.vector_search,
                input_model=VectorSearchInput,
            ),
            Tool(
                name="academic_search",
                description=(
                    "Search academic papers and scholarly content. Use for research questions "
                    "requiring peer-reviewed sources or scientific information."
                ),
                handler=self.academic_search,
                input_model=AcademicSearchInput,
            ),
            Tool(
                name="wikipedia_search",
                description="Search Wikipedia for encyclopedic information and background context.",
                handler=self.wikipedia_search,
                input_model=WikipediaSearchInput,
            ),
        ]


def build_tool_registry(toolkit: ResearchToolkit) -> ToolRegistry:
    """Register the live research tools backed by ``toolkit``."""
    registry = ToolRegistry()
    for tool in toolkit.tools():
        registry.register(tool)
    return registry
