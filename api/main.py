from dataclasses import dataclass
from contextlib import asynccontextmanager
from typing import Any, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import Config, config
from core.errors import ConfigurationError
from core.llm import create_model_client
from core.logging import get_logger
from core.research_tools import ResearchToolkit, build_tool_registry
from core.tools import ToolRegistry
from core.types import Complexity, ResearchQuery

logger = get_logger(__name__)


# Request/Response Models
class ResearchRequest(BaseModel):
    query: str = Field(..., description="The research query to investigate")
    mode: Literal["multi", "simple"] = Field(default="multi", description="'multi' (planner + sub-agents) or 'simple'")
    complexity: Complexity = Field(default=Complexity.MEDIUM, description="'simple', 'medium' or 'complex'")


class TitleRequest(BaseModel):
    query: str = Field(..., description="The research query to title")


@dataclass
class Services:
    """Agents wired to one model client and one tool registry."""
    lead_agent: Any
    simple_agent: Any


def get_settings() -> Config:
    return config


def get_tool_registry(request: Request, settings: Config = Depends(get_settings)) -> ToolRegistry:
    """Tool registry backed by a shared ``httpx.AsyncClient``, created on first use."""
    state = request.app.state
    if getattr(state, "tool_registry", None) is None:
        state.toolkit = ResearchToolkit(
            searchapi_api_key=settings.searchapi_api_key,
            timeout_seconds=settings.http_timeout_seconds,
        )
        state.tool_registry = build_tool_registry(state.toolkit)
    return state.tool_registry


def get_tavily_client(settings: Config) -> Optional[Any]:
    if not settings.tavily_api_key:
        return None
    from tavily import AsyncTavilyClient
    return AsyncTavilyClient(api_key=settings.tavily_api_key)


def get_services(
    request: Request,
    settings: Config = Depends(get_settings),
    registry: ToolRegistry = Depends(get_tool_registry),
) -> Services:
    """Build the agents once; 503 when no model API key is configured."""
    state = request.app.state
    if getattr(state, "services", None) is not None:
        return state.services

    from agents.lead_agent import LeadResearcherAgent
    from agents.simple_agent import SimpleAgentConfig, SimpleResearchAgent

    try:
        model = settings.model_config()
        client = create_model_client(model, api_key=settings.get_api_key())
    except ConfigurationError as e:
        logger.error("Research services unavailable", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))

    state.services = Services(
        lead_agent=LeadResearcherAgent.create(
            client,
            registry,
            model=model,
            analysis_max_tokens=settings.analysis_max_tokens,
        ),
        simple_agent=SimpleResearchAgent(
            SimpleAgentConfig(model=model),
            client,
            registry,
            tavily_client=get_tavily_client(settings),
        ),
    )
    return state.services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Research Orchestrator API starting")
    yield
    toolkit = getattr(app.state, "toolkit", None)
    if toolkit is not None:
        await toolkit.aclose()
    logger.info("Research Orchestrator API shutting down")


app = FastAPI(
    title="Multi-Agent Research Orchestrator",
    description="""
    A multi-agent research system featuring:
    - **Planner**: decomposes a query into independent sub-tasks
    - **Sub-Agents**: investigate sub-tasks in parallel with live research tools
    - **Synthesizer**: merges findings into one cited report

    Model capacity problems degrade to a low-confidence result instead of an error.
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health(settings: Config = Depends(get_settings)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "llm_provider": settings.llm_provider,
        "llm_model": settings.llm_model,
        "llm_configured": settings.validate(),
        "web_search_configured": bool(settings.searchapi_api_key),
        "tavily_configured": bool(settings.tavily_api_key),
    }


@app.get("/api/tools")
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)):
    """List the research tools sub-agents may call."""
    return {"tools": registry.to_anthropic_format()}


@app.post("/api/research")
async def research(request: ResearchRequest, services: Services = Depends(get_services)):
    """Run a research query and return the final ResearchResult."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")

    query = ResearchQuery(query=request.query.strip(), complexity=request.complexity)
    agent = services.simple_agent if request.mode == "simple" else services.lead_agent
    logger.info("Research request", query_id=query.id, mode=request.mode)

    result = await agent.conduct_research(query)
    return result.to_dict()


@app.post("/api/research/title")
async def research_title(request: TitleRequest, services: Services = Depends(get_services)):
    """Generate a short title for a research query."""
    if not request.query.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")
    return {"title": await services.lead_agent.generate_title(request.query)}


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.api_host, port=config.api_port)
