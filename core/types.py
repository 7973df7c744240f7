from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
import uuid

from .errors import InvalidTransitionError


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class AgentRole(Enum):
    LEAD = "lead"
    PLANNER = "planner"
    SUB_AGENT = "sub_agent"
    SYNTHESIZER = "synthesizer"
    SIMPLE = "simple"


class Complexity(Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class SubAgentStatus(Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceType(Enum):
    WEB = "web"
    ACADEMIC = "academic"
    DOCUMENT = "document"
    INTERNAL = "internal"
    DISCLOSURE = "disclosure"
    NEWS = "news"
    REFERENCE = "reference"
    OTHER = "other"


class ResearchPhase(Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    DEGRADED_FALLBACK = "degraded_fallback"


def clamp_confidence(value: Any, default: float = 0.5) -> float:
    """Coerce a model-supplied confidence into [0, 1]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return max(0.0, min(1.0, number))


@dataclass(frozen=True)
class ResearchQuery:
    """A research request. Created by the caller, never mutated."""
    query: str
    complexity: Complexity = Complexity.MEDIUM
    id: str = field(default_factory=lambda: _new_id("query"))
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "complexity": self.complexity.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ResearchPlan:
    """Decomposition of a query into independent sub-tasks."""
    query_id: str
    approach: str
    sub_tasks: List[str]
    estimated_complexity: int = 5
    estimated_time: int = 10  # minutes
    tools_required: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: _new_id("plan"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "approach": self.approach,
            "sub_tasks": list(self.sub_tasks),
            "estimated_complexity": self.estimated_complexity,
            "estimated_time": self.estimated_time,
            "tools_required": list(self.tools_required),
        }


# --- Tool result shapes ---


@dataclass
class SearchHit:
    title: str
    url: str
    snippet: str
    source: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
            "score": self.score,
        }


@dataclass
class SearchToolResult:
    """Result of web_search and wikipedia_search."""
    query: str
    results: List[SearchHit] = field(default_factory=list)
    total_found: int = 0
    search_engine: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "query": self.query,
            "results": [r.to_dict() for r in self.results],
            "total_found": self.total_found,
            "search_engine": self.search_engine,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class FetchToolResult:
    url: str
    content: str = ""
    title: str = ""
    word_count: int = 0
    truncated: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "word_count": self.word_count,
            "truncated": self.truncated,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class AcademicPaper:
    title: str
    authors: str = ""
    year: Optional[int] = None
    citation_count: Optional[int] = None
    url: Optional[str] = None
    abstract: Optional[str] = None
    venue: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "authors": self.authors,
            "year": self.year,
            "citation_count": self.citation_count,
            "url": self.url,
            "abstract": self.abstract,
            "venue": self.venue,
        }


@dataclass
class AcademicToolResult:
    query: str
    results: List[AcademicPaper] = field(default_factory=list)
    total_found: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "query": self.query,
            "results": [p.to_dict() for p in self.results],
            "total_found": self.total_found,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class VectorToolResult:
    query: str
    results: List[Dict[str, Any]] = field(default_factory=list)
    total_found: int = 0
    note: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "query": self.query,
            "results": self.results,
            "total_found": self.total_found,
            "note": self.note,
        }
        if self.error:
            data["error"] = self.error
        return data


# --- Model I/O ---


@dataclass
class ToolCall:
    """A tool invocation proposed by the model."""
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    id: str = ""


@dataclass
class ModelResponse:
    content: str
    tokens_used: int = 0
    stop_reason: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)


# --- Sub-agents ---


@dataclass
class ToolExecution:
    """One tool call made on behalf of a sub-agent."""
    tool: str
    input: Dict[str, Any]
    result: Any = None
    error: Optional[str] = None

    def search_scores(self) -> List[float]:
        if isinstance(self.result, SearchToolResult):
            return [hit.score for hit in self.result.results]
        return []

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"tool": self.tool, "input": self.input}
        if self.error:
            data["error"] = self.error
        else:
            data["result"] = self.result.to_dict() if hasattr(self.result, "to_dict") else self.result
        return data


@dataclass
class SubAgentTask:
    """State of one sub-agent. Leaves ``active`` exactly once."""
    parent_query_id: str
    task: str
    objective: str
    id: str = field(default_factory=lambda: _new_id("subagent"))
    tools_to_use: List[str] = field(default_factory=list)
    status: SubAgentStatus = SubAgentStatus.ACTIVE
    results: Optional[Dict[str, Any]] = None
    tokens_used: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    tool_executions: List[ToolExecution] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status is not SubAgentStatus.ACTIVE

    def _check_active(self, target: SubAgentStatus) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Sub-agent {self.id} cannot move from {self.status.value} to {target.value}"
            )

    def complete(self, results: Dict[str, Any], tokens_used: int = 0) -> None:
        self._check_active(SubAgentStatus.COMPLETED)
        self.results = results
        self.tokens_used = tokens_used
        self.status = SubAgentStatus.COMPLETED

    def fail(self, error: str, tokens_used: int = 0) -> None:
        self._check_active(SubAgentStatus.FAILED)
        self.results = {"error": error}
        self.tokens_used = tokens_used
        self.status = SubAgentStatus.FAILED

    def search_scores(self) -> List[float]:
        scores: List[float] = []
        for execution in self.tool_executions:
            scores.extend(execution.search_scores())
        return scores

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_query_id": self.parent_query_id,
            "task": self.task,
            "objective": self.objective,
            "tools_to_use": list(self.tools_to_use),
            "status": self.status.value,
            "results": self.results,
            "tokens_used": self.tokens_used,
            "created_at": self.created_at.isoformat(),
            "tool_executions": [e.to_dict() for e in self.tool_executions],
        }


# --- Results ---


@dataclass(frozen=True)
class Citation:
    """A source citation for research findings."""
    title: str
    source_type: SourceType = SourceType.OTHER
    url: Optional[str] = None
    snippet: Optional[str] = None
    confidence: float = 0.5
    date_accessed: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "source_type": self.source_type.value,
            "snippet": self.snippet,
            "confidence": self.confidence,
            "date_accessed": self.date_accessed.isoformat(),
        }


@dataclass(frozen=True)
class ResearchResult:
    """Structured output from the research system."""
    query_id: str
    summary: str
    key_points: List[str]
    citations: List[Citation]
    confidence: float  # 0.0 to 1.0
    tokens_used: int = 0
    time_elapsed_ms: int = 0
    phase: ResearchPhase = ResearchPhase.DONE
    id: str = field(default_factory=lambda: _new_id("research"))
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def degraded(self) -> bool:
        return self.phase is ResearchPhase.DEGRADED_FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "summary": self.summary,
            "key_points": list(self.key_points),
            "citations": [c.to_dict() for c in self.citations],
            "confidence": self.confidence,
            "tokens_used": self.tokens_used,
            "time_elapsed_ms": self.time_elapsed_ms,
            "phase": self.phase.value,
            "created_at": self.created_at.isoformat(),
        }
