import pytest

from agents.synthesizer_agent import map_source_type
from core.errors import (
    InvalidTransitionError,
    JsonParseError,
    ModelApiError,
    SynthesisError,
    is_capacity_failure,
    is_expected_failure,
)
from core.types import (
    ResearchPlan,
    SearchHit,
    SearchToolResult,
    SourceType,
    SubAgentStatus,
    SubAgentTask,
    ToolExecution,
    clamp_confidence,
)


def _task():
    return SubAgentTask(parent_query_id="query_1", task="t", objective="t")


def test_sub_agent_completes_once():
    task = _task()
    assert task.status is SubAgentStatus.ACTIVE
    task.complete({"findings": "x"}, tokens_used=12)
    assert task.status is SubAgentStatus.COMPLETED
    assert task.tokens_used == 12

    with pytest.raises(InvalidTransitionError):
        task.fail("late failure")
    with pytest.raises(InvalidTransitionError):
        task.complete({"findings": "again"})


def test_sub_agent_fail_records_error():
    task = _task()
    task.fail("boom", tokens_used=3)
    assert task.status is SubAgentStatus.FAILED
    assert task.results == {"error": "boom"}
    assert task.is_terminal


def test_search_scores_come_from_search_results_only():
    task = _task()
    task.tool_executions = [
        ToolExecution(
            tool="web_search",
            input={"query": "q"},
            result=SearchToolResult(query="q", results=[
                SearchHit(title="a", url="u", snippet="s", source="x", score=0.9),
                SearchHit(title="b", url="u", snippet="s", source="x", score=0.7),
            ]),
        ),
        ToolExecution(tool="fetch_url", input={"url": "u"}, error="Failed to fetch URL content: HTTP 500"),
    ]
    assert task.search_scores() == [0.9, 0.7]
    assert task.to_dict()["tool_executions"][1]["error"].startswith("Failed to fetch")


@pytest.mark.parametrize("raw, expected", [
    ("web", SourceType.WEB),
    ("NEWS", SourceType.NEWS),
    (" Academic ", SourceType.ACADEMIC),
    ("wikipedia", SourceType.REFERENCE),
    ("journal", SourceType.ACADEMIC),
    ("internal", SourceType.INTERNAL),
    ("disclosure", SourceType.DISCLOSURE),
    ("blog post", SourceType.OTHER),
    ("", SourceType.OTHER),
    (None, SourceType.OTHER),
    (42, SourceType.OTHER),
])
def test_map_source_type_is_total(raw, expected):
    assert map_source_type(raw) is expected


@pytest.mark.parametrize("raw, expected", [
    (0.42, 0.42),
    ("0.8", 0.8),
    (1.7, 1.0),
    (-3, 0.0),
    ("high", 0.5),
    (None, 0.5),
    (float("nan"), 0.5),
])
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected


def test_plan_to_dict():
    plan = ResearchPlan(query_id="query_1", approach="a", sub_tasks=["x", "y"], tools_required=["web_search"])
    data = plan.to_dict()
    assert data["sub_tasks"] == ["x", "y"]
    assert data["estimated_complexity"] == 5


def test_capacity_detection_by_status_and_message():
    assert ModelApiError("Model API error 529: Overloaded", 529).is_capacity_error
    assert ModelApiError("upstream said: service temporarily unavailable").is_capacity_error
    assert not ModelApiError("Model API error 400: bad request", 400).is_capacity_error


def test_capacity_detection_follows_cause_chain():
    try:
        try:
            raise ModelApiError("Model API error 529: Overloaded", 529)
        except ModelApiError as e:
            raise SynthesisError("Failed to synthesize research findings") from e
    except SynthesisError as outer:
        assert is_capacity_failure(outer)
        assert is_expected_failure(outer)


def test_unexpected_failures_are_not_expected():
    assert not is_expected_failure(KeyError("summary"))
    assert is_expected_failure(JsonParseError("Expecting value"))
    assert is_expected_failure(RuntimeError("Overloaded"))
