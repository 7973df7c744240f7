import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from core.base_agent import Agent, AgentConfig
from core.errors import JsonParseError
from core.types import (
    AgentRole,
    ResearchPlan,
    ResearchQuery,
    SubAgentTask,
    ToolCall,
    ToolExecution,
)
from core.utils import parse_model_json


@dataclass(frozen=True)
class SubAgentConfig(AgentConfig):
    """Configuration for research sub-agents."""
    name: str = "Research Sub-Agent"
    description: str = "Investigates one sub-task through a bounded tool-use conversation"
    role: AgentRole = AgentRole.SUB_AGENT
    analysis_max_tokens: int = 2000


def _structured(findings: str, confidence: float, gaps: str) -> Dict[str, Any]:
    return {
        "findings": findings,
        "key_facts": [],
        "sources": [],
        "confidence": confidence,
        "gaps": gaps,
    }


class SubAgentExecutor(Agent):
    """
    Sub-Agent Executor: runs one tool-use conversation per plan sub-task.

    Flow for a single sub-agent:
    1. ``chat_with_tools`` with every registered tool advertised
    2. run each proposed tool call in order; one failing call is recorded
       and does not stop the others
    3. feed all tool output back for a structured JSON analysis

    Sibling sub-agents share no mutable state, so ``execute_plan`` starts
    them all at once and waits for every one to finish.
    """

    def __init__(self, config: SubAgentConfig, model_client: Any, tool_registry=None):
        super().__init__(config, model_client, tool_registry)
        self.analysis_max_tokens = config.analysis_max_tokens

    def _default_system_prompt(self) -> str:
        return f"""You are a specialized research sub-agent with access to live data sources. Your job is to thoroughly investigate your assigned task using real-time information.

AVAILABLE LIVE TOOLS:
{self.tool_registry.describe()}

RESEARCH STRATEGY:
1. Use web_search for current information and recent developments
2. Use wikipedia_search for comprehensive background and established facts
3. Use academic_search for peer-reviewed and scientific sources
4. Use fetch_url to read promising sources in detail
5. Cross-verify information from multiple sources
6. Prefer primary sources and authoritative publications
7. Extract specific facts, quotes, statistics, and data points
8. Note any conflicting information or uncertainties

CRITICAL: Make 3-8 tool calls to gather comprehensive information. Use different tools to get varied perspectives.

OUTPUT: Return structured findings with real sources and citations."""

    def _task_system_prompt(self, task: str, query: ResearchQuery) -> str:
        return f"TASK: {task}\nPARENT QUERY: {query.query}\n\n{self.get_system_prompt()}"

    def _task_user_prompt(self, task: str) -> str:
        return f"""Execute this research task using LIVE DATA SOURCES: "{task}"

Use the available tools to gather comprehensive, up-to-date information. Make 3-8 tool calls as needed.

Return JSON with:
{{
  "findings": "detailed summary of what you discovered from live sources",
  "key_facts": ["specific fact 1 with source", "fact 2 with source", ...],
  "sources": [{{"title": "", "url": "", "credibility": 1-10, "relevance": 1-10, "type": "web|news|wikipedia|academic"}}],
  "confidence": 0.0-1.0,
  "gaps": "what information is missing or requires further investigation"
}}"""

    @staticmethod
    def _analysis_prompt(tool_results_text: str) -> str:
        return f"""Based on these tool results, provide a structured analysis:

{tool_results_text}

Return JSON with:
{{
  "findings": "comprehensive analysis of the tool results",
  "key_facts": ["important fact 1", "important fact 2", ...],
  "sources": [{{"title": "source title", "url": "source url", "credibility": 1-10, "relevance": 1-10, "type": "web|news|wikipedia|academic"}}],
  "confidence": 0.0-1.0,
  "gaps": "what information is missing or uncertain"
}}"""

    async def execute_plan(self, plan: ResearchPlan, query: ResearchQuery) -> List[SubAgentTask]:
        """Run one sub-agent per sub-task concurrently; returns once all are terminal."""
        return list(await asyncio.gather(*(
            self.create_sub_agent(task, query, plan, index)
            for index, task in enumerate(plan.sub_tasks)
        )))

    async def create_sub_agent(
        self,
        task: str,
        query: ResearchQuery,
        plan: ResearchPlan,
        index: int,
    ) -> SubAgentTask:
        sub_agent = SubAgentTask(
            id=f"subagent_{query.id}_{index}",
            parent_query_id=query.id,
            task=task,
            objective=task,
            tools_to_use=list(plan.tools_required),
        )
        log = self.logger.bind(query_id=query.id, sub_agent=sub_agent.id)
        log.info("Sub-agent started", task=task)

        tokens_used = 0
        try:
            system_prompt = self._task_system_prompt(task, query)
            response = await self._call_model_with_tools(
                self._task_user_prompt(task),
                self.tool_registry.list_tools(),
                system_prompt=system_prompt,
            )
            tokens_used = response.tokens_used

            if response.tool_calls:
                sub_agent.tool_executions = await self._run_tool_calls(response.tool_calls, log)
                results, analysis_tokens = await self._analyse_tool_results(
                    system_prompt, sub_agent.tool_executions
                )
                tokens_used += analysis_tokens
            else:
                results = self._parse_direct_answer(response.content)
        except Exception as e:
            sub_agent.fail(str(e) or e.__class__.__name__, tokens_used)
            log.error("Sub-agent failed", error=str(e), error_type=e.__class__.__name__)
            return sub_agent

        sub_agent.complete(results, tokens_used)
        log.info(
            "Sub-agent completed",
            tool_calls=len(sub_agent.tool_executions),
            tokens=tokens_used,
        )
        return sub_agent

    async def _run_tool_calls(self, tool_calls: List[ToolCall], log: Any) -> List[ToolExecution]:
        """Run tool calls sequentially, in the order the model proposed them."""
        executions = []
        for call in tool_calls:
            result = await self.tool_registry.execute(call.name, call.input)
            if result.success:
                executions.append(ToolExecution(tool=call.name, input=call.input, result=result.result))
            else:
                log.warning("Tool call failed", tool=call.name, error=result.error)
                executions.append(ToolExecution(tool=call.name, input=call.input, error=result.error))
        return executions

    @staticmethod
    def format_tool_results(executions: List[ToolExecution]) -> str:
        blocks = []
        for execution in executions:
            if execution.error:
                blocks.append(f"Tool {execution.tool} failed: {execution.error}")
            else:
                payload = execution.to_dict()["result"]
                blocks.append(f"Tool {execution.tool} results: {json.dumps(payload, indent=2, default=str)}")
        return "\n\n".join(blocks)

    async def _analyse_tool_results(
        self,
        system_prompt: str,
        executions: List[ToolExecution],
    ) -> Tuple[Dict[str, Any], int]:
        response = await self._call_model(
            self._analysis_prompt(self.format_tool_results(executions)),
            system_prompt=system_prompt,
            config=self.model_config(max_tokens=self.analysis_max_tokens),
        )
        try:
            data = parse_model_json(response.content, allow_degraded=False)
        except JsonParseError:
            data = None
        if not isinstance(data, dict):
            self.logger.warning("Could not parse sub-agent analysis, keeping raw text")
            data = _structured(response.content, 0.5, "Failed to parse structured analysis")
        return data, response.tokens_used

    def _parse_direct_answer(self, content: str) -> Dict[str, Any]:
        try:
            data = parse_model_json(content, allow_degraded=False)
        except JsonParseError:
            data = None
        if isinstance(data, dict):
            return data
        return _structured(content, 0.7, "Unable to parse structured response")
