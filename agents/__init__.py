from .planner_agent import ResearchPlanner, PlannerConfig, PlanOutcome
from .sub_agent import SubAgentExecutor, SubAgentConfig
from .synthesizer_agent import Synthesizer, SynthesizerConfig, Synthesis
from .lead_agent import LeadResearcherAgent, LeadAgentConfig, degraded_research_result
from .simple_agent import SimpleResearchAgent, SimpleAgentConfig

__all__ = [
    "ResearchPlanner",
    "PlannerConfig",
    "PlanOutcome",
    "SubAgentExecutor",
    "SubAgentConfig",
    "Synthesizer",
    "SynthesizerConfig",
    "Synthesis",
    "LeadResearcherAgent",
    "LeadAgentConfig",
    "degraded_research_result",
    "SimpleResearchAgent",
    "SimpleAgentConfig",
]
