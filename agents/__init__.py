"""Agent implementations for Black Star Forge.

Each agent is an LLM-backed collaborator of the pipeline: the planner breaks
orders into steps, the coder synthesizes step artifacts and the verifier
returns structured verdicts for the Six Eyes gates.
"""

from .base_agent import BaseAgent, AgentResult, TokenUsage, strip_code_fences
from .interfaces import Planner, Coder, ReasoningCheck, CodingContext
from .planner_agent import PlannerAgent, PlanDraft, PlannedStep, fallback_plan, render_plan
from .coder_agent import CoderAgent
from .verifier_agent import VerifierAgent, build_vision_verifier

__all__ = [
    # Base
    "BaseAgent",
    "AgentResult",
    "TokenUsage",
    "strip_code_fences",
    # Interfaces
    "Planner",
    "Coder",
    "ReasoningCheck",
    "CodingContext",
    # Agents
    "PlannerAgent",
    "PlanDraft",
    "PlannedStep",
    "fallback_plan",
    "render_plan",
    "CoderAgent",
    "VerifierAgent",
    "build_vision_verifier",
]
