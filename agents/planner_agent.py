"""Planner Agent - Breaks a project order into atomic, sequential coding steps."""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .base_agent import BaseAgent
from .interfaces import Planner
from contracts import Order, Step
from providers import LLMProvider
from config import settings

logger = logging.getLogger(__name__)

# Step ids become file names under the workspace.
STEP_ID_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


class PlannedStep(BaseModel):
    """A step as proposed by the planner."""
    id: str = Field(..., description="Step id such as step-1")
    title: str = Field(..., description="Short imperative title")
    description: str = Field(..., description="What the step must produce")


class PlanDraft(BaseModel):
    """Planner output contract."""
    steps: List[PlannedStep] = Field(..., min_length=1)


SYSTEM_PROMPT = """You are a senior software architect. Break down the project into atomic, sequential coding steps.

Each step must:
1. Be small and focused on one specific task
2. Follow a logical order (setup -> implementation -> integration -> validation)
3. Be completable on its own, given the steps before it

If the project involves payments, include a dedicated step whose title mentions "Payment" or "Stripe".
Include testing and validation steps.
Number step ids sequentially: step-1, step-2, ...
"""


def clean_step_id(raw: str, index: int) -> str:
    """Reduce a planner-supplied id to [A-Za-z0-9_-], or step-<index> if nothing is left."""
    step_id = STEP_ID_UNSAFE.sub("-", raw.strip()).strip("-")
    return step_id or f"step-{index}"


def fallback_plan(order: Order) -> List[Step]:
    """Three-step plan used when the planner cannot produce one."""
    return [
        Step(id="step-1", title="Setup Project", description="Initialize project structure and dependencies"),
        Step(id="step-2", title="Implement Core Features", description=order.requirements),
        Step(id="step-3", title="Add Validation", description="Add error handling and validation"),
    ]


class PlannerAgent(BaseAgent, Planner):
    """LLM-backed planner with a deterministic fallback plan."""

    SYSTEM_PROMPT = SYSTEM_PROMPT

    def __init__(self, model: Optional[str] = None, provider: Optional[LLMProvider] = None):
        super().__init__(
            role="planner",
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=PlanDraft,
            model=model or settings.planner_model,
            provider=provider,
        )

    def get_task_description(self) -> str:
        return "Break a project order into sequential coding steps"

    def generate_plan(self, order: Order) -> List[Step]:
        user_message = (
            f"# PROJECT\n\n{order.project_name}\n\n"
            f"# REQUIREMENTS\n\n{order.requirements}"
        )
        try:
            result = self.run(user_message, order_id=order.order_id)
        except Exception as e:
            logger.warning("Planning failed, using fallback plan: %s", e, extra={"order_id": order.order_id})
            return fallback_plan(order)

        draft: PlanDraft = result.output
        steps = []
        seen = set()
        for index, planned in enumerate(draft.steps, start=1):
            step_id = clean_step_id(planned.id, index)
            if step_id in seen:
                step_id = f"step-{index}"
            suffix = 1
            while step_id in seen:
                suffix += 1
                step_id = f"step-{index}-{suffix}"
            seen.add(step_id)
            steps.append(Step(id=step_id, title=planned.title, description=planned.description))
        return steps

    def save_plan(self, workspace_dir: Path, steps: List[Step]) -> Path:
        plan_path = Path(workspace_dir) / "plan.md"
        plan_path.parent.mkdir(parents=True, exist_ok=True)
        plan_path.write_text(render_plan(steps), encoding="utf-8")
        return plan_path


def render_plan(steps: List[Step]) -> str:
    """Markdown summary of a plan."""
    lines = ["# Project Implementation Plan", "", f"Generated: {datetime.now(timezone.utc).isoformat()}", ""]
    for index, step in enumerate(steps, start=1):
        lines.extend([
            f"## Step {index}: {step.title}",
            "",
            f"**ID:** {step.id}",
            "",
            f"**Description:** {step.description}",
            "",
            f"**Status:** {step.status.value}",
            "",
            "---",
            "",
        ])
    return "\n".join(lines)
