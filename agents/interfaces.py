"""Collaborator interfaces consumed by the executor and perception layer."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from contracts import Order, Step, GateVerdict


class CodingContext(BaseModel):
    """Everything the coder sees for one attempt of one step."""
    order_id: str
    project_name: str
    requirements: str
    completed_steps: List[str] = Field(default_factory=list, description="'title: description' of completed steps")
    step_title: str
    step_description: str
    prior_artifact: Optional[str] = None
    previous_error: Optional[str] = None


class Planner(ABC):
    """Breaks an order into an ordered list of steps."""

    @abstractmethod
    def generate_plan(self, order: Order) -> List[Step]:
        pass

    @abstractmethod
    def save_plan(self, workspace_dir: Path, steps: List[Step]) -> Path:
        """Write a human-readable plan summary into the workspace."""
        pass


class Coder(ABC):
    """Synthesizes the artifact for one step."""

    @abstractmethod
    def generate(self, context: CodingContext) -> str:
        """Return artifact text; raise GenerationFailure when nothing usable was produced."""
        pass


class ReasoningCheck(ABC):
    """Answers a yes/no plausibility question, optionally about an image."""

    @abstractmethod
    def ask(self, prompt: str, image: Optional[bytes] = None, order_id: Optional[str] = None) -> GateVerdict:
        pass
