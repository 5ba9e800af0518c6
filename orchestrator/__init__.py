"""Orchestrator module for Black Star Forge project execution control."""

from .error_handler import ErrorHandler
from .executor import Executor
from .store import ProjectStore, InMemoryProjectStore, JsonFileProjectStore, build_store
from .timeouts import call_with_timeout, StepDeadline
from .orchestrator import Orchestrator, build_orchestrator, new_order_id

__all__ = [
    "ErrorHandler",
    "Executor",
    "ProjectStore",
    "InMemoryProjectStore",
    "JsonFileProjectStore",
    "build_store",
    "call_with_timeout",
    "StepDeadline",
    "Orchestrator",
    "build_orchestrator",
    "new_order_id",
]
