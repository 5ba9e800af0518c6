"""LiteLLM cost tracking callback, accumulated per order."""

import logging
import threading
from collections import defaultdict

from litellm.integrations.custom_logger import CustomLogger

logger = logging.getLogger(__name__)


class GenerationCostLogger(CustomLogger):
    """Tracks per-call cost and totals per order id."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._lock = threading.Lock()
        self.total_cost = 0.0
        self.cost_by_order = defaultdict(float)
        self.calls = []

    def log_success_event(self, kwargs, response_obj, start_time, end_time):
        cost = 0.0
        if response_obj is not None:
            hidden = getattr(response_obj, "_hidden_params", None) or {}
            cost = float(hidden.get("response_cost", 0) or 0)
        litellm_params = kwargs.get("litellm_params") or {}
        meta = (litellm_params.get("metadata") or kwargs.get("metadata") or {})
        if not isinstance(meta, dict):
            meta = {}
        model = kwargs.get("model", "unknown")
        agent = meta.get("agent", "unknown")
        order_id = meta.get("order_id", "-")
        with self._lock:
            self.total_cost += cost
            self.cost_by_order[order_id] += cost
            self.calls.append({"agent": agent, "order_id": order_id, "model": model, "cost": cost})
        logger.debug("%s %s -> $%.4f", agent, model, cost, extra={"order_id": order_id})

    def cost_for(self, order_id: str) -> float:
        with self._lock:
            return self.cost_by_order.get(order_id, 0.0)

    def reset(self):
        with self._lock:
            self.total_cost = 0.0
            self.cost_by_order.clear()
            self.calls = []


_cost_logger = None
_registration_lock = threading.Lock()


def get_cost_logger() -> GenerationCostLogger:
    """Return the global GenerationCostLogger (create and register with litellm if needed)."""
    global _cost_logger
    with _registration_lock:
        if _cost_logger is None:
            import litellm

            _cost_logger = GenerationCostLogger()
            if not litellm.callbacks:
                litellm.callbacks = []
            if _cost_logger not in litellm.callbacks:
                litellm.callbacks.append(_cost_logger)
    return _cost_logger
