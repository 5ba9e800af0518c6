"""Deadlines for blocking collaborator calls."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from contracts.errors import CollaboratorTimeout, StepTimeout

T = TypeVar("T")

logger = logging.getLogger(__name__)


def call_with_timeout(operation: str, timeout: Optional[float], fn: Callable[..., T], *args, **kwargs) -> T:
    """Run fn on a worker thread and wait at most `timeout` seconds.

    A call that overruns raises CollaboratorTimeout. The worker thread is
    abandoned, not killed; its result is discarded.

    Args:
        operation: Name used in the error message
        timeout: Seconds to wait; None or <= 0 waits indefinitely
        fn: Blocking callable
    """
    if not timeout or timeout <= 0:
        return fn(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"call-{operation}")
    future = executor.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("%s exceeded %.1fs deadline", operation, timeout)
        raise CollaboratorTimeout(operation, timeout) from None
    finally:
        executor.shutdown(wait=False)


class StepDeadline:
    """Time budget shared by all attempts of one step."""

    def __init__(self, step_id: str, budget_seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self.step_id = step_id
        self.budget_seconds = budget_seconds
        self._clock = clock
        self._started = clock()

    def remaining(self) -> Optional[float]:
        if not self.budget_seconds or self.budget_seconds <= 0:
            return None
        return self.budget_seconds - (self._clock() - self._started)

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        if self.expired():
            raise StepTimeout(self.step_id, self.budget_seconds)

    def bound(self, per_call: Optional[float]) -> Optional[float]:
        """The tighter of a per-call timeout and the time left in the step."""
        remaining = self.remaining()
        if remaining is None:
            return per_call
        if not per_call or per_call <= 0:
            return max(remaining, 0.001)
        return max(min(per_call, remaining), 0.001)
