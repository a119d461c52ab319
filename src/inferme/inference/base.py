"""
Shared strategy contract and stop control.

Every strategy implements

    run(model, config, rng) -> TraceCollection

and records why it stopped in TraceCollection.stop_reason. Timeouts and
cancellation are not errors: the strategy returns what it has collected.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging
import time

import numpy as np

from inferme.inference.config import InferenceConfig
from inferme.model.builder import Model
from inferme.model.trace import TraceCollection

logger = logging.getLogger(__name__)

COMPLETED = "completed"
MAX_ATTEMPTS = "max_attempts"
TIMEOUT = "timeout"
CANCELLED = "cancelled"


class StopControl:
    """Checks the timeout and cancellation signal of one inference call."""

    def __init__(self, config: InferenceConfig) -> None:
        self._deadline = (
            time.monotonic() + config.timeout if config.timeout is not None else None
        )
        self._cancel_event = config.cancel_event

    def check(self) -> Optional[str]:
        """Return TIMEOUT or CANCELLED if the call should stop, else None."""
        if self._cancel_event is not None and self._cancel_event.is_set():
            return CANCELLED
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return TIMEOUT
        return None


class Strategy(ABC):
    """Inference strategy over a Model."""

    tag: str = ""

    def validate(self, model: Model, config: InferenceConfig) -> None:
        """Raise UnsupportedModelError/InvalidConfiguration before sampling."""

    @abstractmethod
    def run(
        self,
        model: Model,
        config: InferenceConfig,
        rng: np.random.Generator,
    ) -> TraceCollection:
        """Sample from `model` and return the collected traces."""

    def _stop(self, traces: TraceCollection, reason: str, model: Model) -> TraceCollection:
        traces.stop_reason = reason
        if reason != COMPLETED:
            logger.warning(
                "%s on %s stopped early (%s) with %d sample(s) after %d proposal(s)",
                self.tag, model.name, reason, len(traces), traces.proposed,
            )
        return traces

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tag={self.tag!r})"
