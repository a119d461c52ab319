"""
Forward sampling.

Executes the model `samples` times with independent randomness and keeps
every execution. Conditions are ignored and observations are only recorded
in each trace's log_weight (prior-predictive simulation). In strict mode,
models carrying observation terms are refused; conditions are still ignored.
"""

import numpy as np

from inferme.errors import UnsupportedModelError
from inferme.inference.base import COMPLETED, StopControl, Strategy
from inferme.inference.config import InferenceConfig
from inferme.model.builder import Model
from inferme.model.executor import execute
from inferme.model.trace import TraceCollection


class ForwardSampling(Strategy):
    """Unconditional simulation from the priors."""

    tag = "forward-sampling"

    def validate(self, model: Model, config: InferenceConfig) -> None:
        if config.strict and model.has_observations:
            raise UnsupportedModelError(
                f"Model '{model.name}' has observation terms; "
                f"forward-sampling in strict mode only accepts models without observations"
            )

    def run(
        self,
        model: Model,
        config: InferenceConfig,
        rng: np.random.Generator,
    ) -> TraceCollection:
        self.validate(model, config)
        stop = StopControl(config)
        traces = TraceCollection()

        for _ in range(config.samples):
            reason = stop.check()
            if reason is not None:
                return self._stop(traces, reason, model)

            trace = execute(model, rng, enforce_constraints=False)
            if config.strict and trace.observed:
                raise UnsupportedModelError(
                    f"Model '{model.name}' produced observations from its body; "
                    f"forward-sampling in strict mode only accepts models without observations"
                )
            traces.proposed += 1
            traces.accepted += 1
            traces.append(trace)

        return self._stop(traces, COMPLETED, model)
