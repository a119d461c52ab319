"""
Rejection sampling.

Executes the model with fresh randomness and keeps executions whose
conditions all hold. Observation terms need an explicit upper bound on the
total likelihood (`likelihood_bound`); an execution is then accepted with
probability likelihood / bound. Without a bound, models with observations are
refused.

Unsatisfiable constraints never terminate on their own, so `max_attempts` is
mandatory: once it is spent, the traces collected so far are returned with
stop_reason "max_attempts".
"""

import logging
import math

import numpy as np

from inferme.errors import InvalidConfiguration, UnsupportedModelError
from inferme.inference.base import COMPLETED, MAX_ATTEMPTS, StopControl, Strategy
from inferme.inference.config import InferenceConfig
from inferme.model.builder import Model
from inferme.model.executor import execute
from inferme.model.trace import TraceCollection

logger = logging.getLogger(__name__)


class RejectionSampling(Strategy):
    """Keep executions satisfying every constraint."""

    tag = "rejection-sampling"

    def validate(self, model: Model, config: InferenceConfig) -> None:
        if config.max_attempts is None:
            raise InvalidConfiguration(
                "rejection-sampling requires max_attempts to bound the number of proposals"
            )
        if model.has_observations and config.likelihood_bound is None:
            raise UnsupportedModelError(
                f"Model '{model.name}' has observation terms; rejection-sampling needs "
                f"likelihood_bound for weighted rejection (or use metropolis-hastings)"
            )

    def run(
        self,
        model: Model,
        config: InferenceConfig,
        rng: np.random.Generator,
    ) -> TraceCollection:
        self.validate(model, config)
        log_bound = math.log(config.likelihood_bound) if config.likelihood_bound else None
        stop = StopControl(config)
        traces = TraceCollection()
        bound_warned = False

        while len(traces) < config.samples:
            if traces.proposed >= config.max_attempts:
                return self._stop(traces, MAX_ATTEMPTS, model)
            reason = stop.check()
            if reason is not None:
                return self._stop(traces, reason, model)

            traces.proposed += 1
            trace = execute(model, rng, short_circuit=True)
            if not trace.accepted:
                continue

            if trace.observed:
                if log_bound is None:
                    raise UnsupportedModelError(
                        f"Model '{model.name}' produced observations from its body; "
                        f"rejection-sampling needs likelihood_bound"
                    )
                log_ratio = trace.log_weight - log_bound
                if log_ratio > 0 and not bound_warned:
                    logger.warning(
                        "Likelihood %.4g exceeds likelihood_bound %.4g; "
                        "weighted rejection is biased",
                        math.exp(trace.log_weight), config.likelihood_bound,
                    )
                    bound_warned = True
                if math.log1p(-rng.random()) >= log_ratio:
                    continue

            traces.accepted += 1
            traces.append(trace)

        return self._stop(traces, COMPLETED, model)
