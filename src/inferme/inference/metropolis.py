"""
Component-wise random-walk Metropolis-Hastings.

State machine, repeated for burn + samples * thin sweeps:

    for each selected latent variable x (declaration order):
        Proposing   x' = x + step * N(0, 1)       (continuous)
                    x' = x + rint(step * N(0, 1))  (discrete, never 0)
        Evaluating  re-execute the model with x' substituted, others fixed
        Accept      with probability min(1, exp(log_post(x') - log_post(x)))
        Reject      otherwise, keep x

After burn-in, every thin-th sweep emits the current state as a Trace.

Proposals outside a prior's support, invalid derived parameters, failed
conditions and impossible observations all evaluate to a -inf log-posterior
and are rejected; they never abort the run. The acceptance ratio counts
every proposal, burn-in included.

The chain is sequential by construction; independent chains can run in
parallel (see engine.infer_chains).
"""

from typing import Dict, List, Optional, Tuple
import logging
import math

import numpy as np

from inferme.errors import InvalidConfiguration, UnsupportedModelError
from inferme.inference.base import COMPLETED, MAX_ATTEMPTS, StopControl, Strategy
from inferme.inference.config import DEFAULT_INIT_ATTEMPTS, InferenceConfig
from inferme.model.builder import Model
from inferme.model.executor import execute
from inferme.model.trace import Trace, TraceCollection

logger = logging.getLogger(__name__)


class MetropolisHastings(Strategy):
    """Random-walk Metropolis-Hastings over the latent variables."""

    tag = "metropolis-hastings"

    def validate(self, model: Model, config: InferenceConfig) -> None:
        if not model.variables:
            raise UnsupportedModelError(
                f"Model '{model.name}' has no latent variables to sample"
            )
        config.steps_for(model.latent_names)
        if config.variables is not None:
            unknown = [name for name in config.variables if name not in model.latent_names]
            if unknown:
                raise InvalidConfiguration(
                    f"variables {unknown} are not latent variables of '{model.name}'. "
                    f"Expected a subset of {list(model.latent_names)}"
                )

    def _selected(self, model: Model, config: InferenceConfig) -> List[Tuple[str, float]]:
        """(name, step) for each variable to update, in declaration order."""
        steps = config.steps_for(model.latent_names)
        chosen = set(config.variables) if config.variables is not None else None
        return [
            (name, step)
            for name, step in zip(model.latent_names, steps)
            if chosen is None or name in chosen
        ]

    def initial_state(
        self,
        model: Model,
        config: InferenceConfig,
        rng: np.random.Generator,
    ) -> Tuple[Optional[Trace], int]:
        """
        Draw prior executions until one has a finite log-posterior.

        Returns
        -------
        trace : Trace or None
            Valid starting state, None if the budget ran out.
        attempts : int
            Number of executions used.
        """
        budget = config.max_attempts or DEFAULT_INIT_ATTEMPTS
        for attempt in range(1, budget + 1):
            trace = execute(model, rng, short_circuit=True, recover=True)
            if trace.accepted and math.isfinite(trace.log_posterior):
                return trace, attempt
        return None, budget

    @staticmethod
    def propose(value: float, step: float, discrete: bool, rng: np.random.Generator) -> float:
        """Symmetric random-walk proposal around `value`."""
        z = rng.standard_normal()
        if not discrete:
            return float(value + step * z)
        move = int(np.rint(step * z))
        if move == 0:
            move = 1 if z >= 0 else -1
        return int(value) + move

    def run(
        self,
        model: Model,
        config: InferenceConfig,
        rng: np.random.Generator,
    ) -> TraceCollection:
        self.validate(model, config)
        stop = StopControl(config)
        traces = TraceCollection()

        current, attempts = self.initial_state(model, config, rng)
        if current is None:
            logger.warning(
                "No valid initial state for %s after %d attempt(s)", model.name, attempts
            )
            return self._stop(traces, MAX_ATTEMPTS, model)
        logger.debug("Initial state for %s found after %d attempt(s)", model.name, attempts)

        selected = self._selected(model, config)
        discrete: Dict[str, bool] = {
            variable.name: variable.prior(current.values).discrete
            for variable in model.variables
        }
        state = {name: current.values[name] for name in model.latent_names}

        n_sweeps = config.burn + config.samples * config.thin
        for sweep in range(n_sweeps):
            reason = stop.check()
            if reason is not None:
                return self._stop(traces, reason, model)

            for name, step in selected:
                candidate = self.propose(state[name], step, discrete[name], rng)
                assignment = dict(state)
                assignment[name] = candidate
                traces.proposed += 1

                trial = execute(model, assignment=assignment, short_circuit=True, recover=True)
                if not trial.accepted:
                    continue
                delta = trial.log_posterior - current.log_posterior
                if delta >= 0 or math.log1p(-rng.random()) < delta:
                    current = trial
                    state[name] = candidate
                    traces.accepted += 1

            kept = sweep - config.burn + 1
            if kept > 0 and kept % config.thin == 0:
                traces.append(current)

        logger.debug(
            "%s on %s: %d sample(s), acceptance ratio %.3f",
            self.tag, model.name, len(traces), traces.acceptance_ratio,
        )
        return self._stop(traces, COMPLETED, model)
