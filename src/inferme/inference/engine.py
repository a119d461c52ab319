"""
Inference engine: dispatch a model to a strategy by tag.

    result = infer("metropolis-hastings", coin_model,
                   {"samples": 10000, "thin": 100, "steps": [0.2]})
    result.acceptance_ratio
    trace(result, "p").mean()

Strategies form a closed set selected by tag:
    rejection-sampling, forward-sampling, metropolis-hastings

Each call owns its random source: either passed in explicitly or built from
the configuration's seed and algorithm tag. Independent chains get
independent streams spawned from one seed (infer_chains).
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Mapping, Optional, Union
import logging
import time

import numpy as np
from numpy.typing import NDArray

from inferme.errors import NonTerminationRisk
from inferme.inference.base import COMPLETED, MAX_ATTEMPTS, Strategy
from inferme.inference.config import InferenceConfig
from inferme.inference.forward import ForwardSampling
from inferme.inference.metropolis import MetropolisHastings
from inferme.inference.rejection import RejectionSampling
from inferme.model.builder import Model
from inferme.model.trace import TraceCollection
from inferme.random import coerce_random_source, spawn_random_sources

logger = logging.getLogger(__name__)

STRATEGIES: Dict[str, Strategy] = {
    strategy.tag: strategy
    for strategy in (RejectionSampling(), ForwardSampling(), MetropolisHastings())
}

ConfigLike = Union[None, InferenceConfig, Mapping[str, Any]]


def get_strategy(tag: str) -> Strategy:
    """Look up a strategy by tag ("forward_sampling" and ":forward-sampling" also work)."""
    key = str(tag).lstrip(":").lower().replace("_", "-")
    try:
        return STRATEGIES[key]
    except KeyError:
        raise ValueError(
            f"Unknown inference strategy '{tag}'. Expected one of {sorted(STRATEGIES)}"
        ) from None


class InferenceResult:
    """Traces and diagnostics from one inference call."""

    def __init__(
        self,
        strategy: str,
        traces: TraceCollection,
        config: InferenceConfig,
        elapsed: float,
        model_name: str = "model",
    ) -> None:
        """
        Initialize inference result.

        Parameters
        ----------
        strategy : str
            Strategy tag that produced the traces.
        traces : TraceCollection
            Accepted traces in sample order.
        config : InferenceConfig
            Configuration used.
        elapsed : float
            Wall-clock sampling time (seconds).
        model_name : str
            Name of the sampled model.
        """
        self.strategy = strategy
        self.traces = traces
        self.config = config
        self.elapsed = elapsed
        self.model_name = model_name

    @property
    def acceptance_ratio(self) -> float:
        return self.traces.acceptance_ratio

    @property
    def stop_reason(self) -> str:
        return self.traces.stop_reason

    @property
    def completed(self) -> bool:
        return self.traces.stop_reason == COMPLETED

    @property
    def names(self):
        return self.traces.names

    def trace(self, name: str) -> NDArray:
        """Values of `name`, one per accepted sample, in sample order."""
        return self.traces.trace(name)

    def frequencies(self, name: str) -> Dict[Any, int]:
        return self.traces.frequencies(name)

    def mean(self, name: str) -> float:
        return self.traces.mean(name)

    def raise_for_status(self) -> "InferenceResult":
        """
        Raise NonTerminationRisk if the attempt budget ran out.

        Timeouts and cancellation are not errors and do not raise.
        """
        if self.traces.stop_reason == MAX_ATTEMPTS:
            raise NonTerminationRisk(
                f"{self.strategy} on '{self.model_name}' exhausted max_attempts="
                f"{self.config.max_attempts} with {len(self.traces)}/{self.config.samples} "
                f"sample(s)"
            )
        return self

    def to_inference_data(self, var_names: Optional[List[str]] = None):
        """Convert numeric traces to an arviz.InferenceData with one chain."""
        from inferme.inference.diagnostics import to_inference_data

        return to_inference_data([self], var_names=var_names)

    def __len__(self) -> int:
        return len(self.traces)

    def __repr__(self) -> str:
        return (
            f"InferenceResult(strategy={self.strategy!r}, samples={len(self.traces)}, "
            f"acceptance_ratio={self.acceptance_ratio:.3f}, "
            f"stop_reason={self.stop_reason!r}, time={self.elapsed:.2f}s)"
        )


def infer(
    strategy_tag: str,
    model: Model,
    config: ConfigLike = None,
    rng: Optional[np.random.Generator] = None,
) -> InferenceResult:
    """
    Run inference on `model`.

    Parameters
    ----------
    strategy_tag : str
        "rejection-sampling", "forward-sampling" or "metropolis-hastings".
    model : Model
        Built model.
    config : InferenceConfig or mapping, optional
        Options; see inferme.inference.config.
    rng : np.random.Generator, optional
        Random source. If None, one is built from config.seed and
        config.random_source.

    Returns
    -------
    result : InferenceResult

    Raises
    ------
    ValueError
        Unknown strategy tag.
    InvalidConfiguration
        Invalid or missing options.
    UnsupportedModelError
        The strategy cannot handle the model.
    """
    strategy = get_strategy(strategy_tag)
    config = InferenceConfig.coerce(config)
    strategy.validate(model, config)
    rng = coerce_random_source(rng, config.random_source, config.seed)

    logger.debug("Running %s on %s with %r", strategy.tag, model.name, config)
    start_time = time.perf_counter()
    traces = strategy.run(model, config, rng)
    elapsed = time.perf_counter() - start_time
    logger.debug(
        "%s on %s finished in %.2fs: %r", strategy.tag, model.name, elapsed, traces
    )

    return InferenceResult(
        strategy=strategy.tag,
        traces=traces,
        config=config,
        elapsed=elapsed,
        model_name=model.name,
    )


def infer_chains(
    strategy_tag: str,
    model: Model,
    config: ConfigLike = None,
    chains: int = 2,
    workers: Optional[int] = None,
) -> List[InferenceResult]:
    """
    Run independent chains, each with its own random stream.

    Streams are spawned from config.seed, so a fixed seed reproduces every
    chain regardless of scheduling.

    Parameters
    ----------
    strategy_tag : str
        Strategy tag.
    model : Model
        Built model.
    config : InferenceConfig or mapping, optional
        Options shared by all chains.
    chains : int
        Number of chains. Default 2.
    workers : int, optional
        Worker threads. Default: one per chain.

    Returns
    -------
    results : List[InferenceResult]
        One result per chain, in chain order.
    """
    if chains < 1:
        raise ValueError(f"chains must be >= 1. Got {chains}")
    strategy = get_strategy(strategy_tag)
    config = InferenceConfig.coerce(config)
    strategy.validate(model, config)
    rngs = spawn_random_sources(chains, config.random_source, config.seed)

    with ThreadPoolExecutor(max_workers=workers or chains) as pool:
        futures = [pool.submit(infer, strategy.tag, model, config, rng) for rng in rngs]
        return [future.result() for future in futures]


def trace(result: InferenceResult, name: str) -> NDArray:
    """Values of `name` in `result`, one per accepted sample, in sample order."""
    return result.trace(name)


def acceptance_ratio(result: InferenceResult) -> float:
    """Accepted / proposed for `result`."""
    return result.acceptance_ratio
