"""
Traces: the output unit of every inference strategy.

A Trace records one model execution. A TraceCollection is the ordered record
of accepted traces from one inference call, plus proposal counters.
Insertion order is sample order, which matters for autocorrelation
diagnostics such as lag plots.
"""

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple
import math

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class Trace:
    """
    One model execution.

    Attributes
    ----------
    values : Mapping[str, Any]
        Read-only name -> value for latent variables, derived terms and
        results. Rejected traces may be partial.
    accepted : bool
        False if a condition failed or a density was -inf.
    log_prior : float
        Sum of prior log-densities of the latent values.
    log_weight : float
        Sum of observation log-likelihoods.
    rejection_cause : str, optional
        Why the execution was rejected (None when accepted).
    observed : bool
        True if any observation term was evaluated.
    conditioned : bool
        True if any condition was evaluated.
    """

    values: Mapping[str, Any]
    accepted: bool = True
    log_prior: float = 0.0
    log_weight: float = 0.0
    rejection_cause: Optional[str] = None
    observed: bool = False
    conditioned: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def log_posterior(self) -> float:
        """Unnormalized log-posterior: log_prior + log_weight."""
        if self.log_prior == -math.inf or self.log_weight == -math.inf:
            return -math.inf
        return self.log_prior + self.log_weight

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values


@dataclass
class TraceCollection:
    """
    Ordered accepted traces plus proposal counters.

    Attributes
    ----------
    traces : List[Trace]
        Accepted traces in sample order.
    proposed : int
        Number of proposals (executions or MH proposals) made.
    accepted : int
        Number of accepted proposals.
    stop_reason : str
        "completed", "max_attempts", "timeout" or "cancelled".
    """

    traces: List[Trace] = field(default_factory=list)
    proposed: int = 0
    accepted: int = 0
    stop_reason: str = "completed"

    def append(self, trace: Trace) -> None:
        if not trace.accepted:
            raise ValueError("Only accepted traces can be added to a TraceCollection")
        self.traces.append(trace)

    @property
    def acceptance_ratio(self) -> float:
        """accepted / proposed, 0.0 when nothing was proposed."""
        if self.proposed == 0:
            return 0.0
        return self.accepted / self.proposed

    @property
    def names(self) -> Tuple[str, ...]:
        """Names present in the first trace, in execution order."""
        if not self.traces:
            return ()
        return tuple(self.traces[0].values)

    def trace(self, name: str) -> NDArray:
        """
        Values of `name` across all traces, in sample order.

        Raises
        ------
        KeyError
            If a trace does not record `name`.
        """
        if self.traces and name not in self.traces[0]:
            raise KeyError(
                f"Unknown trace name '{name}'. Available: {list(self.names)}"
            )
        return np.asarray([t.values[name] for t in self.traces])

    def frequencies(self, name: str) -> Dict[Any, int]:
        """Count of each distinct value of `name`, sorted by value."""
        counts = Counter(t.values[name] for t in self.traces)
        return dict(sorted(counts.items()))

    def mean(self, name: str) -> float:
        if not self.traces:
            return math.nan
        return float(np.mean(self.trace(name)))

    def log_weights(self) -> NDArray[np.float64]:
        return np.asarray([t.log_weight for t in self.traces], dtype=np.float64)

    @classmethod
    def concatenate(cls, collections: Sequence["TraceCollection"]) -> "TraceCollection":
        merged = cls()
        for collection in collections:
            merged.traces.extend(collection.traces)
            merged.proposed += collection.proposed
            merged.accepted += collection.accepted
            if merged.stop_reason == "completed":
                merged.stop_reason = collection.stop_reason
        return merged

    def __len__(self) -> int:
        return len(self.traces)

    def __iter__(self) -> Iterator[Trace]:
        return iter(self.traces)

    def __getitem__(self, index: int) -> Trace:
        return self.traces[index]

    def __repr__(self) -> str:
        return (
            f"TraceCollection(samples={len(self.traces)}, proposed={self.proposed}, "
            f"acceptance_ratio={self.acceptance_ratio:.3f})"
        )
