"""
Inference engine for inferme models.

This module provides the sampling pipeline:
1. InferenceConfig: validated options (samples, thin, burn, steps, ...)
2. Strategies: RejectionSampling, ForwardSampling, MetropolisHastings
3. infer / infer_chains: dispatch by tag, single or multiple chains
4. DiagnosticsComputer: Rhat, ESS, autocorrelation

**Usage:**
```python
from inferme.inference import infer

result = infer("metropolis-hastings", coin_model,
               {"samples": 10000, "thin": 100, "steps": [0.2]})
print(result.acceptance_ratio)
print(result.trace("p").mean())
```
"""

from inferme.inference.config import InferenceConfig
from inferme.inference.base import Strategy
from inferme.inference.rejection import RejectionSampling
from inferme.inference.forward import ForwardSampling
from inferme.inference.metropolis import MetropolisHastings
from inferme.inference.engine import (
    STRATEGIES,
    InferenceResult,
    acceptance_ratio,
    get_strategy,
    infer,
    infer_chains,
    trace,
)
from inferme.inference.diagnostics import (
    DiagnosticsComputer,
    summary_stats,
    to_inference_data,
)

__all__ = [
    "InferenceConfig",
    "Strategy",
    "RejectionSampling",
    "ForwardSampling",
    "MetropolisHastings",
    "STRATEGIES",
    "InferenceResult",
    "acceptance_ratio",
    "get_strategy",
    "infer",
    "infer_chains",
    "trace",
    "DiagnosticsComputer",
    "summary_stats",
    "to_inference_data",
]
