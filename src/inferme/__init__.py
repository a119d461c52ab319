"""
inferme: declarative probabilistic models and sampling-based inference.

Define a model from latent variables with priors, deterministic terms,
conditions and observations; run rejection sampling, forward sampling or
Metropolis-Hastings; read the resulting traces.

```python
from inferme import distr, infer, model_result, observe1, with_priors

@with_priors(p=("beta", {"alpha": 10, "beta": 10}))
def coin(p):
    return model_result([observe1(distr("binomial", trials=5, p=p), 2)])

result = infer("metropolis-hastings", coin, {"samples": 2000, "thin": 5, "seed": 1})
result.trace("p").mean()   # close to 12 / 25
```
"""

__version__ = "0.1.0"

from inferme.errors import (
    DependencyError,
    DuplicateNameError,
    InfermeError,
    InvalidConfiguration,
    InvalidParameter,
    ModelBuildError,
    NonTerminationRisk,
    OutOfSupport,
    UnsupportedModelError,
)
from inferme.random import make_random_source, spawn_random_sources
from inferme.distributions import (
    Distribution,
    distr,
    log_density,
    make,
    register_family,
    sample,
)
from inferme.model import (
    Condition,
    Derived,
    Model,
    ModelBuilder,
    Observe,
    Trace,
    TraceCollection,
    Variable,
    build_model,
    condition,
    defmodel,
    execute,
    with_priors,
    model_result,
    observe,
    observe1,
)
from inferme.inference import (
    InferenceConfig,
    InferenceResult,
    acceptance_ratio,
    infer,
    infer_chains,
    trace,
)

__all__ = [
    "__version__",
    # Errors
    "DependencyError",
    "DuplicateNameError",
    "InfermeError",
    "InvalidConfiguration",
    "InvalidParameter",
    "ModelBuildError",
    "NonTerminationRisk",
    "OutOfSupport",
    "UnsupportedModelError",
    # Random sources
    "make_random_source",
    "spawn_random_sources",
    # Distributions
    "Distribution",
    "distr",
    "log_density",
    "make",
    "register_family",
    "sample",
    # Models
    "Condition",
    "Derived",
    "Model",
    "ModelBuilder",
    "Observe",
    "Trace",
    "TraceCollection",
    "Variable",
    "build_model",
    "condition",
    "defmodel",
    "execute",
    "with_priors",
    "model_result",
    "observe",
    "observe1",
    # Inference
    "InferenceConfig",
    "InferenceResult",
    "acceptance_ratio",
    "infer",
    "infer_chains",
    "trace",
]
