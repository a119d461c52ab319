"""
Model graph: description, validation, execution and traces.

**Terms (terms.py):**
- Variable, Derived, Condition, Observe
- Model-body helpers: condition, observe1, observe, model_result

**Builder (builder.py):**
- ModelBuilder: incremental, validated model assembly
- build_model / defmodel / with_priors: one-call and decorator forms

**Execution (executor.py):**
- execute: one run of a model's plan, producing a Trace

**Traces (trace.py):**
- Trace: one execution
- TraceCollection: accepted traces in sample order plus counters
"""

from inferme.model.terms import (
    Condition,
    Derived,
    ModelResult,
    Observe,
    Variable,
    condition,
    model_result,
    observe,
    observe1,
)
from inferme.model.builder import Model, ModelBuilder, build_model, defmodel, with_priors
from inferme.model.executor import execute
from inferme.model.trace import Trace, TraceCollection

__all__ = [
    # Terms
    "Condition",
    "Derived",
    "ModelResult",
    "Observe",
    "Variable",
    "condition",
    "model_result",
    "observe",
    "observe1",
    # Builder
    "Model",
    "ModelBuilder",
    "build_model",
    "defmodel",
    "with_priors",
    # Execution
    "execute",
    # Traces
    "Trace",
    "TraceCollection",
]
