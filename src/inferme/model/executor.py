"""
Model execution: run a Model's plan once and record a Trace.

Execution order:
1. Plan terms in order. A latent variable takes its value from `assignment`
   when present, otherwise it is sampled from its prior; in both cases its
   prior log-density is added to log_prior. Derived terms are computed.
2. Static constraints, then the model body and its constraints. Conditions
   reject the execution when false; observations add to log_weight.
3. Result terms (and body results) on accepted executions only.

Execution is stateless: the same (model, generator state, assignment) always
gives the same Trace.
"""

from typing import Any, Dict, List, Mapping, Optional
import math

import numpy as np

from inferme.errors import DuplicateNameError, InvalidParameter, OutOfSupport
from inferme.model.builder import Model
from inferme.model.terms import Condition, ModelResult, Observe, Variable
from inferme.model.trace import Trace

# Errors a user callable may raise on a valid input (math domain errors,
# division by zero, invalid distribution parameters).
NUMERIC_ERRORS = (ArithmeticError, ValueError)


class _Execution:
    """Mutable accumulator for a single execution."""

    def __init__(self) -> None:
        self.values: Dict[str, Any] = {}
        self.log_prior = 0.0
        self.log_weight = 0.0
        self.cause: Optional[str] = None
        self.observed = False
        self.conditioned = False

    def reject(self, cause: str) -> None:
        if self.cause is None:
            self.cause = cause

    def to_trace(self) -> Trace:
        return Trace(
            values=self.values,
            accepted=self.cause is None,
            log_prior=self.log_prior,
            log_weight=self.log_weight,
            rejection_cause=self.cause,
            observed=self.observed,
            conditioned=self.conditioned,
        )


def _label(constraint: Any, index: int, origin: str) -> str:
    if constraint.name:
        return constraint.name
    return f"{origin} {constraint.kind}[{index}]"


def execute(
    model: Model,
    rng: Optional[np.random.Generator] = None,
    assignment: Optional[Mapping[str, Any]] = None,
    enforce_constraints: bool = True,
    short_circuit: bool = False,
    recover: bool = False,
) -> Trace:
    """
    Execute `model` once.

    Parameters
    ----------
    model : Model
        Model to execute.
    rng : np.random.Generator, optional
        Random source for latent variables missing from `assignment`.
        Required unless every latent variable is assigned.
    assignment : Mapping[str, Any], optional
        Fixed values for latent variables.
    enforce_constraints : bool
        Enforce constraints. If False, conditions are skipped and
        observations only contribute to log_weight, never rejecting.
        Default True.
    short_circuit : bool
        Stop at the first rejection (failed condition or -inf density).
        Default False: the plan always runs to the end.
    recover : bool
        Treat invalid parameters, out-of-support values and numeric errors
        (ArithmeticError, ValueError) raised by derived terms, conditions,
        observations or the body as a -inf density instead of raising.
        Default False.

    Returns
    -------
    trace : Trace
        The recorded execution. Results are present only if accepted.

    Raises
    ------
    OutOfSupport
        An observation is impossible, or an assigned value lies outside its
        prior's support (unless `recover`).
    InvalidParameter
        A distribution builder produced invalid parameters (unless `recover`).
    """
    assignment = assignment or {}
    run = _Execution()
    values = run.values

    for term in model.plan:
        if isinstance(term, Variable):
            try:
                prior = term.prior(values)
            except InvalidParameter as exc:
                if not recover:
                    raise
                run.log_prior = -math.inf
                run.reject(f"invalid prior for '{term.name}': {exc}")
                if short_circuit:
                    return run.to_trace()
                values[term.name] = assignment.get(term.name, math.nan)
                continue

            if term.name in assignment:
                value = assignment[term.name]
                if prior.in_support(value):
                    density = prior.log_density(value)
                else:
                    if not recover:
                        raise OutOfSupport(
                            f"Assigned value {value!r} for '{term.name}' is outside "
                            f"the support of {prior!r}"
                        )
                    density = -math.inf
            else:
                if rng is None:
                    raise ValueError(
                        f"Latent variable '{term.name}' is unassigned and no rng was given"
                    )
                value = prior.sample(rng)
                density = prior.log_density(value)

            values[term.name] = value
            run.log_prior += density
            if density == -math.inf:
                run.reject(f"'{term.name}' has zero prior density")
                if short_circuit:
                    return run.to_trace()
        else:
            try:
                values[term.name] = term.compute(values)
            except NUMERIC_ERRORS as exc:
                if not recover:
                    raise
                run.log_prior = -math.inf
                run.reject(f"derived term '{term.name}' failed: {exc}")
                return run.to_trace()

    if not _apply_constraints(run, model.constraints, "model", enforce_constraints, short_circuit, recover):
        return run.to_trace()

    body_results: Dict[str, Any] = {}
    if model.body is not None:
        try:
            outcome = model.body(*[values[name] for name in model.body_inputs])
        except NUMERIC_ERRORS as exc:
            if not recover or isinstance(exc, DuplicateNameError):
                raise
            run.log_weight = -math.inf
            run.reject(f"model body failed: {exc}")
            return run.to_trace()
        if outcome is None:
            outcome = ModelResult()
        if not isinstance(outcome, ModelResult):
            raise TypeError(
                f"Model body of '{model.name}' must return model_result(...). "
                f"Got {type(outcome).__name__}"
            )
        if not _apply_constraints(run, outcome.constraints, "body", enforce_constraints, short_circuit, recover):
            return run.to_trace()
        body_results = outcome.results

    if run.cause is not None:
        return run.to_trace()

    for name, value in body_results.items():
        if name in values:
            raise DuplicateNameError(
                f"Model body result '{name}' clashes with an existing name in '{model.name}'"
            )
        values[name] = value
    for term in model.results:
        values[term.name] = term.compute(values)

    return run.to_trace()


def _apply_constraints(
    run: _Execution,
    constraints: List[Any],
    origin: str,
    enforce: bool,
    short_circuit: bool,
    recover: bool,
) -> bool:
    """Evaluate constraints into `run`. Returns False to stop execution."""
    for index, constraint in enumerate(constraints):
        if isinstance(constraint, Condition):
            run.conditioned = True
            if not enforce:
                continue
            try:
                holds = constraint.holds(run.values)
            except NUMERIC_ERRORS as exc:
                if not recover:
                    raise
                run.log_weight = -math.inf
                run.reject(f"condition raised: {_label(constraint, index, origin)}: {exc}")
                return False
            if not holds:
                run.reject(f"condition failed: {_label(constraint, index, origin)}")
                if short_circuit:
                    return False
        elif isinstance(constraint, Observe):
            run.observed = True
            try:
                log_likelihood = constraint.log_likelihood(run.values)
            except NUMERIC_ERRORS:
                if enforce and not recover:
                    raise
                log_likelihood = -math.inf
            run.log_weight += log_likelihood
            if log_likelihood == -math.inf and enforce:
                run.reject(f"zero likelihood: {_label(constraint, index, origin)}")
                if short_circuit:
                    return False
    return True
