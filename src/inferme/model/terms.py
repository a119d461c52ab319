"""
Model terms: the building blocks of a model description.

    Variable   latent random variable with a prior
    Derived    deterministic function of earlier values
    Condition  hard constraint; a false predicate rejects the execution
    Observe    likelihood term; adds log p(observed | distribution) to the weight

Every callable term names its inputs. If `inputs` is omitted, the names of the
callable's positional parameters are used:

    Derived("Y2", lambda Y: Y ** 2)                 # inputs ("Y",)
    Observe(lambda p: make("binomial", trials=5, p=p), 2)

The tutorial's model-body helpers (`condition`, `observe1`, `observe`,
`model_result`) build the same terms from already computed values.
"""

from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
import inspect
import math

from inferme.distributions.distribution import Distribution, make

PriorLike = Union[Distribution, Tuple[str, Mapping[str, Any]], Callable[..., Distribution]]


def _infer_inputs(fn: Callable, inputs: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Resolve the input names of a callable term."""
    if inputs is not None:
        if isinstance(inputs, str):
            return (inputs,)
        return tuple(inputs)
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return ()
    names = []
    for param in signature.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            if param.default is param.empty:
                names.append(param.name)
    return tuple(names)


def _call(fn: Callable, inputs: Tuple[str, ...], values: Mapping[str, Any]) -> Any:
    return fn(*[values[name] for name in inputs])


def as_distribution(prior: Any) -> Distribution:
    """Coerce a Distribution or a (family, params) pair into a Distribution."""
    if isinstance(prior, Distribution):
        return prior
    if isinstance(prior, str):
        return make(prior)
    if isinstance(prior, tuple) and len(prior) in (1, 2) and isinstance(prior[0], str):
        return make(*prior)
    raise TypeError(
        f"Expected a Distribution or a (family, params) tuple. Got {prior!r}"
    )


class _DistributionSource:
    """A fixed Distribution, or a callable building one from earlier values."""

    def __init__(self, source: Any, inputs: Optional[Iterable[str]]) -> None:
        if callable(source) and not isinstance(source, Distribution):
            self.builder: Optional[Callable[..., Distribution]] = source
            self.fixed: Optional[Distribution] = None
            self.inputs = _infer_inputs(source, inputs)
        else:
            self.builder = None
            self.fixed = as_distribution(source)
            self.inputs = ()

    def resolve(self, values: Mapping[str, Any]) -> Distribution:
        if self.fixed is not None:
            return self.fixed
        distribution = _call(self.builder, self.inputs, values)
        if not isinstance(distribution, Distribution):
            raise TypeError(
                f"Distribution builder returned {type(distribution).__name__}, "
                f"expected Distribution"
            )
        return distribution


class Variable:
    """
    Latent random variable declaration.

    Parameters
    ----------
    name : str
        Unique name within the model.
    prior : Distribution, (family, params) tuple, or callable
        Prior distribution. A callable receives the values named in `inputs`
        and returns a Distribution (hierarchical prior).
    inputs : Iterable[str], optional
        Names the prior builder depends on.
    """

    kind = "variable"

    def __init__(self, name: str, prior: PriorLike, inputs: Optional[Iterable[str]] = None) -> None:
        self.name = name
        self._source = _DistributionSource(prior, inputs)
        self.inputs = self._source.inputs

    def prior(self, values: Mapping[str, Any]) -> Distribution:
        return self._source.resolve(values)

    @property
    def fixed_prior(self) -> Optional[Distribution]:
        return self._source.fixed

    def __repr__(self) -> str:
        prior = self._source.fixed if self._source.fixed is not None else f"f{self.inputs}"
        return f"Variable({self.name!r}, {prior})"


class Derived:
    """Deterministic term: `name = fn(*inputs)`, recomputed on every execution."""

    kind = "derived"

    def __init__(self, name: str, fn: Callable[..., Any], inputs: Optional[Iterable[str]] = None) -> None:
        if not callable(fn):
            raise TypeError(f"Derived term '{name}' needs a callable. Got {fn!r}")
        self.name = name
        self.fn = fn
        self.inputs = _infer_inputs(fn, inputs)

    def compute(self, values: Mapping[str, Any]) -> Any:
        return _call(self.fn, self.inputs, values)

    def __repr__(self) -> str:
        return f"Derived({self.name!r}, inputs={self.inputs})"


class Condition:
    """Hard constraint over earlier values."""

    kind = "condition"

    def __init__(
        self,
        predicate: Callable[..., bool],
        inputs: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
    ) -> None:
        if not callable(predicate):
            raise TypeError(f"Condition needs a callable predicate. Got {predicate!r}")
        self.predicate = predicate
        self.inputs = _infer_inputs(predicate, inputs)
        self.name = name

    def holds(self, values: Mapping[str, Any]) -> bool:
        return bool(_call(self.predicate, self.inputs, values))

    def __repr__(self) -> str:
        return f"Condition(name={self.name!r}, inputs={self.inputs})"


class Observe:
    """
    Likelihood term binding a distribution to observed data.

    Parameters
    ----------
    distribution : Distribution, (family, params) tuple, or callable
        Likelihood distribution, or a builder over `inputs`.
    value : Any
        Observed value, or a sequence of i.i.d. observations if `multiple`.
    inputs : Iterable[str], optional
        Names the distribution builder depends on.
    name : str, optional
        Label used in rejection causes.
    multiple : bool
        Treat `value` as a sequence of observations. Default False.
    """

    kind = "observe"

    def __init__(
        self,
        distribution: PriorLike,
        value: Any,
        inputs: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
        multiple: bool = False,
    ) -> None:
        self._source = _DistributionSource(distribution, inputs)
        self.inputs = self._source.inputs
        self.value = tuple(value) if multiple else value
        self.multiple = multiple
        self.name = name

    def distribution(self, values: Mapping[str, Any]) -> Distribution:
        return self._source.resolve(values)

    def log_likelihood(self, values: Mapping[str, Any]) -> float:
        """
        Log-likelihood of the observed data.

        Raises
        ------
        OutOfSupport
            If an observation is impossible under the distribution.
        """
        distribution = self.distribution(values)
        if not self.multiple:
            return distribution.log_density(self.value)
        total = 0.0
        for observation in self.value:
            total += distribution.log_density(observation)
            if total == -math.inf:
                break
        return total

    def __repr__(self) -> str:
        return f"Observe(name={self.name!r}, inputs={self.inputs}, value={self.value!r})"


Constraint = Union[Condition, Observe]


class ModelResult:
    """Constraints and named results returned by a model body."""

    def __init__(
        self,
        constraints: Sequence[Constraint] = (),
        results: Optional[Mapping[str, Any]] = None,
    ) -> None:
        for constraint in constraints:
            if not isinstance(constraint, (Condition, Observe)):
                raise TypeError(
                    f"model_result constraints must come from condition/observe/observe1. "
                    f"Got {constraint!r}"
                )
        self.constraints = tuple(constraints)
        self.results: Dict[str, Any] = dict(results or {})

    def __repr__(self) -> str:
        return f"ModelResult(constraints={len(self.constraints)}, results={sorted(self.results)})"


# ============================================================================
# Model-body helpers
# ============================================================================

def condition(flag: Any, name: Optional[str] = None) -> Condition:
    """Condition on an already evaluated boolean."""
    holds = bool(flag)
    return Condition(lambda: holds, inputs=(), name=name)


def observe1(distribution: PriorLike, value: Any, name: Optional[str] = None) -> Observe:
    """Observe a single value under `distribution`."""
    return Observe(as_distribution(distribution), value, inputs=(), name=name)


def observe(distribution: PriorLike, values: Iterable[Any], name: Optional[str] = None) -> Observe:
    """Observe a sequence of i.i.d. values under `distribution`."""
    return Observe(as_distribution(distribution), values, inputs=(), name=name, multiple=True)


def model_result(
    constraints: Sequence[Constraint] = (),
    results: Optional[Mapping[str, Any]] = None,
) -> ModelResult:
    """Bundle constraints and named results from a model body."""
    return ModelResult(constraints, results)
