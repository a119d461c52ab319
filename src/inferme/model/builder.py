"""
Model graph builder.

Turns a declarative model description into an immutable, validated Model:
- an execution plan (latent variables and derived terms in dependency order),
- a list of constraints (conditions and observations),
- result terms computed on accepted executions,
- an optional model body (the tutorial's `defmodel` form) returning
  constraints and results built from the current values.

All references are checked once here, so executing a model never re-validates
names. The builder performs no sampling.

Example (coin with a Beta prior, 2 heads out of 5 flips):

    builder = ModelBuilder("coin")
    builder.variable("p", make("beta", alpha=10, beta=10))
    builder.observe1(lambda p: make("binomial", trials=5, p=p), 2)
    model = builder.build()

Equivalent `defmodel` form:

    @with_priors(p=("beta", {"alpha": 10, "beta": 10}))
    def coin(p):
        return model_result([observe1(make("binomial", trials=5, p=p), 2)])
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from inferme.errors import DependencyError, DuplicateNameError
from inferme.model.terms import (
    Condition,
    Constraint,
    Derived,
    Observe,
    PriorLike,
    Variable,
    _infer_inputs,
)

PlanTerm = Union[Variable, Derived]


class Model:
    """
    Validated, immutable model.

    Build with ModelBuilder, build_model or defmodel rather than directly.

    Attributes
    ----------
    name : str
        Label used in logs and reprs.
    plan : Tuple[Variable | Derived, ...]
        Execution order; every term only references earlier names.
    constraints : Tuple[Condition | Observe, ...]
        Evaluated after the plan.
    results : Tuple[Derived, ...]
        Output terms computed on accepted executions.
    body : callable, optional
        Model body returning a ModelResult, called with `body_inputs`.
    """

    def __init__(
        self,
        plan: Sequence[PlanTerm],
        constraints: Sequence[Constraint] = (),
        results: Sequence[Derived] = (),
        body: Optional[Callable[..., Any]] = None,
        body_inputs: Sequence[str] = (),
        name: str = "model",
    ) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "plan", tuple(plan))
        object.__setattr__(self, "constraints", tuple(constraints))
        object.__setattr__(self, "results", tuple(results))
        object.__setattr__(self, "body", body)
        object.__setattr__(self, "body_inputs", tuple(body_inputs))
        object.__setattr__(
            self, "variables", tuple(t for t in self.plan if isinstance(t, Variable))
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Model is immutable")

    @property
    def latent_names(self) -> Tuple[str, ...]:
        """Latent variable names in declaration order."""
        return tuple(v.name for v in self.variables)

    @property
    def names(self) -> Tuple[str, ...]:
        """All statically known names: plan terms then results."""
        return tuple(t.name for t in self.plan) + tuple(r.name for r in self.results)

    @property
    def has_observations(self) -> bool:
        return any(isinstance(c, Observe) for c in self.constraints)

    @property
    def has_conditions(self) -> bool:
        return any(isinstance(c, Condition) for c in self.constraints)

    def __repr__(self) -> str:
        return (
            f"Model(name={self.name!r}, latent={list(self.latent_names)}, "
            f"derived={len(self.plan) - len(self.variables)}, "
            f"constraints={len(self.constraints)}, results={len(self.results)}, "
            f"body={self.body is not None})"
        )


class ModelBuilder:
    """
    Incremental model builder.

    Terms are validated as they are added: each may only reference names
    defined before it, and names must be unique.
    """

    def __init__(self, name: str = "model") -> None:
        self.name = name
        self._plan: List[PlanTerm] = []
        self._constraints: List[Constraint] = []
        self._results: List[Derived] = []
        self._body: Optional[Callable[..., Any]] = None
        self._body_inputs: Tuple[str, ...] = ()
        self._defined: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _claim(self, name: str, kind: str) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError(f"{kind} name must be a non-empty string. Got {name!r}")
        if name in self._defined:
            raise DuplicateNameError(
                f"Name '{name}' is already defined as a {self._defined[name]} "
                f"in model '{self.name}'"
            )
        self._defined[name] = kind

    def _require(self, inputs: Iterable[str], what: str, allowed: Optional[Iterable[str]] = None) -> None:
        known = set(self._defined if allowed is None else allowed)
        missing = [name for name in inputs if name not in known]
        if missing:
            raise DependencyError(
                f"{what} references undefined name(s) {missing} in model '{self.name}'. "
                f"Defined so far: {sorted(known)}"
            )

    def _plan_names(self) -> List[str]:
        return [t.name for t in self._plan]

    # ------------------------------------------------------------------
    # Terms
    # ------------------------------------------------------------------

    def add(self, term: Union[PlanTerm, Constraint]) -> "ModelBuilder":
        """Add a prebuilt Variable, Derived, Condition or Observe term."""
        if isinstance(term, (Variable, Derived)):
            if self._results:
                raise DependencyError(
                    f"{term.kind.capitalize()} '{term.name}' added after result terms"
                )
            self._require(term.inputs, f"{term.kind.capitalize()} '{term.name}'")
            self._claim(term.name, term.kind)
            self._plan.append(term)
        elif isinstance(term, (Condition, Observe)):
            label = term.name or f"{term.kind}[{len(self._constraints)}]"
            self._require(term.inputs, f"Constraint '{label}'", allowed=self._plan_names())
            self._constraints.append(term)
        else:
            raise TypeError(f"Unsupported model term {term!r}")
        return self

    def variable(self, name: str, prior: PriorLike, inputs: Optional[Iterable[str]] = None) -> "ModelBuilder":
        """Declare a latent variable with its prior."""
        return self.add(Variable(name, prior, inputs))

    def derived(self, name: str, fn: Callable[..., Any], inputs: Optional[Iterable[str]] = None) -> "ModelBuilder":
        """Declare a deterministic term."""
        return self.add(Derived(name, fn, inputs))

    def condition(
        self,
        predicate: Callable[..., bool],
        inputs: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
    ) -> "ModelBuilder":
        """Add a hard constraint."""
        return self.add(Condition(predicate, inputs, name))

    def observe(
        self,
        distribution: PriorLike,
        values: Iterable[Any],
        inputs: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
    ) -> "ModelBuilder":
        """Observe a sequence of i.i.d. values."""
        return self.add(Observe(distribution, values, inputs, name, multiple=True))

    def observe1(
        self,
        distribution: PriorLike,
        value: Any,
        inputs: Optional[Iterable[str]] = None,
        name: Optional[str] = None,
    ) -> "ModelBuilder":
        """Observe a single value."""
        return self.add(Observe(distribution, value, inputs, name))

    def result(self, name: str, fn: Callable[..., Any], inputs: Optional[Iterable[str]] = None) -> "ModelBuilder":
        """Add a named output computed on accepted executions."""
        term = fn if isinstance(fn, Derived) else Derived(name, fn, inputs)
        self._require(term.inputs, f"Result '{name}'")
        self._claim(name, "result")
        self._results.append(term if term.name == name else Derived(name, term.fn, term.inputs))
        return self

    def body(self, fn: Callable[..., Any], inputs: Optional[Iterable[str]] = None) -> "ModelBuilder":
        """
        Set the model body.

        The body is called after the plan with the values named in `inputs`
        (default: its positional parameter names) and must return a
        ModelResult.
        """
        if self._body is not None:
            raise ValueError(f"Model '{self.name}' already has a body")
        body_inputs = _infer_inputs(fn, inputs)
        self._require(body_inputs, "Model body", allowed=self._plan_names())
        self._body = fn
        self._body_inputs = body_inputs
        return self

    def build(self) -> Model:
        """Assemble the immutable Model."""
        return Model(
            plan=self._plan,
            constraints=self._constraints,
            results=self._results,
            body=self._body,
            body_inputs=self._body_inputs,
            name=self.name,
        )

    def __repr__(self) -> str:
        return (
            f"ModelBuilder(name={self.name!r}, plan={len(self._plan)}, "
            f"constraints={len(self._constraints)}, results={len(self._results)})"
        )


def _as_variable(declaration: Any) -> Variable:
    if isinstance(declaration, Variable):
        return declaration
    name, prior = declaration
    return Variable(name, prior)


def _as_derived(term: Any) -> Derived:
    if isinstance(term, Derived):
        return term
    name, fn = term
    return Derived(name, fn)


def build_model(
    declarations: Iterable[Any],
    derived_terms: Iterable[Any] = (),
    constraints: Iterable[Constraint] = (),
    result_spec: Optional[Mapping[str, Any]] = None,
    body: Optional[Callable[..., Any]] = None,
    name: str = "model",
) -> Model:
    """
    Build a Model in one call.

    Parameters
    ----------
    declarations : Iterable[Variable | (name, prior)]
        Latent variables in declaration order.
    derived_terms : Iterable[Derived | (name, fn)]
        Deterministic terms, executed after all declarations.
    constraints : Iterable[Condition | Observe]
        Conditions and observations.
    result_spec : Mapping[str, callable | Derived], optional
        Named outputs.
    body : callable, optional
        Model body returning a ModelResult.
    name : str
        Model label.

    Returns
    -------
    model : Model

    Raises
    ------
    DependencyError
        If a term references a name not defined before it.
    DuplicateNameError
        If a name is defined twice.
    """
    builder = ModelBuilder(name)
    for declaration in declarations:
        builder.add(_as_variable(declaration))
    for term in derived_terms:
        builder.add(_as_derived(term))
    for constraint in constraints:
        builder.add(constraint)
    if body is not None:
        builder.body(body)
    for result_name, fn in (result_spec or {}).items():
        builder.result(result_name, fn)
    return builder.build()


def defmodel(
    priors: Union[Sequence[Tuple[str, PriorLike]], Mapping[str, PriorLike]],
    body: Optional[Callable[..., Any]] = None,
    name: str = "model",
) -> Model:
    """
    Tutorial-style model definition.

    Parameters
    ----------
    priors : sequence of (name, prior) pairs, or mapping
        Latent variables and their priors, in order. A prior is a
        Distribution or a (family, params) tuple.
    body : callable, optional
        Receives the latent values (by parameter name) and returns
        model_result(constraints, results).
    name : str
        Model label.
    """
    pairs = priors.items() if isinstance(priors, Mapping) else priors
    return build_model([Variable(n, p) for n, p in pairs], body=body, name=name)


def with_priors(**priors: PriorLike) -> Callable[[Callable[..., Any]], Model]:
    """
    Decorator form of defmodel.

        @with_priors(Y=("uniform-real", {}))
        def model1(Y):
            return model_result([condition(Y < 0.5)], {"Y2": Y ** 2})
    """
    def decorate(fn: Callable[..., Any]) -> Model:
        return defmodel(list(priors.items()), body=fn, name=fn.__name__)
    return decorate
