"""
Tests for the model builder and model execution.

Progressive sizing:
- Small: model assembly, validation errors (instant)
- Medium: single executions, constraints, bodies, determinism (instant)
"""

import math

import numpy as np
import pytest

from inferme.distributions import make
from inferme.errors import DependencyError, DuplicateNameError, InvalidParameter, OutOfSupport
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
    model_result,
    observe,
    observe1,
    with_priors,
)


def coin_builder() -> ModelBuilder:
    builder = ModelBuilder("coin")
    builder.variable("p", make("uniform-real"))
    builder.observe1(lambda p: make("binomial", trials=5, p=p), 2)
    return builder


# ============================================================================
# SMALL TESTS: assembly and validation
# ============================================================================

def test_small_builder_plan_order():
    """Test that the plan keeps declaration order."""
    model = (
        ModelBuilder("m")
        .variable("a", make("bernoulli", p=0.5))
        .derived("double", lambda a: 2 * a)
        .variable("b", make("bernoulli", p=0.5))
        .derived("total", lambda double, b: double + b)
        .build()
    )
    assert [t.name for t in model.plan] == ["a", "double", "b", "total"]
    assert model.latent_names == ("a", "b")
    assert model.names == ("a", "double", "b", "total")


def test_small_inputs_inferred_from_signature():
    """Test that callable inputs default to parameter names."""
    term = Derived("y2", lambda Y: Y ** 2)
    assert term.inputs == ("Y",)
    explicit = Derived("y2", lambda v: v ** 2, inputs=("Y",))
    assert explicit.inputs == ("Y",)
    assert Condition(lambda a, b=1: a > b).inputs == ("a",)


def test_small_forward_reference_raises():
    """Test that referencing a later name fails at build time."""
    builder = ModelBuilder("m")
    with pytest.raises(DependencyError, match="undefined name"):
        builder.derived("y", lambda x: x + 1)


def test_small_constraint_dependency_raises():
    """Test that constraints may only reference plan names."""
    builder = ModelBuilder("m").variable("x", make("uniform-real"))
    with pytest.raises(DependencyError):
        builder.condition(lambda z: z > 0)


def test_small_duplicate_name_raises():
    """Test that names must be unique across variables, derived terms and results."""
    builder = ModelBuilder("m").variable("x", make("uniform-real"))
    with pytest.raises(DuplicateNameError, match="already defined"):
        builder.variable("x", make("uniform-real"))
    with pytest.raises(DuplicateNameError):
        builder.derived("x", lambda x: x)
    builder.result("r", lambda x: x)
    with pytest.raises(DuplicateNameError):
        builder.result("r", lambda x: x)


def test_small_build_model_function():
    """Test the one-call builder."""
    model = build_model(
        declarations=[("Y", make("uniform-real"))],
        derived_terms=[("Y2", lambda Y: Y ** 2)],
        constraints=[Condition(lambda Y: Y < 0.5)],
        result_spec={"half": lambda Y2: Y2 / 2},
        name="model1",
    )
    assert isinstance(model, Model)
    assert model.latent_names == ("Y",)
    assert model.has_conditions
    assert not model.has_observations
    assert [r.name for r in model.results] == ["half"]


def test_small_build_model_derived_after_declarations():
    """Test that a declaration cannot depend on a derived term in build_model."""
    with pytest.raises(DependencyError):
        build_model(
            declarations=[
                ("x", make("uniform-real")),
                Variable("y", lambda z: make("bernoulli", p=z)),
            ],
            derived_terms=[("z", lambda x: x / 2)],
        )


def test_small_tuple_prior():
    """Test (family, params) tuples as priors."""
    model = defmodel([("p", ("beta", {"alpha": 10, "beta": 10}))])
    assert model.variables[0].fixed_prior == make("beta", alpha=10, beta=10)


def test_small_model_is_immutable():
    """Test that models cannot be mutated."""
    model = coin_builder().build()
    with pytest.raises(AttributeError):
        model.name = "other"


def test_small_body_dependency_checked():
    """Test that body parameters must name plan terms."""
    with pytest.raises(DependencyError):
        defmodel([("p", make("uniform-real"))], body=lambda q: model_result())


def test_small_model_result_rejects_foreign_constraints():
    """Test that model_result only takes constraint terms."""
    with pytest.raises(TypeError):
        model_result([True])


# ============================================================================
# MEDIUM TESTS: execution
# ============================================================================

def test_medium_execute_records_all_names():
    """Test that a trace has variables, derived terms and results."""
    model = build_model(
        [("Y", make("uniform-real"))],
        [("Y2", lambda Y: Y ** 2)],
        result_spec={"Y3": lambda Y, Y2: Y * Y2},
    )
    trace = execute(model, np.random.default_rng(1))
    assert trace.accepted
    assert set(trace.values) == {"Y", "Y2", "Y3"}
    assert math.isclose(trace["Y2"], trace["Y"] ** 2)
    assert math.isclose(trace["Y3"], trace["Y"] ** 3)
    assert trace.log_prior == 0.0
    assert trace.log_weight == 0.0


def test_medium_execute_is_deterministic():
    """Test referential transparency under a fixed generator state."""
    model = coin_builder().build()
    a = execute(model, np.random.default_rng(123))
    b = execute(model, np.random.default_rng(123))
    assert a == b


def test_medium_failed_condition_rejects():
    """Test that a false condition rejects and records the cause."""
    model = (
        ModelBuilder("m")
        .variable("Y", make("uniform-real"))
        .condition(lambda Y: Y > 2.0, name="never")
        .result("Y2", lambda Y: Y ** 2)
        .build()
    )
    trace = execute(model, np.random.default_rng(0))
    assert not trace.accepted
    assert trace.rejection_cause == "condition failed: never"
    assert "Y2" not in trace
    assert trace.conditioned


def test_medium_conditions_skipped_when_not_enforced():
    """Test that forward-style execution ignores conditions."""
    model = ModelBuilder("m").variable("Y", make("uniform-real")).condition(lambda Y: Y > 2.0).build()
    trace = execute(model, np.random.default_rng(0), enforce_constraints=False)
    assert trace.accepted
    assert trace.conditioned


def test_medium_observation_weight():
    """Test that observations contribute their log-likelihood."""
    model = coin_builder().build()
    trace = execute(model, assignment={"p": 0.4})
    expected = make("binomial", trials=5, p=0.4).log_density(2)
    assert trace.accepted
    assert trace.observed
    assert math.isclose(trace.log_weight, expected)
    assert math.isclose(trace.log_posterior, expected)


def test_medium_observe_many():
    """Test i.i.d. observations sum their log-likelihoods."""
    d = make("bernoulli", p=0.25)
    model = ModelBuilder("m").variable("x", make("uniform-real")).observe(d, [1, 0, 0]).build()
    trace = execute(model, assignment={"x": 0.5})
    assert math.isclose(trace.log_weight, math.log(0.25) + 2 * math.log(0.75))


def test_medium_assignment_out_of_support():
    """Test out-of-support assignments: raise, or -inf when recovering."""
    model = coin_builder().build()
    with pytest.raises(OutOfSupport):
        execute(model, assignment={"p": 1.5})
    trace = execute(model, assignment={"p": 1.5}, short_circuit=True, recover=True)
    assert not trace.accepted
    assert trace.log_posterior == -math.inf


def test_medium_invalid_derived_parameter_recovered():
    """Test invalid likelihood parameters become -inf when recovering."""
    model = (
        ModelBuilder("m")
        .variable("x", make("normal"))
        .observe1(lambda x: make("bernoulli", p=x), 1)
        .build()
    )
    with pytest.raises(InvalidParameter):
        execute(model, assignment={"x": 3.0})
    trace = execute(model, assignment={"x": 3.0}, recover=True)
    assert not trace.accepted
    assert trace.log_weight == -math.inf


def test_medium_numeric_errors_recovered():
    """Test that errors raised by derived terms and predicates become -inf."""
    model = (
        ModelBuilder("m")
        .variable("x", make("normal"))
        .derived("s", lambda x: math.sqrt(x))
        .build()
    )
    with pytest.raises(ValueError, match="math domain error"):
        execute(model, assignment={"x": -1.0})
    trace = execute(model, assignment={"x": -1.0}, recover=True)
    assert not trace.accepted
    assert trace.log_posterior == -math.inf
    assert "derived term 's' failed" in trace.rejection_cause

    ratio = ModelBuilder("m").variable("x", make("normal")).condition(lambda x: 1 / x > 0, name="inverse").build()
    with pytest.raises(ZeroDivisionError):
        execute(ratio, assignment={"x": 0.0})
    trace = execute(ratio, assignment={"x": 0.0}, recover=True)
    assert not trace.accepted
    assert trace.log_posterior == -math.inf
    assert trace.rejection_cause.startswith("condition raised: inverse")


def test_medium_hierarchical_prior():
    """Test priors whose parameters depend on earlier values."""
    model = (
        ModelBuilder("m")
        .variable("p", make("beta", alpha=2, beta=2))
        .variable("k", lambda p: make("binomial", trials=10, p=p))
        .build()
    )
    trace = execute(model, assignment={"p": 0.3, "k": 4})
    expected = (
        make("beta", alpha=2, beta=2).log_density(0.3)
        + make("binomial", trials=10, p=0.3).log_density(4)
    )
    assert math.isclose(trace.log_prior, expected)


def test_medium_body_constraints_and_results():
    """Test the tutorial model1: condition in body, derived result."""

    @with_priors(Y=("uniform-real", {}))
    def model1(Y):
        return model_result([condition(Y < 0.5)], {"Y2": Y ** 2})

    rng = np.random.default_rng(3)
    traces = [execute(model1, rng) for _ in range(50)]
    for trace in traces:
        if trace.accepted:
            assert trace["Y"] < 0.5
            assert math.isclose(trace["Y2"], trace["Y"] ** 2)
        else:
            assert trace["Y"] >= 0.5
            assert "Y2" not in trace
    assert any(t.accepted for t in traces)
    assert any(not t.accepted for t in traces)


def test_medium_body_observe1():
    """Test observe1 inside a model body."""

    @with_priors(p=("beta", {"alpha": 10, "beta": 10}))
    def coin(p):
        return model_result([observe1(make("binomial", trials=5, p=p), 2)])

    trace = execute(coin, assignment={"p": 0.5})
    assert trace.observed
    assert math.isclose(trace.log_weight, math.log(10 / 32))


def test_medium_body_result_name_clash():
    """Test that body results may not overwrite plan names."""
    clash = defmodel([("x", make("uniform-real"))], body=lambda x: model_result(results={"x": 1}))
    with pytest.raises(DuplicateNameError):
        execute(clash, np.random.default_rng(0))


def test_medium_unassigned_without_rng():
    """Test that sampling requires an explicit random source."""
    with pytest.raises(ValueError, match="no rng"):
        execute(coin_builder().build())


def test_medium_trace_collection_accessors():
    """Test TraceCollection accessors and counters."""
    collection = TraceCollection()
    for value in [1, 0, 1, 1]:
        collection.append(Trace({"x": value}))
    collection.proposed = 8
    collection.accepted = 4
    assert len(collection) == 4
    assert collection.acceptance_ratio == 0.5
    np.testing.assert_array_equal(collection.trace("x"), [1, 0, 1, 1])
    assert collection.frequencies("x") == {0: 1, 1: 3}
    assert collection.mean("x") == 0.75
    assert collection.names == ("x",)
    with pytest.raises(KeyError, match="Unknown trace name"):
        collection.trace("y")
    with pytest.raises(ValueError):
        collection.append(Trace({"x": 1}, accepted=False))
    assert TraceCollection().acceptance_ratio == 0.0


def test_medium_trace_is_immutable():
    """Test that traces cannot be modified."""
    trace = Trace({"x": 1})
    with pytest.raises(TypeError):
        trace.values["x"] = 2
    with pytest.raises(AttributeError):
        trace.accepted = False


def test_medium_observe_term_repr():
    """Test that Observe with a fixed distribution needs no inputs."""
    term = Observe(make("bernoulli", p=0.5), 1)
    assert term.inputs == ()
    assert "Observe" in repr(term)
    assert observe(make("bernoulli", p=0.5), [1, 1]).value == (1, 1)
