"""
End-to-end tests for the tutorial scenarios.

Tests cover:
- Rejection sampling with a hard condition (model1)
- Forward sampling of binomial counts (binomial-model-1, binomial-model-2)
- Metropolis-Hastings on the coin models (conjugacy check)
- Determinism under a fixed seed
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from inferme import (
    ModelBuilder,
    build_model,
    condition,
    defmodel,
    distr,
    infer,
    make,
    model_result,
    observe1,
    trace,
    with_priors,
)

COIN1_TRIALS = 5
COIN1_HEADS = 2
COIN1_TAILS = COIN1_TRIALS - COIN1_HEADS


@with_priors(Y=("uniform-real", {}))
def model1(Y):
    return model_result([condition(Y < 0.5)], {"Y2": Y ** 2})


binomial_model_1 = build_model(
    declarations=[(f"flip{i}", make("bernoulli", p=0.5)) for i in range(3)],
    result_spec={"total": lambda flip0, flip1, flip2: flip0 + flip1 + flip2},
    name="binomial-model-1",
)

binomial_model_2 = defmodel(
    [("total", ("binomial", {"trials": 3, "p": 0.5}))],
    name="binomial-model-2",
)


@with_priors(p=("beta", {"alpha": 10, "beta": 10}))
def coin_model_2(p):
    coin_flipping = distr("binomial", {"trials": COIN1_TRIALS, "p": p})
    return model_result([observe1(coin_flipping, COIN1_HEADS)])


coin_model_3 = defmodel(
    [("p", ("beta", {"alpha": 10 + COIN1_HEADS, "beta": 10 + COIN1_TAILS}))],
    name="coin-model-3",
)


class TestRejectionSampling:
    """Tests for model1: uniform Y conditioned on Y < 1/2."""

    def test_conditional_distribution(self) -> None:
        """Test that Y | Y < 1/2 is uniform on [0, 1/2)."""
        result = infer("rejection-sampling", model1, {"samples": 2000, "max-attempts": 100000, "seed": 1337})
        ys = trace(result, "Y")
        assert len(ys) == 2000
        assert np.all(ys < 0.5)
        assert abs(ys.mean() - 0.25) < 0.02
        assert_allclose(trace(result, "Y2"), ys ** 2)

    def test_conditional_probability(self) -> None:
        """Test P(Y > 1/3 | Y < 1/2) = 1/3."""
        result = infer("rejection-sampling", model1, {"samples": 3000, "max-attempts": 100000, "seed": 7})
        above = np.mean(trace(result, "Y") > 1 / 3)
        assert abs(above - 1 / 3) < 0.03
        assert abs(result.acceptance_ratio - 0.5) < 0.05

    def test_default_sample_count(self) -> None:
        """Test that omitting samples collects 1000 traces."""
        result = infer("rejection-sampling", model1, {"max-attempts": 100000, "seed": 3})
        assert len(result) == 1000
        assert result.completed


class TestForwardSampling:
    """Tests for the binomial count models."""

    @pytest.mark.parametrize("model", [binomial_model_1, binomial_model_2], ids=lambda m: m.name)
    def test_binomial_frequencies(self, model) -> None:
        """Test that counts match the Binomial(3, 0.5) pmf."""
        result = infer("forward-sampling", model, {"samples": 10000, "seed": 42})
        assert len(result) == 10000
        assert all(t.accepted for t in result.traces)

        freqs = result.frequencies("total")
        assert set(freqs) <= {0, 1, 2, 3}
        expected = {0: 1 / 8, 1: 3 / 8, 2: 3 / 8, 3: 1 / 8}
        for value, p in expected.items():
            assert abs(freqs.get(value, 0) / 10000 - p) < 0.03, (value, freqs)


class TestMetropolisHastings:
    """Tests for the coin models."""

    def test_uniform_prior_posterior_mean(self) -> None:
        """Test coin-model-1: uniform prior, posterior Beta(3, 4)."""
        coin_model_1 = (
            ModelBuilder("coin-model-1")
            .variable("p", make("uniform-real"))
            .observe1(lambda p: make("binomial", trials=COIN1_TRIALS, p=p), COIN1_HEADS)
            .build()
        )
        result = infer(
            "metropolis-hastings", coin_model_1,
            {"samples": 2000, "thin": 5, "burn": 500, "steps": [0.2], "seed": 1},
        )
        assert 0.0 < result.acceptance_ratio < 1.0
        assert abs(result.mean("p") - 3 / 7) < 0.03

    def test_conjugacy(self) -> None:
        """Test Beta(10, 10) prior + 2 of 5 heads gives the Beta(12, 13) mean."""
        result = infer(
            "metropolis-hastings", coin_model_2,
            {"samples": 2000, "thin": 5, "burn": 500, "steps": [0.2], "seed": 2021},
        )
        assert result.completed
        assert len(result) == 2000
        assert abs(result.mean("p") - 12 / 25) < 0.03
        assert 0.0 <= result.acceptance_ratio <= 1.0

    def test_conjugate_prior_matches_sampled_posterior(self) -> None:
        """Test coin-model-3 (closed-form posterior as prior) agrees with coin-model-2."""
        sampled = infer(
            "metropolis-hastings", coin_model_2,
            {"samples": 1500, "thin": 5, "burn": 500, "steps": [0.2], "seed": 5},
        )
        conjugate = infer(
            "metropolis-hastings", coin_model_3,
            {"samples": 1500, "thin": 5, "burn": 500, "steps": [0.2], "seed": 6},
        )
        assert abs(sampled.mean("p") - conjugate.mean("p")) < 0.04
        assert abs(np.std(sampled.trace("p")) - math.sqrt(12 * 13 / (25 ** 2 * 26))) < 0.02

    def test_thinning_reduces_autocorrelation(self) -> None:
        """Test that thinned chains are less autocorrelated."""
        from inferme.inference import DiagnosticsComputer

        dense = infer("metropolis-hastings", coin_model_2, {"samples": 1000, "steps": [0.05], "seed": 3})
        thinned = infer("metropolis-hastings", coin_model_2, {"samples": 1000, "thin": 10, "steps": [0.05], "seed": 3})
        assert (
            DiagnosticsComputer.autocorrelation(thinned.trace("p"))
            < DiagnosticsComputer.autocorrelation(dense.trace("p"))
        )


class TestDeterminism:
    """Tests for reproducibility under fixed seeds."""

    def test_same_seed_same_traces(self) -> None:
        """Test identical configuration and seed reproduce the collection."""
        config = {"samples": 300, "thin": 2, "steps": [0.2], "seed": 99}
        a = infer("metropolis-hastings", coin_model_2, config)
        b = infer("metropolis-hastings", coin_model_2, config)
        assert_array_equal(a.trace("p"), b.trace("p"))
        assert a.acceptance_ratio == b.acceptance_ratio

    def test_random_source_algorithms(self) -> None:
        """Test that the random source tag changes the stream."""
        a = infer("forward-sampling", binomial_model_2, {"samples": 50, "seed": 1, "random-source": "mt19937"})
        b = infer("forward-sampling", binomial_model_2, {"samples": 50, "seed": 1, "random-source": "mt19937"})
        c = infer("forward-sampling", binomial_model_2, {"samples": 50, "seed": 1, "random-source": "philox"})
        assert_array_equal(a.trace("total"), b.trace("total"))
        assert not np.array_equal(a.trace("total"), c.trace("total"))
