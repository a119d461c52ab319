"""
Unit tests for the random source factory.

Tests cover:
- Algorithm tags and seeding
- Independent spawned streams
- Error handling
"""

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from inferme.random import (
    BIT_GENERATORS,
    coerce_random_source,
    make_random_source,
    spawn_random_sources,
)


class TestMakeRandomSource:
    """Tests for make_random_source."""

    @pytest.mark.parametrize("algorithm", sorted(BIT_GENERATORS))
    def test_seeded_streams_repeat(self, algorithm: str) -> None:
        """Test that a fixed seed reproduces the stream for every algorithm."""
        a = make_random_source(algorithm, 1337).random(5)
        b = make_random_source(algorithm, 1337).random(5)
        assert_array_equal(a, b)

    def test_tag_spelling(self) -> None:
        """Test case and separator insensitivity."""
        a = make_random_source("PCG64-DXSM", 1).random(3)
        b = make_random_source("pcg64dxsm", 1).random(3)
        assert_array_equal(a, b)

    def test_unknown_algorithm(self) -> None:
        """Test that unknown tags raise ValueError."""
        with pytest.raises(ValueError, match="Unknown random source"):
            make_random_source("isaac", 1)


class TestSpawnRandomSources:
    """Tests for spawn_random_sources."""

    def test_streams_are_independent(self) -> None:
        """Test that spawned streams differ and are reproducible."""
        first = [g.random(4) for g in spawn_random_sources(3, seed=7)]
        second = [g.random(4) for g in spawn_random_sources(3, seed=7)]
        for a, b in zip(first, second):
            assert_array_equal(a, b)
        assert not np.array_equal(first[0], first[1])

    def test_invalid_count(self) -> None:
        """Test that at least one stream is required."""
        with pytest.raises(ValueError, match="must be positive"):
            spawn_random_sources(0)


class TestCoerceRandomSource:
    """Tests for coerce_random_source."""

    def test_passthrough(self) -> None:
        """Test that a given generator is returned unchanged."""
        rng = np.random.default_rng(0)
        assert coerce_random_source(rng) is rng

    def test_rejects_legacy_state(self) -> None:
        """Test that legacy RandomState objects are refused."""
        with pytest.raises(TypeError, match="numpy Generator"):
            coerce_random_source(np.random.RandomState(0))
