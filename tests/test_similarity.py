"""
Tests for the vector math primitives.
"""

import math

import numpy as np
import pytest

from socialmatch.vector.similarity import clamp_score, cosine_similarity, dot_product, magnitude


def test_identical_vectors():
    assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_scale_invariance():
    assert cosine_similarity([1.0, 2.0, 3.0], [10.0, 20.0, 30.0]) == pytest.approx(1.0)


def test_symmetry():
    """cosine_similarity(a, b) == cosine_similarity(b, a)."""
    rng = np.random.default_rng(42)
    for _ in range(20):
        a = rng.normal(size=384).tolist()
        b = rng.normal(size=384).tolist()
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a), abs=1e-12)


@pytest.mark.parametrize("a,b", [
    (None, [1.0, 2.0]),
    ([1.0, 2.0], None),
    ([], []),
    ([1.0, 2.0], [1.0, 2.0, 3.0]),
    ([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]),
    ([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]),
])
def test_degenerate_inputs_return_zero(a, b):
    result = cosine_similarity(a, b)
    assert result == 0.0
    assert not math.isnan(result)


def test_accepts_numpy_arrays():
    a = np.array([1.0, 1.0])
    b = np.array([1.0, 0.0])
    assert cosine_similarity(a, b) == pytest.approx(1 / math.sqrt(2))


def test_large_dimension_is_stable():
    a = np.full(4096, 1e-3)
    assert cosine_similarity(a, a) == pytest.approx(1.0)


def test_dot_product_and_magnitude():
    assert dot_product([1.0, 2.0, 3.0], [4.0, 5.0, 6.0]) == pytest.approx(32.0)
    assert dot_product([1.0], [1.0, 2.0]) == 0.0
    assert magnitude([3.0, 4.0]) == pytest.approx(5.0)
    assert magnitude(None) == 0.0


def test_clamp_score():
    assert clamp_score(-0.3) == 0.0
    assert clamp_score(1.2) == 1.0
    assert clamp_score(0.42) == pytest.approx(0.42)
    assert clamp_score(float("nan")) == 0.0
