"""
Tests for distance metrics.

These tests verify that our distance functions correctly measure how far apart vectors are.
We test with known vector pairs to ensure the math is correct, including the
[0, 2] range of cosine distance.
"""

import numpy as np
import pytest
from hnswlite.hnsw.distance import (
    DistanceMetric,
    cosine_similarity,
    cosine_distance,
    cosine_distances,
    euclidean_distance,
    euclidean_distances,
    get_distance_function,
)


def test_cosine_similarity_identical_vectors():
    """Identical vectors should have similarity of 1.0"""
    v1 = np.array([1.0, 2.0, 3.0])
    v2 = np.array([1.0, 2.0, 3.0])

    assert np.isclose(cosine_similarity(v1, v2), 1.0), "Identical vectors should have similarity 1.0"


def test_cosine_similarity_orthogonal_vectors():
    """Orthogonal (perpendicular) vectors should have similarity of 0.0"""
    v1 = np.array([1.0, 0.0, 0.0])
    v2 = np.array([0.0, 1.0, 0.0])

    assert np.isclose(cosine_similarity(v1, v2), 0.0), "Orthogonal vectors should have similarity 0.0"


def test_cosine_similarity_zero_vector():
    """Zero vectors should return 0.0 (edge case handling)"""
    v1 = np.array([1.0, 2.0, 3.0])
    v2 = np.array([0.0, 0.0, 0.0])

    assert cosine_similarity(v1, v2) == 0.0, "Zero vector should return similarity 0.0"
    assert cosine_distance(v1, v2) == 1.0


def test_cosine_distance_same_direction_is_zero():
    """Vectors differing only by a positive scale have distance 0"""
    v1 = np.array([1.0, 2.0, 3.0])
    v2 = np.array([10.0, 20.0, 30.0])

    assert np.isclose(cosine_distance(v1, v2), 0.0, atol=1e-12)


def test_cosine_distance_opposite_is_two():
    """Exactly opposite vectors have distance 2, not a [0, 1]-clamped value"""
    v1 = np.array([1.0, 2.0, 3.0])
    v2 = np.array([-2.0, -4.0, -6.0])

    assert np.isclose(cosine_distance(v1, v2), 2.0)


def test_cosine_distance_orthogonal_is_one():
    """Orthogonal vectors sit in the middle of the range"""
    assert np.isclose(cosine_distance(np.array([1.0, 0.0]), np.array([0.0, 3.0])), 1.0)


def test_cosine_distance_never_negative():
    """Rounding must not push distance below 0 for identical vectors"""
    rng = np.random.default_rng(3)
    for _ in range(50):
        v = rng.normal(size=17)
        assert cosine_distance(v, v) >= 0.0


def test_euclidean_distance():
    """L2 distance of a 3-4-5 triangle"""
    v1 = np.array([0.0, 0.0])
    v2 = np.array([3.0, 4.0])

    assert np.isclose(euclidean_distance(v1, v2), 5.0)
    assert euclidean_distance(v1, v1) == 0.0


def test_batched_matches_pairwise():
    """Batched distances agree with the pairwise functions"""
    rng = np.random.default_rng(11)
    query = rng.normal(size=8)
    matrix = rng.normal(size=(5, 8))

    cos = cosine_distances(query, matrix)
    l2 = euclidean_distances(query, matrix)

    for i, row in enumerate(matrix):
        assert np.isclose(cos[i], cosine_distance(query, row))
        assert np.isclose(l2[i], euclidean_distance(query, row))


def test_get_distance_function():
    """Metric lookup accepts enum members and names"""
    assert get_distance_function(DistanceMetric.COSINE) is cosine_distances
    assert get_distance_function("euclidean") is euclidean_distances

    with pytest.raises(ValueError):
        get_distance_function("manhattan")
