"""
Distance metrics for vector comparisons.

This module provides the functions the index uses to measure how far apart two
vectors are. Two metrics are supported:

- cosine: 1 - cosine_similarity. Ranges from 0 (same direction) to 2 (opposite
  directions). Magnitude is ignored, which suits text embeddings.
- euclidean: standard L2 distance. Ranges from 0 (identical) upwards.

Every metric comes in two shapes: a pairwise function (one vector against one
vector) and a batched function (one query against the rows of a matrix). The
index always goes through the batched form so that a distance reported by a
search is computed the same way no matter which code path produced it.
"""

from enum import Enum
from typing import Callable, Union
import numpy as np
import numpy.typing as npt

Vector = npt.NDArray[np.float64]
Matrix = npt.NDArray[np.float64]

BatchDistance = Callable[[Vector, Matrix], npt.NDArray[np.float64]]


class DistanceMetric(str, Enum):
    """Distance metric used by an index. Values are the config/wire names."""

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"


def cosine_similarities(query: Vector, matrix: Matrix) -> npt.NDArray[np.float64]:
    """
    Compute cosine similarity between a query and every row of a matrix.

    Rows (or a query) with zero magnitude have similarity 0.0 to everything.

    Args:
        query: Query vector (1D array of length d)
        matrix: Stacked vectors (2D array of shape (n, d))

    Returns:
        Array of n similarities, each clipped to [-1, 1]
    """
    dots = matrix @ query
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)

    similarities = np.zeros(len(matrix), dtype=np.float64)
    nonzero = norms > 0.0
    similarities[nonzero] = dots[nonzero] / norms[nonzero]

    # Rounding can push |cos| slightly past 1; clip so distances stay in [0, 2]
    return np.clip(similarities, -1.0, 1.0)


def cosine_distances(query: Vector, matrix: Matrix) -> npt.NDArray[np.float64]:
    """
    Compute cosine distance between a query and every row of a matrix.

    Args:
        query: Query vector (1D array of length d)
        matrix: Stacked vectors (2D array of shape (n, d))

    Returns:
        Array of n distances in [0, 2] (lower means more similar)

    Example:
        >>> q = np.array([1.0, 0.0])
        >>> m = np.array([[2.0, 0.0], [-1.0, 0.0]])
        >>> cosine_distances(q, m)
        array([0., 2.])
    """
    return 1.0 - cosine_similarities(query, matrix)


def euclidean_distances(query: Vector, matrix: Matrix) -> npt.NDArray[np.float64]:
    """
    Compute L2 distance between a query and every row of a matrix.

    Args:
        query: Query vector (1D array of length d)
        matrix: Stacked vectors (2D array of shape (n, d))

    Returns:
        Array of n non-negative distances
    """
    return np.linalg.norm(matrix - query, axis=1)


def cosine_similarity(v1: Vector, v2: Vector) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns a value between -1 (opposite directions) and 1 (same direction).
    A zero vector has similarity 0.0 to everything.
    """
    return float(cosine_similarities(v1, v2[np.newaxis, :])[0])


def cosine_distance(v1: Vector, v2: Vector) -> float:
    """
    Compute cosine distance (1 - cosine_similarity) between two vectors.

    Returns a value between 0 (same direction) and 2 (opposite directions).
    """
    return float(cosine_distances(v1, v2[np.newaxis, :])[0])


def euclidean_distance(v1: Vector, v2: Vector) -> float:
    """Compute L2 distance between two vectors."""
    return float(euclidean_distances(v1, v2[np.newaxis, :])[0])


_BATCH_DISTANCES = {
    DistanceMetric.COSINE: cosine_distances,
    DistanceMetric.EUCLIDEAN: euclidean_distances,
}


def get_distance_function(metric: Union[DistanceMetric, str]) -> BatchDistance:
    """
    Look up the batched distance function for a metric.

    Args:
        metric: DistanceMetric member or its name ("cosine" / "euclidean")

    Returns:
        Function taking (query, matrix) and returning an array of distances

    Raises:
        ValueError: If the metric is unknown
    """
    return _BATCH_DISTANCES[DistanceMetric(metric)]
