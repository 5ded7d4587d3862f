"""
Metrics for evaluating HNSW search quality.

This module provides functions to:
- Compute recall@k (fraction of ground truth neighbors retrieved)
- Compute exact ground truth via brute force search
"""

from typing import List, Mapping, Sequence, Tuple, Union
import numpy as np

from hnswlite.hnsw.distance import DistanceMetric, get_distance_function


def compute_recall_at_k(
    retrieved_ids: Sequence[str],
    ground_truth_ids: Sequence[str],
    k: int = 10
) -> float:
    """
    Compute recall@k: fraction of ground truth neighbors retrieved.

    Recall@k measures how many of the true k-nearest neighbors
    were found by the search algorithm.

    Args:
        retrieved_ids: IDs returned by search (ordered by relevance)
        ground_truth_ids: True k-nearest neighbor IDs
        k: Number of neighbors to consider

    Returns:
        Recall@k value between 0.0 (no correct neighbors) and 1.0 (all correct)

    Example:
        >>> retrieved = ["a", "b", "c", "y", "z"]
        >>> ground_truth = ["a", "b", "c", "d", "e"]
        >>> compute_recall_at_k(retrieved, ground_truth, k=5)
        0.6
    """
    if k <= 0:
        return 0.0

    retrieved_set = set(retrieved_ids[:k])
    ground_truth_set = set(ground_truth_ids[:k])

    if not ground_truth_set:
        return 0.0

    correct_retrievals = len(retrieved_set & ground_truth_set)

    # With fewer than k stored vectors the ground truth itself is shorter than k
    return correct_retrievals / len(ground_truth_set)


def compute_ground_truth_brute_force(
    query_vector: Union[np.ndarray, Sequence[float]],
    vectors: Mapping[str, Union[np.ndarray, Sequence[float]]],
    k: int = 10,
    metric: Union[DistanceMetric, str] = DistanceMetric.EUCLIDEAN,
) -> Tuple[List[str], List[float]]:
    """
    Compute exact k-NN via brute force (slow but exact).

    This is used to compute ground truth for evaluation.

    Args:
        query_vector: Query embedding (1D array, shape: [dim])
        vectors: Mapping of id -> vector for every stored vector
        k: Number of neighbors to find
        metric: Distance metric to rank by

    Returns:
        Tuple of (neighbor_ids, distances), both sorted by distance ascending
        (ties broken by id)

    Complexity:
        O(n * dim) where n = number of vectors
    """
    if k <= 0 or not vectors:
        return [], []

    ids = list(vectors)
    matrix = np.stack([np.asarray(vectors[node_id], dtype=np.float64) for node_id in ids])
    query = np.asarray(query_vector, dtype=np.float64)

    distances = get_distance_function(metric)(query, matrix)

    # Full sort (not argpartition) so ties resolve by id like the index does
    ranked = sorted(zip(distances.tolist(), ids))[:k]

    return [node_id for _, node_id in ranked], [dist for dist, _ in ranked]
