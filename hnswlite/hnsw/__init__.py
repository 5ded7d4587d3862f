"""
HNSW (Hierarchical Navigable Small World) implementation module.

This module contains the core HNSW algorithm components for building and searching
graph-based approximate nearest neighbor indexes. HNSW is a fast and accurate method
for finding similar vectors in high-dimensional spaces.

Components:
- distance: Distance metrics (cosine, euclidean)
- utils: Helper functions (layer assignment, neighbor selection strategies)
- graph: Graph data structure
- builder: Insertion algorithm and delete repair
- searcher: Search algorithm
"""

from hnswlite.hnsw.distance import (
    DistanceMetric,
    cosine_distance,
    cosine_similarity,
    euclidean_distance,
    get_distance_function,
)
from hnswlite.hnsw.graph import HNSWNode, HNSWGraph
from hnswlite.hnsw.builder import HNSWBuilder
from hnswlite.hnsw.searcher import HNSWSearcher, SearchResult
from hnswlite.hnsw.utils import (
    NeighborSelector,
    SimpleNeighborSelector,
    HeuristicNeighborSelector,
    get_neighbor_selector,
)

__all__ = [
    "DistanceMetric",
    "cosine_distance",
    "cosine_similarity",
    "euclidean_distance",
    "get_distance_function",
    "HNSWNode",
    "HNSWGraph",
    "HNSWBuilder",
    "HNSWSearcher",
    "SearchResult",
    "NeighborSelector",
    "SimpleNeighborSelector",
    "HeuristicNeighborSelector",
    "get_neighbor_selector",
]
