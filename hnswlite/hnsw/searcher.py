"""
HNSW search algorithm.

This module handles querying the HNSW graph to find approximate nearest neighbors.
The search algorithm:
1. Starts at the entry point (top layer)
2. Greedily navigates down through layers to get closer to the query
3. At layer 0, expands the search using ef_search parameter
4. Returns the k nearest neighbors

The ef_search parameter controls the accuracy-speed tradeoff:
- Higher ef_search = better recall, slower search
- Lower ef_search = faster search, lower recall

The layer-level routines (greedy_closest, search_layer) are shared with the
builder, which runs the same descent while inserting.
"""

from typing import List, NamedTuple, Optional, Set, Tuple
import heapq
import numpy as np
import numpy.typing as npt

from hnswlite.hnsw.graph import HNSWGraph
from hnswlite.hnsw.distance import BatchDistance

Vector = npt.NDArray[np.float64]
Candidate = Tuple[float, str]


class SearchResult(NamedTuple):
    """One search hit: the stored id and its distance to the query."""

    id: str
    distance: float


class HNSWSearcher:
    """
    Handles search queries on the HNSW graph.

    This class provides the search functionality to find k nearest neighbors
    for a given query vector.
    """

    def __init__(self, graph: HNSWGraph, distance_fn: BatchDistance, ef_search: int = 50) -> None:
        """
        Initialize searcher with a graph.

        Args:
            graph: The HNSWGraph to search in
            distance_fn: Batched distance function (query, matrix) -> distances
            ef_search: Size of candidate list during search (higher = better recall)
        """
        self.graph = graph
        self.distance_fn = distance_fn
        self.ef_search = ef_search

    def search(self, query: Vector, k: int, ef_search: Optional[int] = None) -> List[SearchResult]:
        """
        Search for k nearest neighbors to the query vector.

        Args:
            query: Query vector to search for
            k: Number of nearest neighbors to return
            ef_search: Override default ef_search for this query

        Returns:
            List of SearchResult(id, distance), sorted by distance (closest first)
        """
        if self.graph.size() == 0 or k <= 0:
            return []

        ef = ef_search if ef_search is not None else self.ef_search
        ef = max(ef, k)

        entry_id = self.graph.entry_point
        current = (self.distance_to(query, entry_id), entry_id)

        # Single-nearest descent through the sparse layers
        for layer in range(self.graph.get_max_level(), 0, -1):
            current = self.greedy_closest(query, current, layer)

        candidates = self.search_layer(query, [current], ef=ef, layer=0)

        return [SearchResult(node_id, dist) for dist, node_id in candidates[:k]]

    def distance_to(self, query: Vector, node_id: str) -> float:
        """Distance from a query vector to a stored node."""
        vector = self.graph.nodes[node_id].vector
        return float(self.distance_fn(query, vector[np.newaxis, :])[0])

    def greedy_closest(self, query: Vector, entry: Candidate, layer: int) -> Candidate:
        """
        Walk to the node closest to the query at one layer.

        Repeatedly moves to whichever neighbor is closest to the query until no
        neighbor improves on the current position.

        Args:
            query: Query vector
            entry: (distance, node_id) to start from
            layer: Layer to walk on

        Returns:
            (distance, node_id) of the local minimum reached
        """
        current_dist, current_id = entry

        while True:
            neighbors = self.graph.nodes[current_id].get_neighbors(layer)
            if not neighbors:
                break

            distances = self.distance_fn(query, self.graph.get_vectors(neighbors))
            best = int(np.argmin(distances))
            if distances[best] >= current_dist:
                break

            current_dist, current_id = float(distances[best]), neighbors[best]

        return current_dist, current_id

    def search_layer(
        self,
        query: Vector,
        entry_points: List[Candidate],
        ef: int,
        layer: int,
    ) -> List[Candidate]:
        """
        Bounded best-first search at a single layer (HNSW paper, Algorithm 2).

        Keeps the ef closest nodes seen so far in a max-heap and expands the
        closest unexplored candidate from a min-heap, stopping once that
        candidate is farther than the worst kept result.

        Args:
            query: Query vector to search for
            entry_points: (distance, node_id) pairs to start from
            ef: Number of closest nodes to keep
            layer: Which layer to search on

        Returns:
            Up to ef (distance, node_id) pairs sorted by distance to query
        """
        visited: Set[str] = {node_id for _, node_id in entry_points}

        candidates: List[Candidate] = list(entry_points)
        heapq.heapify(candidates)

        # Max-heap via negated distances; the root is the worst kept result
        results: List[Candidate] = [(-dist, node_id) for dist, node_id in entry_points]
        heapq.heapify(results)
        while len(results) > ef:
            heapq.heappop(results)

        while candidates:
            current_dist, current_id = heapq.heappop(candidates)

            if len(results) >= ef and current_dist > -results[0][0]:
                break

            unvisited = [
                neighbor_id
                for neighbor_id in self.graph.nodes[current_id].get_neighbors(layer)
                if neighbor_id not in visited
            ]
            if not unvisited:
                continue

            visited.update(unvisited)
            distances = self.distance_fn(query, self.graph.get_vectors(unvisited))

            for neighbor_id, dist in zip(unvisited, distances.tolist()):
                if len(results) < ef or dist < -results[0][0]:
                    heapq.heappush(candidates, (dist, neighbor_id))
                    heapq.heappush(results, (-dist, neighbor_id))
                    if len(results) > ef:
                        heapq.heappop(results)

        return sorted((-neg_dist, node_id) for neg_dist, node_id in results)
