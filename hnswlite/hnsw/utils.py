"""
Utility functions for HNSW graph construction and maintenance.

This module provides helper functions used during HNSW index building:
- Layer assignment: Determines which layers a new node should appear in
- Neighbor selection: Chooses which edges to keep when building the graph

The layer assignment uses a geometric distribution to create a hierarchical structure,
where most nodes are only in layer 0, and progressively fewer nodes appear in higher layers.
This hierarchy allows for efficient search by starting at sparse top layers and zooming in.

Neighbor selection is a strategy object so that the insert path does not care
which heuristic picked the edges.
"""

from typing import Callable, Dict, List, Optional, Tuple
import numpy as np

# (distance to the base point, node id)
Candidate = Tuple[float, str]
DistanceBetween = Callable[[str, str], float]


def assign_layer(
    rng: np.random.Generator,
    M: Optional[int] = None,
    level_multiplier: Optional[float] = None,
) -> int:
    """
    Randomly assign a layer for a new node using geometric distribution per HNSW paper.

    Formula (Malkov & Yashunin 2016): layer = floor(-ln(uniform(0,1)) * mL)
    where mL = 1/ln(M).

    Args:
        rng: Random generator to draw from (seeded generators give reproducible layers)
        M: Maximum connections per node (used to calculate level_multiplier if not provided)
           Default: 16
        level_multiplier: Explicit level multiplier (overrides M if provided)

    Returns:
        Layer number (0 = bottom layer, higher = sparser upper layers)

    Example:
        >>> rng = np.random.default_rng(42)
        >>> # For M=16: ~93.75% at layer 0, ~5.9% at layer 1, ~0.37% at layer 2
        >>> layers = [assign_layer(rng, M=16) for _ in range(10000)]
    """
    if level_multiplier is None:
        if M is None:
            M = 16
        level_multiplier = 1.0 / np.log(M)

    # Generator.random() is in [0, 1); flip it to (0, 1] so the log is finite
    random_value = 1.0 - rng.random()

    return int(-np.log(random_value) * level_multiplier)


def select_neighbors_simple(candidates: List[Candidate], M: int) -> List[Candidate]:
    """
    Select the M nearest candidates.

    Ties on distance are broken by id so the choice is reproducible.

    Args:
        candidates: (distance, node_id) pairs, in any order
        M: Maximum number of neighbors to select

    Returns:
        Up to M (distance, node_id) pairs sorted by distance

    Example:
        >>> select_neighbors_simple([(0.5, "a"), (0.2, "b"), (0.8, "c"), (0.3, "d")], M=2)
        [(0.2, 'b'), (0.3, 'd')]
    """
    if M <= 0:
        return []

    return sorted(candidates)[:M]


def select_neighbors_heuristic(
    candidates: List[Candidate],
    M: int,
    distance_between: DistanceBetween,
    keep_pruned: bool = True,
) -> List[Candidate]:
    """
    Select neighbors using the diversity-aware heuristic from the HNSW paper (Algorithm 4).

    A candidate is kept only if it is closer to the base point than to every
    neighbor selected so far. This avoids spending all M slots on one tight
    cluster and keeps long-range links that help search escape local minima.

    Args:
        candidates: (distance, node_id) pairs, in any order
        M: Maximum number of neighbors to select
        distance_between: Returns the distance between two stored nodes
        keep_pruned: Fill remaining slots with the closest discarded candidates

    Returns:
        Up to M (distance, node_id) pairs, in selection order
    """
    if M <= 0:
        return []

    ordered = sorted(candidates)
    if len(ordered) <= M:
        return ordered

    selected: List[Candidate] = []
    pruned: List[Candidate] = []

    for candidate_dist, candidate_id in ordered:
        if len(selected) >= M:
            break

        is_diverse = all(
            distance_between(candidate_id, selected_id) >= candidate_dist
            for _, selected_id in selected
        )

        if is_diverse:
            selected.append((candidate_dist, candidate_id))
        else:
            pruned.append((candidate_dist, candidate_id))

    if keep_pruned and len(selected) < M:
        selected.extend(pruned[:M - len(selected)])

    return selected


class NeighborSelector:
    """Strategy for choosing which candidates become a node's neighbors."""

    name = "base"

    def select(
        self,
        candidates: List[Candidate],
        M: int,
        distance_between: DistanceBetween,
    ) -> List[Candidate]:
        """
        Choose up to M neighbors from candidates.

        Args:
            candidates: (distance, node_id) pairs relative to the node being linked
            M: Maximum number of neighbors
            distance_between: Distance between two stored nodes, for heuristics that need it

        Returns:
            Selected (distance, node_id) pairs
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SimpleNeighborSelector(NeighborSelector):
    """Keep the M closest candidates."""

    name = "simple"

    def select(self, candidates, M, distance_between):
        return select_neighbors_simple(candidates, M)


class HeuristicNeighborSelector(NeighborSelector):
    """Keep diverse candidates (HNSW paper, Algorithm 4)."""

    name = "heuristic"

    def __init__(self, keep_pruned: bool = True) -> None:
        self.keep_pruned = keep_pruned

    def select(self, candidates, M, distance_between):
        return select_neighbors_heuristic(
            candidates, M, distance_between, keep_pruned=self.keep_pruned
        )


_SELECTORS: Dict[str, type] = {
    SimpleNeighborSelector.name: SimpleNeighborSelector,
    HeuristicNeighborSelector.name: HeuristicNeighborSelector,
}


def get_neighbor_selector(name: str) -> NeighborSelector:
    """
    Create the neighbor selector registered under a name.

    Raises:
        ValueError: If no selector has that name
    """
    if name not in _SELECTORS:
        raise ValueError(
            f"Unknown neighbor selection '{name}', expected one of {sorted(_SELECTORS)}"
        )
    return _SELECTORS[name]()
