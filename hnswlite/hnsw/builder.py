"""
HNSW graph construction and maintenance.

This module handles adding nodes to the HNSW graph and patching the graph up
after a node is removed. The insertion algorithm:
1. Greedily descends from the entry point through layers above the new node's level
2. At each remaining layer, runs a bounded search with ef_construction
3. Connects the new node to the neighbors chosen by the neighbor selector
4. Prunes connections to maintain the per-layer bound (M, or 2*M at layer 0)
   without cutting a node off from the rest of the layer

The key insight: start search at the top (sparse) layer and progressively
zoom in through denser layers until reaching the target layer.
"""

from typing import Dict, List, Optional, Tuple
import logging
import numpy as np
import numpy.typing as npt

from hnswlite.hnsw.graph import HNSWGraph, HNSWNode
from hnswlite.hnsw.searcher import HNSWSearcher
from hnswlite.hnsw.utils import DistanceBetween, NeighborSelector, SimpleNeighborSelector

logger = logging.getLogger(__name__)

Vector = npt.NDArray[np.float64]


class HNSWBuilder:
    """
    Handles insertion of nodes into the HNSW graph.

    This class encapsulates the logic for adding new vectors to the index,
    including neighbor search, connection creation, and pruning, plus the
    neighborhood repair run when a node is deleted.
    """

    def __init__(
        self,
        graph: HNSWGraph,
        searcher: HNSWSearcher,
        selector: Optional[NeighborSelector] = None,
        ef_construction: int = 200,
    ) -> None:
        """
        Initialize builder with a graph to operate on.

        Args:
            graph: The HNSWGraph to insert nodes into
            searcher: Searcher over the same graph (provides the layer search routines)
            selector: Neighbor selection strategy (default: closest-M)
            ef_construction: Candidate list size used while building
        """
        self.graph = graph
        self.searcher = searcher
        self.selector = selector if selector is not None else SimpleNeighborSelector()
        self.ef_construction = ef_construction

    def insert(self, node_id: str, vector: Vector, level: int) -> None:
        """
        Insert a new node into the graph at a specific level.

        This is the main insertion algorithm from the HNSW paper (Algorithm 1).

        Args:
            node_id: ID of the new node
            vector: Vector data for the new node
            level: Maximum layer for this node
        """
        previous_entry = self.graph.entry_point
        previous_max_level = self.graph.get_max_level()

        self.graph.add_node(node_id, vector, level)

        # First node in the graph: nothing to connect to
        if previous_entry is None:
            return

        current = (self.searcher.distance_to(vector, previous_entry), previous_entry)
        for layer in range(previous_max_level, level, -1):
            current = self.searcher.greedy_closest(vector, current, layer)

        entry_points = [current]
        for layer in range(min(level, previous_max_level), -1, -1):
            candidates = self.searcher.search_layer(
                vector, entry_points, ef=self.ef_construction, layer=layer
            )

            selected = self.selector.select(
                candidates,
                self.graph.max_neighbors(layer),
                self._distance_lookup([candidate_id for _, candidate_id in candidates]),
            )

            for _, neighbor_id in selected:
                self.graph.add_edge(node_id, neighbor_id, layer)

            for _, neighbor_id in selected:
                self._prune_neighbors(neighbor_id, layer)

            entry_points = candidates

    def repair_after_removal(self, removed: HNSWNode) -> Tuple[int, List[str]]:
        """
        Reconnect the neighborhood a removed node leaves behind.

        Each former neighbor that dropped below its bound at a layer is offered
        the removed node's other neighbors at that layer as replacement links,
        chosen by the neighbor selector. If the former neighbors still fall
        into more than one group (linked among themselves), each stray group
        is joined to the first one through its closest pair of nodes. Paths
        that ran through the removed node can then be rerouted, so the layer
        stays connected.

        Args:
            removed: The node already detached by HNSWGraph.remove_node

        Returns:
            (number of links added, former layer-0 neighbors left with no links)
        """
        links_added = 0

        for layer in range(removed.level + 1):
            former = [n for n in removed.neighbors[layer] if n in self.graph]
            bound = self.graph.max_neighbors(layer)

            for orphan_id in former:
                orphan = self.graph.nodes[orphan_id]
                room = bound - len(orphan.neighbors[layer])
                if room <= 0:
                    continue

                options = [
                    candidate_id
                    for candidate_id in former
                    if candidate_id != orphan_id and candidate_id not in orphan.neighbors[layer]
                ]
                if not options:
                    continue

                distances = self.searcher.distance_fn(
                    orphan.vector, self.graph.get_vectors(options)
                )
                chosen = self.selector.select(
                    list(zip(distances.tolist(), options)), room, self._distance_lookup(options)
                )

                for _, candidate_id in chosen:
                    self.graph.add_edge(orphan_id, candidate_id, layer)
                    links_added += 1
                    self._prune_neighbors(candidate_id, layer)

            links_added += self._join_groups(former, layer)

        # A lone survivor has nobody to link to
        if self.graph.size() <= 1:
            return links_added, []

        isolated = [
            node_id
            for node_id in removed.neighbors[0]
            if node_id in self.graph and not self.graph.nodes[node_id].neighbors[0]
        ]
        return links_added, isolated

    def _join_groups(self, node_ids: List[str], layer: int) -> int:
        """
        Link a set of nodes into one connected group.

        Groups are found from the direct links among the nodes themselves.
        Every group after the first is joined to the first by an edge between
        their closest pair of nodes.

        Returns:
            Number of links added
        """
        groups = self._direct_groups(node_ids, layer)
        if len(groups) <= 1:
            return 0

        main = groups[0]
        for group in groups[1:]:
            best: Optional[Tuple[float, str, str]] = None
            targets = self.graph.get_vectors(main)

            for node_id in group:
                distances = self.searcher.distance_fn(self.graph.nodes[node_id].vector, targets)
                position = int(np.argmin(distances))
                pair = (float(distances[position]), node_id, main[position])
                if best is None or pair < best:
                    best = pair

            _, node_id, target_id = best
            self.graph.add_edge(node_id, target_id, layer)
            self._prune_neighbors(node_id, layer)
            self._prune_neighbors(target_id, layer)
            main = main + group

        return len(groups) - 1

    def _direct_groups(self, node_ids: List[str], layer: int) -> List[List[str]]:
        """Split nodes into groups connected by links among themselves."""
        members = set(node_ids)
        seen = set()
        groups: List[List[str]] = []

        for start in node_ids:
            if start in seen:
                continue
            seen.add(start)
            group = [start]
            stack = [start]

            while stack:
                current = stack.pop()
                for neighbor_id in self.graph.nodes[current].get_neighbors(layer):
                    if neighbor_id in members and neighbor_id not in seen:
                        seen.add(neighbor_id)
                        group.append(neighbor_id)
                        stack.append(neighbor_id)

            groups.append(group)

        return groups

    def _distance_lookup(self, node_ids: List[str]) -> DistanceBetween:
        """
        Distance between any two of the given nodes, for the neighbor selector.

        Each node asked about costs one batched distance row against the whole
        set; rows are computed on first use.
        """
        vectors = self.graph.get_vectors(node_ids)
        position = {node_id: i for i, node_id in enumerate(node_ids)}
        rows: Dict[str, np.ndarray] = {}

        def distance_between(node1_id: str, node2_id: str) -> float:
            if node1_id not in rows:
                rows[node1_id] = self.searcher.distance_fn(self.graph.nodes[node1_id].vector, vectors)
            return float(rows[node1_id][position[node2_id]])

        return distance_between

    def _prune_neighbors(self, node_id: str, layer: int) -> None:
        """
        Prune connections of a node if it exceeds the layer bound.

        The neighbor selector ranks the neighbors; the ones it would not keep
        are dropped first, most distant first, followed by the kept ones, most
        distant first. An edge is only dropped while the two nodes share
        another neighbor, so the pair stays linked through it. When no edge
        qualifies, the most expendable neighbor is handed to the node's
        neighbor closest to it that has a free slot before the edge goes.

        Every removal drops the reverse edge too, so adjacency stays symmetric.

        Args:
            node_id: Node to prune
            layer: Which layer to prune at
        """
        node = self.graph.nodes[node_id]
        neighbors = node.get_neighbors(layer)
        bound = self.graph.max_neighbors(layer)

        if len(neighbors) <= bound:
            return

        distances = self.searcher.distance_fn(node.vector, self.graph.get_vectors(neighbors))
        candidates = list(zip(distances.tolist(), neighbors))
        kept = self.selector.select(candidates, bound, self._distance_lookup(neighbors))
        kept_ids = {neighbor_id for _, neighbor_id in kept}

        # Rejected first, then farthest first
        drop_order = [
            neighbor_id
            for _, _, neighbor_id in sorted(
                (neighbor_id in kept_ids, -dist, neighbor_id) for dist, neighbor_id in candidates
            )
        ]

        while len(node.neighbors[layer]) > bound:
            victim = next(
                (n for n in drop_order if self._share_neighbor(node_id, n, layer)), None
            )
            if victim is None:
                victim = drop_order[0]
                self._hand_over(node_id, victim, layer)

            self.graph.remove_edge(node_id, victim, layer)
            drop_order.remove(victim)

        order = {neighbor_id: dist for dist, neighbor_id in candidates}
        node.neighbors[layer] = sorted(node.neighbors[layer], key=lambda n: (order[n], n))

    def _share_neighbor(self, node_id: str, other_id: str, layer: int) -> bool:
        """Whether two linked nodes have a common neighbor at a layer."""
        others = set(self.graph.nodes[other_id].get_neighbors(layer))
        return any(
            n in others for n in self.graph.nodes[node_id].get_neighbors(layer) if n != other_id
        )

    def _hand_over(self, node_id: str, victim_id: str, layer: int) -> None:
        """Link victim to node's closest neighbor with a free slot, if there is one."""
        bound = self.graph.max_neighbors(layer)
        victim = self.graph.nodes[victim_id]
        hosts = [
            n
            for n in self.graph.nodes[node_id].get_neighbors(layer)
            if n != victim_id and len(self.graph.nodes[n].neighbors[layer]) < bound
        ]

        if not hosts:
            logger.debug(
                "Dropping edge '%s' - '%s' at layer %d with no detour", node_id, victim_id, layer
            )
            return

        distances = self.searcher.distance_fn(victim.vector, self.graph.get_vectors(hosts))
        host_id = min(zip(distances.tolist(), hosts))[1]
        self.graph.add_edge(victim_id, host_id, layer)
