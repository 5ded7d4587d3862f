"""Graph validation and connectivity checks for the HNSW index.

This module checks that inserts, prunes and deletes have not broken the
structural properties the search algorithm depends on: symmetric adjacency,
bounded neighbor lists, a valid entry point, and reachability of the base
layer from that entry point. It is also run over freshly deserialized graphs
so malformed bytes are rejected instead of producing a half-valid index.
"""

from typing import Dict, List, Set
from collections import deque

from hnswlite.hnsw.graph import HNSWGraph


class GraphValidator:
    """Validates graph structure and connectivity properties."""

    def __init__(self, graph: HNSWGraph) -> None:
        """Initialize the validator over a graph.

        Args:
            graph: The HNSWGraph to inspect (read only)
        """
        self.graph = graph

    def validate(self) -> List[str]:
        """Check every structural invariant of the graph.

        Returns:
            Human-readable descriptions of each violation (empty when healthy)
        """
        problems: List[str] = []
        problems.extend(self._check_entry_point())

        for node_id, node in self.graph.nodes.items():
            if len(node.vector) != self.graph.dimension:
                problems.append(
                    f"node '{node_id}' has dimension {len(node.vector)}, expected {self.graph.dimension}"
                )

            for layer in range(node.level + 1):
                neighbors = node.neighbors.get(layer, [])
                bound = self.graph.max_neighbors(layer)

                if len(neighbors) > bound:
                    problems.append(
                        f"node '{node_id}' has {len(neighbors)} neighbors at layer {layer} (bound {bound})"
                    )
                if len(set(neighbors)) != len(neighbors):
                    problems.append(f"node '{node_id}' lists a neighbor twice at layer {layer}")

                for neighbor_id in neighbors:
                    problems.extend(self._check_edge(node_id, neighbor_id, layer))

        return problems

    def _check_entry_point(self) -> List[str]:
        entry = self.graph.entry_point

        if not self.graph.nodes:
            return [] if entry is None else [f"empty graph has entry point '{entry}'"]

        if entry is None:
            return ["non-empty graph has no entry point"]
        if entry not in self.graph.nodes:
            return [f"entry point '{entry}' is not in the graph"]

        top_level = max(node.level for node in self.graph.nodes.values())
        if self.graph.nodes[entry].level != top_level:
            return [
                f"entry point '{entry}' is at level {self.graph.nodes[entry].level}, "
                f"but the highest level is {top_level}"
            ]
        return []

    def _check_edge(self, node_id: str, neighbor_id: str, layer: int) -> List[str]:
        if neighbor_id == node_id:
            return [f"node '{node_id}' is its own neighbor at layer {layer}"]

        neighbor = self.graph.nodes.get(neighbor_id)
        if neighbor is None:
            return [f"node '{node_id}' links to missing node '{neighbor_id}' at layer {layer}"]
        if neighbor.level < layer:
            return [
                f"node '{node_id}' links to '{neighbor_id}' at layer {layer}, "
                f"above that node's level {neighbor.level}"
            ]
        if node_id not in neighbor.neighbors[layer]:
            return [f"edge '{node_id}' -> '{neighbor_id}' at layer {layer} has no reverse edge"]
        return []

    def reachable_from_entry(self, layer: int = 0) -> Set[str]:
        """Collect the nodes reachable from the entry point at a layer.

        Uses BFS over the layer's adjacency lists.

        Args:
            layer: Layer to traverse

        Returns:
            Set of reachable node IDs (empty if the graph is empty)
        """
        entry = self.graph.entry_point
        if entry is None:
            return set()

        visited: Set[str] = {entry}
        queue: deque = deque([entry])

        while queue:
            current = queue.popleft()

            for neighbor in self.graph.nodes[current].get_neighbors(layer):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        return visited

    def get_graph_statistics(self) -> Dict[str, float]:
        """Compute base-layer statistics.

        Returns:
            Dictionary with node_count, edge_count, avg_degree, min_degree,
            max_degree and unreachable_count (nodes the entry point cannot reach)
        """
        if not self.graph.nodes:
            return {
                "node_count": 0,
                "edge_count": 0,
                "avg_degree": 0.0,
                "min_degree": 0,
                "max_degree": 0,
                "unreachable_count": 0,
            }

        degrees = [len(node.neighbors[0]) for node in self.graph.nodes.values()]
        total_edges = sum(degrees) // 2  # Each edge counted twice

        return {
            "node_count": len(self.graph.nodes),
            "edge_count": total_edges,
            "avg_degree": sum(degrees) / len(degrees),
            "min_degree": min(degrees),
            "max_degree": max(degrees),
            "unreachable_count": len(self.graph.nodes) - len(self.reachable_from_entry(0)),
        }
