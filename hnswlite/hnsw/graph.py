"""
HNSW graph data structures.

This module defines the core data structures for storing the HNSW graph:
- HNSWNode: Represents a single node (vector) in the graph with its connections
- HNSWGraph: Container for the entire graph structure

The graph is hierarchical: nodes at layer 0 form a dense graph with all vectors,
while higher layers contain progressively fewer nodes for faster coarse-grained search.
Each node stores connections (neighbors) at each layer it participates in.

Nodes are keyed by their external string id and neighbor lists hold ids, not
node references, so edge maintenance is plain bookkeeping on dicts and lists.
"""

from typing import Dict, List, Optional
import numpy as np
import numpy.typing as npt

Vector = npt.NDArray[np.float64]


class HNSWNode:
    """
    Represents a single node in the HNSW graph.

    Each node contains a vector and its connections to other nodes across multiple layers.
    The node appears in layers 0 through its assigned 'level' (higher levels are sparser).
    """

    def __init__(self, node_id: str, vector: Vector, level: int) -> None:
        """
        Create a new HNSW node.

        Args:
            node_id: Unique identifier for this node
            vector: The vector data (1D numpy array)
            level: Maximum layer this node appears in (0 = base layer only)
        """
        self.id = node_id
        self.vector = vector
        self.level = level

        # Neighbors organized by layer, closest-first where the builder sorted them
        self.neighbors: Dict[int, List[str]] = {layer: [] for layer in range(level + 1)}

    def add_neighbor(self, neighbor_id: str, layer: int) -> None:
        """
        Add a connection to another node at a specific layer.

        Args:
            neighbor_id: ID of the neighbor node to connect to
            layer: Which layer to add the connection at
        """
        if layer > self.level:
            raise ValueError(
                f"Cannot add neighbor at layer {layer} (node max level is {self.level})"
            )
        if neighbor_id == self.id:
            raise ValueError(f"Node '{self.id}' cannot be its own neighbor")

        if neighbor_id not in self.neighbors[layer]:
            self.neighbors[layer].append(neighbor_id)

    def remove_neighbor(self, neighbor_id: str, layer: int) -> bool:
        """
        Remove a connection at a specific layer.

        Returns:
            True if the connection existed
        """
        if layer > self.level or neighbor_id not in self.neighbors[layer]:
            return False

        self.neighbors[layer].remove(neighbor_id)
        return True

    def get_neighbors(self, layer: int) -> List[str]:
        """
        Get all neighbors at a specific layer.

        Args:
            layer: Which layer to query

        Returns:
            List of neighbor node IDs at that layer (empty above the node's level)
        """
        if layer > self.level:
            return []

        return self.neighbors[layer]

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"HNSWNode(id={self.id!r}, level={self.level}, dim={len(self.vector)})"


class HNSWGraph:
    """
    Container for the entire HNSW graph structure.

    Manages all nodes, tracks the entry point for searches, and maintains
    graph parameters like maximum connections per layer.
    """

    def __init__(self, dimension: int, M: int = 16, M_L: Optional[int] = None) -> None:
        """
        Initialize an empty HNSW graph.

        Args:
            dimension: Dimensionality of vectors to store
            M: Maximum number of neighbors per node at layers > 0 (typical: 16-64)
            M_L: Maximum neighbors at layer 0 (default: 2*M for denser base layer)
        """
        self.dimension = dimension
        self.M = M
        self.M_L = M_L if M_L is not None else 2 * M

        # Insertion-ordered; serialization and entry point elections rely on it
        self.nodes: Dict[str, HNSWNode] = {}

        # Node at the highest layer where searches begin; None when empty
        self.entry_point: Optional[str] = None

    def max_neighbors(self, layer: int) -> int:
        """Neighbor-list bound at a layer (M_L at layer 0, M above)."""
        return self.M_L if layer == 0 else self.M

    def add_node(self, node_id: str, vector: Vector, level: int) -> HNSWNode:
        """
        Add a new node to the graph structure (without connecting it yet).

        The node becomes the entry point if the graph was empty or if its level
        is strictly higher than the current entry point's.

        Args:
            node_id: External ID of the node
            vector: Vector data for the node
            level: Maximum layer this node should appear in

        Returns:
            The created node
        """
        if len(vector) != self.dimension:
            raise ValueError(
                f"Vector dimension {len(vector)} doesn't match graph dimension {self.dimension}"
            )
        if node_id in self.nodes:
            raise ValueError(f"Node '{node_id}' already exists in the graph")

        node = HNSWNode(node_id, vector, level)
        self.nodes[node_id] = node

        if self.entry_point is None or level > self.nodes[self.entry_point].level:
            self.entry_point = node_id

        return node

    def get_node(self, node_id: str) -> Optional[HNSWNode]:
        """
        Retrieve a node by its ID.

        Returns:
            The HNSWNode, or None if not found
        """
        return self.nodes.get(node_id)

    def add_edge(self, node1_id: str, node2_id: str, layer: int) -> None:
        """
        Create a bidirectional connection between two nodes at a specific layer.

        Args:
            node1_id: First node ID
            node2_id: Second node ID
            layer: Layer at which to create the connection
        """
        node1 = self.nodes.get(node1_id)
        node2 = self.nodes.get(node2_id)

        if node1 is None or node2 is None:
            raise ValueError(f"Node not found: {node1_id} or {node2_id}")

        node1.add_neighbor(node2_id, layer)
        node2.add_neighbor(node1_id, layer)

    def remove_edge(self, node1_id: str, node2_id: str, layer: int) -> None:
        """Remove the connection between two nodes at a layer, in both directions."""
        node1 = self.nodes.get(node1_id)
        node2 = self.nodes.get(node2_id)

        if node1 is not None:
            node1.remove_neighbor(node2_id, layer)
        if node2 is not None:
            node2.remove_neighbor(node1_id, layer)

    def remove_node(self, node_id: str) -> Optional[HNSWNode]:
        """
        Detach a node from the graph.

        Every edge pointing at the node is removed. The returned node keeps its
        own neighbor lists so callers can repair the neighborhood it leaves
        behind. If the node was the entry point a new one is elected.

        Args:
            node_id: ID of the node to remove

        Returns:
            The removed node, or None if it was not in the graph
        """
        node = self.nodes.pop(node_id, None)
        if node is None:
            return None

        for layer in range(node.level + 1):
            for neighbor_id in node.neighbors[layer]:
                neighbor = self.nodes.get(neighbor_id)
                if neighbor is not None:
                    neighbor.remove_neighbor(node_id, layer)

        if self.entry_point == node_id:
            self.entry_point = self._elect_entry_point()

        return node

    def _elect_entry_point(self) -> Optional[str]:
        """Pick the first node (insertion order) holding the maximum level."""
        entry_id = None
        max_level = -1

        for node_id, node in self.nodes.items():
            if node.level > max_level:
                max_level = node.level
                entry_id = node_id

        return entry_id

    def get_vectors(self, node_ids: List[str]) -> npt.NDArray[np.float64]:
        """Stack the vectors of the given nodes into an (n, dimension) matrix."""
        if not node_ids:
            return np.empty((0, self.dimension), dtype=np.float64)

        return np.stack([self.nodes[node_id].vector for node_id in node_ids])

    def get_max_level(self) -> int:
        """
        Get the maximum layer level in the graph (level of entry point).

        Returns:
            Maximum layer number, or -1 if graph is empty
        """
        if self.entry_point is None:
            return -1

        return self.nodes[self.entry_point].level

    def size(self) -> int:
        """
        Get the total number of nodes in the graph.

        Returns:
            Number of nodes
        """
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"HNSWGraph(nodes={self.size()}, max_level={self.get_max_level()}, "
            f"M={self.M}, dim={self.dimension})"
        )
