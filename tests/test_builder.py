"""
Tests for HNSW insertion algorithm and delete repair.

These tests verify that the builder correctly inserts nodes into the graph:
- First node insertion (special case)
- Multiple node insertion with connections
- Neighbor selection and pruning
- Graph structure integrity after insertions
- Relinking the neighborhood of a removed node
"""

import logging

import numpy as np
import pytest
from hnswlite.hnsw.graph import HNSWGraph
from hnswlite.hnsw.builder import HNSWBuilder
from hnswlite.hnsw.searcher import HNSWSearcher
from hnswlite.hnsw.distance import get_distance_function
from hnswlite.hnsw.utils import HeuristicNeighborSelector
from hnswlite.graph_validator import GraphValidator


def make_builder(dimension, M=4, metric="cosine", ef_construction=16, selector=None):
    """Create an empty graph with a builder and searcher over it."""
    graph = HNSWGraph(dimension=dimension, M=M)
    searcher = HNSWSearcher(graph, get_distance_function(metric), ef_search=10)
    builder = HNSWBuilder(graph, searcher, selector=selector, ef_construction=ef_construction)
    return graph, builder


def test_insert_first_node():
    """Insert the first node into an empty graph"""
    graph, builder = make_builder(dimension=3)

    builder.insert("a", np.array([1.0, 0.0, 0.0]), level=2)

    assert graph.size() == 1
    assert graph.entry_point == "a"
    assert graph.get_max_level() == 2

    # First node has no neighbors
    node = graph.get_node("a")
    assert node.get_neighbors(0) == []
    assert node.get_neighbors(1) == []
    assert node.get_neighbors(2) == []


def test_insert_two_nodes():
    """Insert two nodes and verify they connect"""
    graph, builder = make_builder(dimension=2)

    builder.insert("a", np.array([1.0, 0.0]), level=1)
    builder.insert("b", np.array([0.9, 0.1]), level=1)

    node_a = graph.get_node("a")
    node_b = graph.get_node("b")

    assert "b" in node_a.get_neighbors(0), "a should connect to b at layer 0"
    assert "a" in node_b.get_neighbors(0), "b should connect to a at layer 0"

    assert "b" in node_a.get_neighbors(1), "a should connect to b at layer 1"
    assert "a" in node_b.get_neighbors(1), "b should connect to a at layer 1"


def test_insert_multiple_nodes():
    """Insert several nodes and verify graph growth"""
    graph, builder = make_builder(dimension=2)

    vectors = [[1.0, 0.0], [0.9, 0.1], [0.8, 0.2], [0.0, 1.0], [0.1, 0.9]]
    levels = [0, 1, 0, 0, 0]

    for i, (vec, lvl) in enumerate(zip(vectors, levels)):
        builder.insert(f"n{i}", np.array(vec), level=lvl)

    assert graph.size() == 5

    for i in range(5):
        assert len(graph.get_node(f"n{i}").get_neighbors(0)) > 0, f"Node {i} should have neighbors"


def test_insert_respects_M_constraint():
    """Verify that pruning maintains the per-layer bound"""
    graph, builder = make_builder(dimension=2, M=2)  # M_L = 4

    rng = np.random.default_rng(5)
    for i in range(30):
        builder.insert(f"n{i}", rng.normal(size=2), level=int(i % 5 == 0))

    for node in graph.nodes.values():
        assert len(node.get_neighbors(0)) <= graph.M_L, f"{node.id} exceeds M_L at layer 0"
        if node.level >= 1:
            assert len(node.get_neighbors(1)) <= graph.M, f"{node.id} exceeds M at layer 1"


def test_prune_drops_most_distant_and_reverse_edge():
    """A node over its bound keeps its closest neighbors and drops the rest symmetrically"""
    graph, builder = make_builder(dimension=1, M=2, metric="euclidean")  # M_L = 4

    builder.insert("c", np.array([0.0]), level=0)
    for i, position in enumerate([1.0, 2.0, 3.0, 4.0], start=1):
        builder.insert(f"p{i}", np.array([position]), level=0)

    assert sorted(graph.get_node("c").get_neighbors(0)) == ["p1", "p2", "p3", "p4"]

    # q links to c, p1, p2 and p3, pushing c and p3 over the bound:
    # c drops its farthest neighbor p4, then p3 drops c (its farthest)
    builder.insert("q", np.array([0.5]), level=0)

    assert graph.get_node("c").get_neighbors(0) == ["q", "p1", "p2"]
    assert "c" not in graph.get_node("p4").get_neighbors(0)
    assert "c" not in graph.get_node("p3").get_neighbors(0)


def test_different_levels():
    """Insert nodes at different levels and verify layer connections"""
    graph, builder = make_builder(dimension=2)

    builder.insert("a", np.array([1.0, 0.0]), level=0)
    builder.insert("b", np.array([0.0, 1.0]), level=2)  # becomes entry point
    builder.insert("c", np.array([0.5, 0.5]), level=1)

    assert graph.entry_point == "b"

    assert "c" in graph.get_node("b").get_neighbors(1), "High-level nodes should connect at shared layers"
    assert "b" in graph.get_node("c").get_neighbors(1)
    assert graph.get_node("b").get_neighbors(2) == []


def test_bidirectional_connections():
    """Verify all connections are bidirectional at every layer"""
    graph, builder = make_builder(dimension=4, M=3)

    rng = np.random.default_rng(1)
    for i in range(40):
        builder.insert(f"n{i}", rng.normal(size=4), level=int(rng.integers(0, 3)))

    for node in graph.nodes.values():
        for layer in range(node.level + 1):
            for neighbor_id in node.get_neighbors(layer):
                neighbor = graph.get_node(neighbor_id)
                assert neighbor.level >= layer, "Neighbor must exist at the layer"
                assert node.id in neighbor.get_neighbors(layer), (
                    f"Connection from {node.id} to {neighbor_id} at layer {layer} is not bidirectional"
                )
                assert neighbor_id != node.id, "No self loops"


def test_node_with_higher_level_becomes_entry():
    """When inserting a node with higher level than current entry, it should become new entry"""
    graph, builder = make_builder(dimension=2)

    builder.insert("a", np.array([1.0, 0.0]), level=0)
    assert graph.entry_point == "a"

    builder.insert("b", np.array([0.0, 1.0]), level=3)
    assert graph.entry_point == "b"
    assert graph.get_max_level() == 3
    # Still linked to the old entry at the base layer
    assert "a" in graph.get_node("b").get_neighbors(0)


def test_heuristic_selector_builds_valid_graph():
    """The diversity heuristic plugs into insert without breaking invariants"""
    graph, builder = make_builder(
        dimension=3, M=3, metric="euclidean", selector=HeuristicNeighborSelector()
    )

    rng = np.random.default_rng(8)
    for i in range(30):
        builder.insert(f"n{i}", rng.normal(size=3), level=int(i % 7 == 0))

    for node in graph.nodes.values():
        assert 0 < len(node.get_neighbors(0)) <= graph.M_L
        for neighbor_id in node.get_neighbors(0):
            assert node.id in graph.get_node(neighbor_id).get_neighbors(0)


def test_repair_relinks_former_neighbors():
    """Removing a hub links its former neighbors to each other"""
    graph, builder = make_builder(dimension=2, M=4, metric="euclidean")

    graph.add_node("hub", np.array([0.0, 0.0]), level=0)
    for node_id, vec in [("a", [1.0, 0.0]), ("b", [0.0, 1.0]), ("c", [-1.0, 0.0])]:
        graph.add_node(node_id, np.array(vec), level=0)
        graph.add_edge("hub", node_id, layer=0)

    removed = graph.remove_node("hub")
    links_added, isolated = builder.repair_after_removal(removed)

    assert links_added > 0
    assert isolated == []
    for node_id in ["a", "b", "c"]:
        neighbors = graph.get_node(node_id).get_neighbors(0)
        assert len(neighbors) > 0, f"{node_id} should be relinked"
        for neighbor_id in neighbors:
            assert node_id in graph.get_node(neighbor_id).get_neighbors(0)


def test_repair_reports_isolated_nodes():
    """A former neighbor with nobody to relink to is reported"""
    graph, builder = make_builder(dimension=1, M=4, metric="euclidean")

    graph.add_node("hub", np.array([0.0]), level=0)
    graph.add_node("leaf", np.array([1.0]), level=0)
    graph.add_node("other", np.array([5.0]), level=0)
    graph.add_edge("hub", "leaf", layer=0)

    removed = graph.remove_node("hub")
    links_added, isolated = builder.repair_after_removal(removed)

    assert links_added == 0
    assert isolated == ["leaf"]


def test_repair_last_survivor_not_reported():
    """When only one node remains, having no links is expected"""
    graph, builder = make_builder(dimension=1, M=4, metric="euclidean")

    builder.insert("a", np.array([0.0]), level=0)
    builder.insert("b", np.array([1.0]), level=0)

    removed = graph.remove_node("a")
    _, isolated = builder.repair_after_removal(removed)

    assert isolated == []


def make_line_graph(positions, edges, M=1):
    """1-D euclidean graph with hand-placed nodes and edges (layer-0 bound 2*M)."""
    graph, builder = make_builder(dimension=1, M=M, metric="euclidean")
    for node_id, position in positions.items():
        graph.add_node(node_id, np.array([position]), level=0)
    for node1_id, node2_id in edges:
        graph.add_edge(node1_id, node2_id, layer=0)
    return graph, builder


def test_prune_keeps_only_link_to_outlier():
    """An outlier reachable only through the pruned node keeps its edge"""
    graph, builder = make_line_graph(
        {"u": 0.0, "a": 1.0, "b": 1.1, "f": 10.0},
        [("u", "a"), ("u", "b"), ("a", "b"), ("u", "f")],
    )

    builder._prune_neighbors("u", 0)

    assert graph.get_node("u").get_neighbors(0) == ["a", "f"]
    # b is still reachable from u through a
    assert graph.get_node("b").get_neighbors(0) == ["a"]
    assert graph.get_node("f").get_neighbors(0) == ["u"]


def test_prune_hands_dropped_neighbor_to_closest_free_neighbor():
    """With no shared neighbors, the dropped node is relinked before the edge goes"""
    graph, builder = make_line_graph(
        {"u": 0.0, "a": 1.0, "b": -1.0, "f": 10.0},
        [("u", "a"), ("u", "b"), ("u", "f")],
    )

    builder._prune_neighbors("u", 0)

    assert graph.get_node("u").get_neighbors(0) == ["a", "b"]
    assert graph.get_node("f").get_neighbors(0) == ["a"]
    assert "f" in graph.get_node("a").get_neighbors(0)


def test_prune_drops_edge_when_no_neighbor_has_room(caplog):
    """If every neighbor is full the edge is dropped and the drop is logged"""
    graph, builder = make_line_graph(
        {"u": 0.0, "a": 1.0, "b": -1.0, "f": 10.0, "x": 2.0, "y": -2.0},
        [("u", "a"), ("u", "b"), ("u", "f"), ("a", "x"), ("b", "y")],
    )

    with caplog.at_level(logging.DEBUG, logger="hnswlite.hnsw.builder"):
        builder._prune_neighbors("u", 0)

    assert graph.get_node("u").get_neighbors(0) == ["a", "b"]
    assert graph.get_node("f").get_neighbors(0) == []
    assert any("no detour" in record.getMessage() for record in caplog.records)


def test_join_groups_links_stray_groups_by_closest_pair():
    """Separate groups are joined to the first group through their closest nodes"""
    graph, builder = make_line_graph(
        {"a": 0.0, "b": 1.0, "c": 10.0, "d": 11.0, "e": 20.0},
        [("a", "b"), ("c", "d")],
        M=4,
    )

    links_added = builder._join_groups(["a", "b", "c", "d", "e"], 0)

    assert links_added == 2
    assert "c" in graph.get_node("b").get_neighbors(0)
    assert "e" in graph.get_node("d").get_neighbors(0)
    assert GraphValidator(graph).reachable_from_entry(0) == set(graph.nodes)


def test_repair_keeps_layer_connected_when_former_neighbors_are_full():
    """Deleting the only bridge between two full groups still leaves one component"""
    graph, builder = make_line_graph(
        {"hub": 0.0, "a": 1.0, "a2": 1.5, "a3": 2.0, "c": -1.0, "c2": -1.5, "c3": -2.0},
        [
            ("hub", "a"), ("a", "a2"), ("a", "a3"), ("a2", "a3"),
            ("hub", "c"), ("c", "c2"), ("c", "c3"), ("c2", "c3"),
        ],
        M=1,
    )
    # a and c are already at the layer-0 bound once the hub is gone
    removed = graph.remove_node("hub")
    links_added, isolated = builder.repair_after_removal(removed)

    assert links_added >= 1
    assert isolated == []
    assert GraphValidator(graph).reachable_from_entry(0) == set(graph.nodes)
    assert GraphValidator(graph).validate() == []


def test_clustered_build_stays_connected():
    """Tight, far-apart clusters stay linked to each other under pruning"""
    graph, builder = make_builder(dimension=8, M=2, metric="euclidean", ef_construction=8)

    rng = np.random.default_rng(11)
    centers = rng.normal(size=(4, 8)) * 50
    for i in range(80):
        vector = centers[i % 4] + rng.normal(size=8) * 0.01
        builder.insert(f"n{i}", vector, level=0)

    assert GraphValidator(graph).reachable_from_entry(0) == set(graph.nodes)
    assert GraphValidator(graph).validate() == []
