"""
Binary serialization of an HNSW index.

Layout (all integers little-endian):

    header    magic b"HNSW", dimensions u32, max_connections u32,
              ef_construction u32, ef_search u32, metric u8,
              neighbor_selection u8, has_seed u8, seed u64, max_level i32,
              node_count u32, entry point ordinal i32 (-1 when empty)
    rng       PCG64 state u128, increment u128, has_uint32 u8, uinteger u32
    node *    id length u32, id utf-8 bytes, level u32,
              vector (dimensions x f64),
              then for each layer 0..level: count u32, neighbor ordinals (count x u32)

Nodes are written in insertion order and neighbors refer to nodes by their
position in that order, so the exact per-layer adjacency (including neighbor
order) survives a round trip. The random generator state is stored so a
restored index assigns the same levels to future inserts as the original.
"""

import logging
import struct
from typing import Any, Dict, List, Tuple
import numpy as np

from hnswlite.config import IndexConfig
from hnswlite.errors import DeserializationError
from hnswlite.graph_validator import GraphValidator
from hnswlite.hnsw.graph import HNSWGraph, HNSWNode

logger = logging.getLogger(__name__)

MAGIC = b"HNSW"

# Any level above this is corrupt data, not a geometric draw
MAX_LEVEL = 255

_HEADER = struct.Struct("<4sIIIIBBBQiIi")
_RNG = struct.Struct("<16s16sBI")
_U32 = struct.Struct("<I")

_VECTOR_DTYPE = np.dtype("<f8")
_ORDINAL_DTYPE = np.dtype("<u4")

_METRIC_CODES = {"cosine": 0, "euclidean": 1}
_SELECTION_CODES = {"simple": 0, "heuristic": 1}


def _decode_code(codes: Dict[str, int], value: int, what: str) -> str:
    for name, code in codes.items():
        if code == value:
            return name
    raise DeserializationError(f"Unknown {what} code {value}")


def encode_index(config: IndexConfig, graph: HNSWGraph, rng_state: Dict[str, Any]) -> bytes:
    """
    Serialize an index to bytes.

    Args:
        config: The index configuration
        graph: The graph to write
        rng_state: PCG64 bit generator state (``Generator.bit_generator.state``)

    Returns:
        The serialized index
    """
    ordinals = {node_id: position for position, node_id in enumerate(graph.nodes)}
    entry_ordinal = -1 if graph.entry_point is None else ordinals[graph.entry_point]

    parts: List[bytes] = [
        _HEADER.pack(
            MAGIC,
            config.dimensions,
            config.max_connections,
            config.ef_construction,
            config.ef_search,
            _METRIC_CODES[config.metric],
            _SELECTION_CODES[config.neighbor_selection],
            0 if config.seed is None else 1,
            0 if config.seed is None else config.seed,
            graph.get_max_level(),
            graph.size(),
            entry_ordinal,
        ),
        _RNG.pack(
            rng_state["state"]["state"].to_bytes(16, "little"),
            rng_state["state"]["inc"].to_bytes(16, "little"),
            rng_state["has_uint32"],
            rng_state["uinteger"],
        ),
    ]

    for node_id, node in graph.nodes.items():
        encoded_id = node_id.encode("utf-8")
        parts.append(_U32.pack(len(encoded_id)))
        parts.append(encoded_id)
        parts.append(_U32.pack(node.level))
        parts.append(np.asarray(node.vector, dtype=_VECTOR_DTYPE).tobytes())

        for layer in range(node.level + 1):
            neighbors = node.neighbors[layer]
            parts.append(_U32.pack(len(neighbors)))
            parts.append(
                np.array([ordinals[n] for n in neighbors], dtype=_ORDINAL_DTYPE).tobytes()
            )

    data = b"".join(parts)
    logger.debug("Serialized %d nodes into %d bytes", graph.size(), len(data))
    return data


class _Reader:
    """Cursor over a byte buffer that reports truncation as DeserializationError."""

    def __init__(self, data: bytes) -> None:
        self.data = memoryview(data)
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, size: int, what: str) -> memoryview:
        if size > self.remaining():
            raise DeserializationError(
                f"Truncated data: needed {size} bytes for {what} at offset {self.offset}, "
                f"{self.remaining()} left"
            )
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def unpack(self, layout: struct.Struct, what: str) -> Tuple:
        return layout.unpack(self.take(layout.size, what))

    def array(self, dtype: np.dtype, count: int, what: str) -> np.ndarray:
        return np.frombuffer(self.take(dtype.itemsize * count, what), dtype=dtype).copy()


def decode_index(data: bytes) -> Tuple[IndexConfig, HNSWGraph, Dict[str, Any]]:
    """
    Deserialize bytes produced by encode_index.

    Args:
        data: Serialized index

    Returns:
        (config, graph, rng_state)

    Raises:
        DeserializationError: If the bytes are malformed in any way
    """
    reader = _Reader(bytes(data))

    (
        magic, dimensions, max_connections, ef_construction, ef_search,
        metric_code, selection_code, has_seed, seed, max_level, node_count, entry_ordinal,
    ) = reader.unpack(_HEADER, "header")

    if magic != MAGIC:
        raise DeserializationError(f"Bad magic {bytes(magic)!r}, expected {MAGIC!r}")

    try:
        config = IndexConfig(
            dimensions=dimensions,
            max_connections=max_connections,
            ef_construction=ef_construction,
            ef_search=ef_search,
            metric=_decode_code(_METRIC_CODES, metric_code, "metric"),
            seed=seed if has_seed else None,
            neighbor_selection=_decode_code(_SELECTION_CODES, selection_code, "neighbor selection"),
        )
    except DeserializationError:
        raise
    except ValueError as exc:
        raise DeserializationError(f"Invalid index configuration: {exc}") from exc

    state, inc, has_uint32, uinteger = reader.unpack(_RNG, "random state")
    rng_state = {
        "bit_generator": "PCG64",
        "state": {
            "state": int.from_bytes(state, "little"),
            "inc": int.from_bytes(inc, "little"),
        },
        "has_uint32": has_uint32,
        "uinteger": uinteger,
    }

    graph = HNSWGraph(dimension=config.dimensions, M=config.max_connections)
    raw_neighbors: List[Tuple[HNSWNode, int, np.ndarray]] = []
    node_ids: List[str] = []

    for position in range(node_count):
        (id_length,) = reader.unpack(_U32, f"id length of node {position}")
        try:
            node_id = bytes(reader.take(id_length, f"id of node {position}")).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DeserializationError(f"Node {position} id is not valid UTF-8") from exc

        if node_id in graph.nodes:
            raise DeserializationError(f"Duplicate node id '{node_id}'")

        (level,) = reader.unpack(_U32, f"level of node '{node_id}'")
        if level > MAX_LEVEL:
            raise DeserializationError(f"Node '{node_id}' has implausible level {level}")

        vector = reader.array(_VECTOR_DTYPE, config.dimensions, f"vector of node '{node_id}'")
        vector.setflags(write=False)

        node = HNSWNode(node_id, vector, level)
        for layer in range(level + 1):
            (count,) = reader.unpack(_U32, f"neighbor count of node '{node_id}'")
            ordinals = reader.array(_ORDINAL_DTYPE, count, f"neighbors of node '{node_id}'")
            raw_neighbors.append((node, layer, ordinals))

        graph.nodes[node_id] = node
        node_ids.append(node_id)

    if reader.remaining():
        raise DeserializationError(f"{reader.remaining()} trailing bytes after the last node")

    for node, layer, ordinals in raw_neighbors:
        if len(ordinals) and int(ordinals.max()) >= node_count:
            raise DeserializationError(
                f"Node '{node.id}' references neighbor ordinal {int(ordinals.max())} "
                f"but there are only {node_count} nodes"
            )
        node.neighbors[layer] = [node_ids[ordinal] for ordinal in ordinals.tolist()]

    if entry_ordinal == -1 and node_count == 0:
        graph.entry_point = None
    elif 0 <= entry_ordinal < node_count:
        graph.entry_point = node_ids[entry_ordinal]
    else:
        raise DeserializationError(
            f"Entry point ordinal {entry_ordinal} is invalid for {node_count} nodes"
        )

    if graph.get_max_level() != max_level:
        raise DeserializationError(
            f"Header max level {max_level} doesn't match entry point level {graph.get_max_level()}"
        )

    problems = GraphValidator(graph).validate()
    if problems:
        raise DeserializationError(
            f"Graph structure is invalid ({len(problems)} problems), first: {problems[0]}"
        )

    logger.debug("Deserialized %d nodes from %d bytes", node_count, len(reader.data))
    return config, graph, rng_state
