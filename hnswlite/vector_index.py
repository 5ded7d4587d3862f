"""
Core vector index: HNSW graph management behind a small programmatic API.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import dataclasses
import logging
import numpy as np
import numpy.typing as npt

from hnswlite.config import IndexConfig
from hnswlite.errors import DeserializationError, DimensionMismatchError, DuplicateIdError
from hnswlite.graph_validator import GraphValidator
from hnswlite.hnsw.builder import HNSWBuilder
from hnswlite.hnsw.distance import DistanceMetric, get_distance_function
from hnswlite.hnsw.graph import HNSWGraph
from hnswlite.hnsw.searcher import HNSWSearcher, SearchResult
from hnswlite.hnsw.utils import assign_layer, get_neighbor_selector
from hnswlite.serialization import decode_index, encode_index

logger = logging.getLogger(__name__)

Vector = npt.NDArray[np.float64]
VectorLike = Union[Vector, Sequence[float]]


class VectorIndex:
    """
    In-memory approximate nearest neighbor index over HNSW graphs.

    Vectors are keyed by an opaque string id. The index copies every vector it
    is given, so later changes to the caller's buffer cannot corrupt it.

    IMPORTANT: This library operates on pre-embedded vectors. Producing the
    embeddings, and storing the bytes from ``to_bytes()``, are the caller's job.

    The index is single-threaded: callers that mutate it from several threads
    must provide their own locking.

    Example:
        >>> index = VectorIndex(dimensions=2, metric="euclidean", seed=42)
        >>> index.insert("a", [1.0, 0.0])
        >>> index.insert("b", [0.0, 1.0])
        >>> index.search([1.0, 0.0], k=1)
        [SearchResult(id='a', distance=0.0)]
        >>> restored = VectorIndex.from_bytes(index.to_bytes())
    """

    def __init__(
        self,
        dimensions: int,
        max_connections: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        metric: Union[DistanceMetric, str] = DistanceMetric.COSINE,
        seed: Optional[int] = None,
        neighbor_selection: str = "heuristic",
    ) -> None:
        """
        Initialize an empty index.

        Args:
            dimensions: Length of every vector (fixed for the index's lifetime)
            max_connections: M, max neighbors per node at layers >= 1 (2*M at layer 0)
            ef_construction: Candidate list size while building (must be >= M)
            ef_search: Default candidate list size for queries
            metric: "cosine" or "euclidean"
            seed: Seed for level assignment; omit for a non-reproducible index
            neighbor_selection: "heuristic" (diversity-aware, default) or "simple" (closest M)

        Raises:
            ValueError: If any parameter is out of range
        """
        config = IndexConfig(
            dimensions=dimensions,
            max_connections=max_connections,
            ef_construction=ef_construction,
            ef_search=ef_search,
            metric=metric,
            seed=seed,
            neighbor_selection=neighbor_selection,
        )
        self._initialize(config)

    @classmethod
    def from_config(cls, config: IndexConfig) -> "VectorIndex":
        """Create an empty index from an IndexConfig."""
        index = cls.__new__(cls)
        index._initialize(dataclasses.replace(config))
        return index

    def _initialize(
        self,
        config: IndexConfig,
        graph: Optional[HNSWGraph] = None,
        rng_state: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._config = config

        if graph is None:
            graph = HNSWGraph(dimension=config.dimensions, M=config.max_connections)
        self._graph = graph

        self._searcher = HNSWSearcher(
            graph=graph,
            distance_fn=get_distance_function(config.metric),
            ef_search=config.ef_search,
        )
        self._builder = HNSWBuilder(
            graph=graph,
            searcher=self._searcher,
            selector=get_neighbor_selector(config.neighbor_selection),
            ef_construction=config.ef_construction,
        )
        self._validator = GraphValidator(graph)

        # Explicit PCG64 so the generator state can be written by to_bytes()
        bit_generator = np.random.PCG64(config.seed)
        if rng_state is not None:
            bit_generator.state = rng_state
        self._rng = np.random.Generator(bit_generator)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> IndexConfig:
        """A copy of the index configuration."""
        return dataclasses.replace(self._config)

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    @property
    def max_connections(self) -> int:
        return self._config.max_connections

    @property
    def ef_construction(self) -> int:
        return self._config.ef_construction

    @property
    def ef_search(self) -> int:
        return self._config.ef_search

    @property
    def metric(self) -> DistanceMetric:
        return self._config.distance_metric

    @property
    def seed(self) -> Optional[int]:
        return self._config.seed

    @property
    def neighbor_selection(self) -> str:
        return self._config.neighbor_selection

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, vector_id: str, vector: VectorLike) -> None:
        """
        Insert a vector under a new id.

        Args:
            vector_id: Unique string id
            vector: Sequence or 1D array of length ``dimensions``

        Raises:
            DimensionMismatchError: If the vector length differs from ``dimensions``
            DuplicateIdError: If the id is already in the index
            TypeError: If the id is not a string

        Both errors are raised before the index changes.
        """
        _check_id(vector_id)
        stored = self._as_vector(vector, "Vector")
        if vector_id in self._graph:
            raise DuplicateIdError(vector_id)

        self._insert_checked(vector_id, stored)

    def insert_many(self, items: Iterable[Tuple[str, VectorLike]]) -> List[str]:
        """
        Insert several (id, vector) pairs.

        The whole batch is validated before anything is inserted, so a bad
        vector or duplicate id anywhere in the batch leaves the index untouched.

        Args:
            items: Iterable of (id, vector) pairs

        Returns:
            The inserted ids, in order

        Raises:
            DimensionMismatchError: If any vector has the wrong length
            DuplicateIdError: If an id is already in the index or repeats in the batch
        """
        prepared: List[Tuple[str, Vector]] = []
        seen = set()

        for vector_id, vector in items:
            _check_id(vector_id)
            stored = self._as_vector(vector, "Vector")
            if vector_id in self._graph or vector_id in seen:
                raise DuplicateIdError(vector_id)
            seen.add(vector_id)
            prepared.append((vector_id, stored))

        for vector_id, stored in prepared:
            self._insert_checked(vector_id, stored)

        return [vector_id for vector_id, _ in prepared]

    def _insert_checked(self, vector_id: str, stored: Vector) -> None:
        level = assign_layer(self._rng, level_multiplier=self._config.level_multiplier)
        previous_entry = self._graph.entry_point

        self._builder.insert(vector_id, stored, level)

        logger.debug("Inserted '%s' at level %d (size=%d)", vector_id, level, self._graph.size())
        if self._graph.entry_point != previous_entry:
            logger.debug("Entry point moved to '%s' (max_level=%d)", vector_id, level)

    def delete(self, vector_id: str) -> bool:
        """
        Remove a vector from the index.

        Every edge pointing at the node is removed and its former neighbors are
        relinked among themselves. If it was the entry point, a remaining node
        with the highest level takes over.

        Args:
            vector_id: ID to remove

        Returns:
            True if the id was present and removed, False if it was absent
        """
        was_entry = vector_id == self._graph.entry_point

        removed = self._graph.remove_node(vector_id)
        if removed is None:
            return False

        links_added, isolated = self._builder.repair_after_removal(removed)

        logger.debug(
            "Deleted '%s' (level %d), added %d repair links", vector_id, removed.level, links_added
        )
        if was_entry:
            logger.debug(
                "Entry point moved to %r (max_level=%d)",
                self._graph.entry_point, self._graph.get_max_level(),
            )
        if isolated:
            logger.warning(
                "Deleting '%s' left %d node(s) with no base-layer links: %s",
                vector_id, len(isolated), ", ".join(isolated[:5]),
            )

        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(self, query: VectorLike, k: int = 10, ef: Optional[int] = None) -> List[SearchResult]:
        """
        Find the k stored vectors closest to the query.

        Args:
            query: Query vector of length ``dimensions``
            k: Number of results (0 returns an empty list)
            ef: Candidate list size for this query (default ``ef_search``; widened to k)

        Returns:
            List of SearchResult(id, distance), closest first

        Raises:
            DimensionMismatchError: If the query length differs from ``dimensions``
            ValueError: If k is negative or ef is below 1
            TypeError: If k or ef is not an integer
        """
        query_vector = self._as_vector(query, "Query")

        _check_count("k", k)
        if ef is not None:
            _check_count("ef", ef)

        if k < 0:
            raise ValueError(f"k must be >= 0, got {k}")
        if ef is not None and ef < 1:
            raise ValueError(f"ef must be >= 1, got {ef}")

        return self._searcher.search(query_vector, k=k, ef_search=ef)

    def contains(self, vector_id: str) -> bool:
        """Whether an id is in the index."""
        return vector_id in self._graph

    def get_vector(self, vector_id: str) -> Optional[Vector]:
        """
        Get a copy of the stored vector for an id.

        Returns:
            The vector, or None if the id is not in the index
        """
        node = self._graph.get_node(vector_id)
        if node is None:
            return None

        return node.vector.copy()

    def ids(self) -> List[str]:
        """All stored ids, in insertion order."""
        return list(self._graph.nodes)

    @property
    def size(self) -> int:
        """Number of vectors in the index."""
        return self._graph.size()

    @property
    def is_empty(self) -> bool:
        return self._graph.size() == 0

    @property
    def max_level(self) -> int:
        """Level of the entry point, or -1 when empty."""
        return self._graph.get_max_level()

    @property
    def entry_point_id(self) -> Optional[str]:
        return self._graph.entry_point

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the index.

        Returns:
            Dictionary with size, dimensions, max_level, entry_point_id,
            avg_connections (edges per node summed over layers), nodes_per_level,
            the configuration values and base-layer degree statistics
        """
        total_connections = 0
        nodes_per_level: Dict[int, int] = {}

        for node in self._graph.nodes.values():
            for layer in range(node.level + 1):
                total_connections += len(node.neighbors[layer])
                nodes_per_level[layer] = nodes_per_level.get(layer, 0) + 1

        stats = {
            "size": self.size,
            "dimensions": self.dimensions,
            "max_level": self.max_level,
            "entry_point_id": self.entry_point_id,
            "avg_connections": total_connections / self.size if self.size else 0.0,
            "nodes_per_level": nodes_per_level,
            "max_connections": self.max_connections,
            "ef_construction": self.ef_construction,
            "ef_search": self.ef_search,
            "metric": self.metric.value,
        }
        stats.update(self._validator.get_graph_statistics())

        return stats

    def validate(self) -> List[str]:
        """
        Check the graph's structural invariants.

        Returns:
            Descriptions of any violations (empty when the graph is healthy)
        """
        return self._validator.validate()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """
        Serialize the index, including its configuration and exact graph topology.

        Returns:
            Bytes accepted by ``VectorIndex.from_bytes``
        """
        return encode_index(self._config, self._graph, self._rng.bit_generator.state)

    @classmethod
    def from_bytes(cls, data: Union[bytes, bytearray, memoryview]) -> "VectorIndex":
        """
        Rebuild an index from ``to_bytes()`` output.

        Args:
            data: Serialized index

        Returns:
            An index equivalent to the one that was serialized

        Raises:
            DeserializationError: If the data is malformed
            TypeError: If data is not bytes-like
        """
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"Expected bytes-like data, got {type(data).__name__}")

        config, graph, rng_state = decode_index(data)

        index = cls.__new__(cls)
        try:
            index._initialize(config, graph, rng_state)
        except (TypeError, ValueError) as exc:
            raise DeserializationError(f"Invalid random generator state: {exc}") from exc

        return index

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _as_vector(self, vector: VectorLike, what: str) -> Vector:
        """Copy a vector into a read-only float64 array, checking its length."""
        array = np.array(vector, dtype=np.float64)

        if array.ndim != 1:
            raise DimensionMismatchError(
                self.dimensions, int(array.size), what=f"{what} (shape {array.shape})"
            )
        if array.shape[0] != self.dimensions:
            raise DimensionMismatchError(self.dimensions, array.shape[0], what=what)

        array.setflags(write=False)
        return array

    def __len__(self) -> int:
        return self._graph.size()

    def __contains__(self, vector_id: object) -> bool:
        return vector_id in self._graph

    def __repr__(self) -> str:
        return (
            f"VectorIndex(size={self.size}, dimensions={self.dimensions}, "
            f"metric={self.metric.value}, M={self.max_connections}, max_level={self.max_level})"
        )


def _check_id(vector_id: Any) -> None:
    if not isinstance(vector_id, str):
        raise TypeError(f"IDs must be strings, got {type(vector_id).__name__}")


def _check_count(name: str, value: Any) -> None:
    # bool is an int subclass but never a meaningful count
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
