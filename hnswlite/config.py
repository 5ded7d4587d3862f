"""Configuration for hnswlite indexes.

Usage:
    from hnswlite import VectorIndex, IndexConfig

    # Default config
    index = VectorIndex(dimensions=384)

    # Custom config
    config = IndexConfig(dimensions=384, metric="euclidean", seed=7)
    index = VectorIndex.from_config(config)

    # From file
    config = IndexConfig.from_json("my_config.json")
    index = VectorIndex.from_config(config)
"""

from typing import Dict, Any, Optional
import json
import math
from dataclasses import dataclass, asdict

from hnswlite.hnsw.distance import DistanceMetric
from hnswlite.hnsw.utils import get_neighbor_selector

MAX_SEED = 2 ** 64


@dataclass
class IndexConfig:
    """Construction parameters for a VectorIndex.

    All values are fixed for the lifetime of an index and are written into its
    serialized form.

    Parameters:
        dimensions: Length of every stored vector
        max_connections: M, neighbor bound at layers >= 1 (layer 0 allows 2*M)
        ef_construction: Candidate list size while building (must be >= M)
        ef_search: Default candidate list size for queries
        metric: "cosine" or "euclidean"
        seed: Seed for level assignment (None = non-reproducible)
        neighbor_selection: "heuristic" (diversity-aware, default) or "simple" (closest M)
    """

    dimensions: int
    max_connections: int = 16
    ef_construction: int = 200
    ef_search: int = 50
    metric: str = "cosine"
    seed: Optional[int] = None
    neighbor_selection: str = "heuristic"

    # Metadata
    config_name: str = "default"

    def __post_init__(self):
        """Validate configuration."""
        if isinstance(self.metric, DistanceMetric):
            self.metric = self.metric.value

        if self.dimensions < 1:
            raise ValueError("dimensions must be >= 1")

        # 1/ln(M) is undefined for M <= 1
        if self.max_connections < 2:
            raise ValueError("max_connections must be >= 2")

        if self.ef_construction < self.max_connections:
            raise ValueError("ef_construction must be >= max_connections")

        if self.ef_search < 1:
            raise ValueError("ef_search must be >= 1")

        valid_metrics = [m.value for m in DistanceMetric]
        if self.metric not in valid_metrics:
            raise ValueError(f"metric must be one of {valid_metrics}")

        if self.seed is not None and not 0 <= self.seed < MAX_SEED:
            raise ValueError("seed must be in [0, 2**64)")

        # Raises ValueError for unknown names
        get_neighbor_selector(self.neighbor_selection)

    @property
    def max_connections_layer0(self) -> int:
        """Neighbor bound at the base layer."""
        return 2 * self.max_connections

    @property
    def level_multiplier(self) -> float:
        """Level normalization factor mL = 1/ln(M)."""
        return 1.0 / math.log(self.max_connections)

    @property
    def distance_metric(self) -> DistanceMetric:
        return DistanceMetric(self.metric)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'IndexConfig':
        """Load configuration from dictionary."""
        return cls(**config_dict)

    @classmethod
    def from_json(cls, filepath: str) -> 'IndexConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"IndexConfig("
            f"{self.config_name}, "
            f"dim={self.dimensions}, "
            f"M={self.max_connections}, "
            f"efC={self.ef_construction}, "
            f"efS={self.ef_search}, "
            f"{self.metric})"
        )


# Preset configurations

def get_default_config(dimensions: int) -> IndexConfig:
    """Default configuration (M=16, efConstruction=200, efSearch=50, cosine)."""
    return IndexConfig(dimensions=dimensions, config_name="default")


def get_high_recall_config(dimensions: int) -> IndexConfig:
    """Denser graph and wider searches, for recall over build/query speed."""
    return IndexConfig(
        dimensions=dimensions,
        config_name="high_recall",
        max_connections=32,
        ef_construction=400,
        ef_search=200,
        neighbor_selection="heuristic",
    )
