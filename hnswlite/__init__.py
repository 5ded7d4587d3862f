"""
hnswlite - Pure-Python HNSW Vector Index

An in-process approximate nearest neighbor index built on Hierarchical
Navigable Small World graphs, with string ids, cosine or euclidean distance,
deletes, and a compact binary serialization format.
"""

__version__ = "0.1.0"

import logging

from hnswlite.vector_index import VectorIndex
from hnswlite.hnsw.distance import DistanceMetric
from hnswlite.hnsw.searcher import SearchResult
from hnswlite.config import (
    IndexConfig,
    get_default_config,
    get_high_recall_config,
)
from hnswlite.errors import (
    VectorIndexError,
    DimensionMismatchError,
    DuplicateIdError,
    DeserializationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "VectorIndex",
    "DistanceMetric",
    "SearchResult",
    "IndexConfig",
    "get_default_config",
    "get_high_recall_config",
    "VectorIndexError",
    "DimensionMismatchError",
    "DuplicateIdError",
    "DeserializationError",
]
