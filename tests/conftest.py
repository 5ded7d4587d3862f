"""
Pytest configuration and shared fixtures for hnswlite tests
"""

import pytest
import numpy as np
from typing import Dict

from hnswlite import VectorIndex


@pytest.fixture
def dimension() -> int:
    """Standard vector dimension for testing."""
    return 32


@pytest.fixture
def sample_vectors(dimension) -> np.ndarray:
    """Generate sample vectors for testing."""
    rng = np.random.default_rng(42)
    return rng.random((50, dimension))


@pytest.fixture
def sample_items(sample_vectors) -> Dict[str, np.ndarray]:
    """Sample vectors keyed by string id."""
    return {f"doc_{i}": vec for i, vec in enumerate(sample_vectors)}


@pytest.fixture
def populated_index(sample_items, dimension) -> VectorIndex:
    """Euclidean index holding sample_items, built with a fixed seed."""
    index = VectorIndex(
        dimensions=dimension,
        max_connections=8,
        ef_construction=64,
        ef_search=32,
        metric="euclidean",
        seed=7,
    )
    index.insert_many(sample_items.items())
    return index
