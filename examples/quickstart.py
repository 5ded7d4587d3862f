"""Quick start guide for hnswlite.

This example shows the minimal code needed to:
1. Build an in-memory vector index
2. Search for similar vectors
3. Delete vectors and save/restore the index
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
from hnswlite import VectorIndex
from hnswlite.metrics import compute_ground_truth_brute_force, compute_recall_at_k


def main():
    print("="*60)
    print("hnswlite Quick Start")
    print("="*60)

    # Step 1: Create synthetic dataset
    print("\n1. Creating dataset...")
    rng = np.random.default_rng(42)

    # 1000 vectors, 64 dimensions
    vectors = rng.normal(size=(1000, 64))
    items = {f"doc_{i}": vec for i, vec in enumerate(vectors)}

    print(f"   Created {len(vectors)} vectors of dimension {vectors.shape[1]}")

    # Step 2: Build HNSW index
    print("\n2. Building HNSW index...")

    index = VectorIndex(
        dimensions=64,
        max_connections=16,     # Graph degree (layer 0 allows 2x)
        ef_construction=200,    # Build quality
        ef_search=50,           # Search quality (higher = better recall)
        metric="cosine",
        seed=42,                # Reproducible level assignment
    )
    index.insert_many(items.items())

    stats = index.get_stats()
    print(f"   Indexed {stats['size']} vectors")
    print(f"   Graph has {stats['max_level'] + 1} layers")
    print(f"   Average connections per node: {stats['avg_connections']:.1f}")

    # Step 3: Perform search
    print("\n3. Searching...")

    query = rng.normal(size=64)
    k = 10

    results = index.search(query, k=k)

    print(f"   Top {k} results:")
    for rank, result in enumerate(results[:5], 1):
        print(f"      {rank}. {result.id} (distance: {result.distance:.4f})")

    truth, _ = compute_ground_truth_brute_force(query, items, k=k, metric="cosine")
    recall = compute_recall_at_k([r.id for r in results], truth, k=k)
    print(f"   Recall@{k} vs brute force: {recall:.2f}")

    # Step 4: Delete
    print("\n4. Deleting the best match...")

    removed = results[0].id
    index.delete(removed)

    new_results = index.search(query, k=k)
    print(f"   Removed {removed}; new best match is {new_results[0].id}")

    # Step 5: Save and restore
    print("\n5. Serializing...")

    data = index.to_bytes()
    restored = VectorIndex.from_bytes(data)

    print(f"   {len(data)} bytes, restored {restored.size} vectors")
    print(f"   Same results after restore: {restored.search(query, k=k) == new_results}")

    print("\n" + "="*60)
    print("Done.")
    print("="*60)


if __name__ == "__main__":
    main()
