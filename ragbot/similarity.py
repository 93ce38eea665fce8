"""
Vector similarity scoring.

Cosine similarity between the query embedding and stored chunk embeddings.
Missing or incompatible embeddings degrade to "not ranked" instead of failing
the query: chunks whose embedding failed at ingestion, or that were embedded
with a model of a different dimensionality, are simply left out.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from .models import Chunk, ScoredChunk

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 instead of raising when the dimensions differ or when either
    vector has zero norm.

    Examples:
        >>> cosine_similarity([1.0, 0.0], [1.0, 0.0])
        1.0
        >>> cosine_similarity([1.0, 0.0], [0.0, 1.0])
        0.0
        >>> cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        0.0
    """
    if len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push identical vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


def has_comparable_embedding(chunk: Chunk, dimension: int) -> bool:
    return chunk.embedding is not None and len(chunk.embedding) == dimension


def rank_by_similarity(
    query_embedding: Sequence[float],
    chunks: Sequence[Chunk],
    top_k: Optional[int] = None,
) -> List[ScoredChunk]:
    """
    Rank chunks by cosine similarity to the query embedding.

    Args:
        query_embedding: Embedding of the question
        chunks: Candidate chunks (embedding may be None)
        top_k: Truncate to this many results (all if None)

    Returns:
        ScoredChunk list sorted by descending similarity, only for chunks
        with an embedding of the query's dimensionality
    """
    dimension = len(query_embedding)
    candidates = [chunk for chunk in chunks if has_comparable_embedding(chunk, dimension)]

    skipped = len(chunks) - len(candidates)
    if skipped:
        logger.debug(f"Vector ranking skipped {skipped}/{len(chunks)} chunks without a {dimension}-dim embedding")

    results = [
        ScoredChunk(chunk=chunk, score=cosine_similarity(query_embedding, chunk.embedding))
        for chunk in candidates
    ]
    results.sort(key=lambda r: r.score, reverse=True)

    return results if top_k is None else results[:top_k]
