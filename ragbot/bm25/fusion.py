"""
Weighted rank fusion for combining the lexical and vector rankings.

BM25 scores are unbounded and positive, cosine similarities live in [-1, 1]:
raw scores cannot be added. Fusion therefore uses rank position only.

Formula (per ranking, over its top `list_size` entries):
    rank_score(item) = (n - rank) / n        rank 0-based, n = truncated list length
    fused(item) = Σ weight_i × rank_score_i(item)

Defaults: lexical weight 0.6, vector weight 0.4, lists of 5, output of 5.

Consequences:
- A chunk in both lists always beats a chunk at the same position in one list
- Score magnitudes never matter, only order inside each top-5
"""

import logging
from typing import Dict, List, Sequence, Tuple

from ..models import ScoredChunk

logger = logging.getLogger(__name__)

LEXICAL_WEIGHT = 0.6
VECTOR_WEIGHT = 0.4
FUSION_LIST_SIZE = 5


def normalized_rank_score(rank: int, list_length: int) -> float:
    """
    Rank position mapped to (0, 1]: first place is 1.0, last place is 1/n.

    Example:
        >>> [normalized_rank_score(i, 5) for i in range(5)]
        [1.0, 0.8, 0.6, 0.4, 0.2]
    """
    return (list_length - rank) / list_length


def weighted_rank_fusion(
    rankings: Sequence[Tuple[Sequence[ScoredChunk], float]],
    list_size: int = FUSION_LIST_SIZE,
    top_k: int = FUSION_LIST_SIZE,
) -> List[ScoredChunk]:
    """
    Fuse several rankings by weighted normalized rank.

    Args:
        rankings: (ranking, weight) pairs; each ranking sorted best-first
        list_size: Only the first `list_size` items of each ranking take part
        top_k: Number of fused results to return

    Returns:
        Deduplicated (by chunk id) ScoredChunk list sorted by fused score,
        each carrying its fused score in [0, sum(weights)]

    Example:
        >>> fused = weighted_rank_fusion([(bm25_ranking, 0.6), (vector_ranking, 0.4)])
        >>> [r.chunk_id for r in fused]
        ['c1', 'c3', 'c2', ...]  # c1 first in both lists
    """
    fused_scores: Dict[str, float] = {}
    chunks_by_id = {}

    for ranking, weight in rankings:
        top = list(ranking[:list_size])
        for rank, item in enumerate(top):
            chunk_id = item.chunk_id
            fused_scores[chunk_id] = fused_scores.get(chunk_id, 0.0) + weight * normalized_rank_score(rank, len(top))
            chunks_by_id.setdefault(chunk_id, item.chunk)

    fused = [
        ScoredChunk(chunk=chunks_by_id[chunk_id], score=score)
        for chunk_id, score in fused_scores.items()
    ]
    fused.sort(key=lambda r: r.score, reverse=True)

    logger.debug(f"Fused {len(rankings)} rankings into {len(fused)} unique chunks, returning top {top_k}")

    return fused[:top_k]


def hybrid_fusion(
    lexical: Sequence[ScoredChunk],
    vector: Sequence[ScoredChunk],
    lexical_weight: float = LEXICAL_WEIGHT,
    vector_weight: float = VECTOR_WEIGHT,
) -> List[ScoredChunk]:
    """Fuse BM25 and vector rankings with the standard 0.6 / 0.4 weights and top-5 lists"""
    return weighted_rank_fusion(
        [(lexical, lexical_weight), (vector, vector_weight)],
        list_size=FUSION_LIST_SIZE,
        top_k=FUSION_LIST_SIZE,
    )
