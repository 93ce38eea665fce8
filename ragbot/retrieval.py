"""
Hybrid retrieval: BM25 + cosine similarity fused by rank position.

Query path:
1. BM25 over all of the bot's chunks → top 5
2. Query embedding + cosine similarity over embedded chunks → top 5
3. Weighted rank fusion (0.6 lexical / 0.4 vector) → top 5

If step 2 fails for any reason (provider error, missing key, timeout, bad
vectors) the BM25 top 5 is returned unchanged. The vector stage can only
improve a query, never break it.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .bm25.fusion import FUSION_LIST_SIZE, hybrid_fusion
from .bm25.scorer import BM25Scorer
from .models import Chunk, ScoredChunk
from .providers.base import BaseEmbeddingProvider
from .similarity import rank_by_similarity

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """Final ranking plus which stages contributed to it"""
    results: List[ScoredChunk] = field(default_factory=list)
    mode: str = "lexical"  # "hybrid" or "lexical"
    vector_error: Optional[str] = None

    @property
    def chunks(self) -> List[Chunk]:
        return [r.chunk for r in self.results]


class HybridRetriever:
    """Ranks one bot's chunks for a question"""

    def __init__(
        self,
        embedder: Optional[BaseEmbeddingProvider] = None,
        scorer: Optional[BM25Scorer] = None,
    ):
        """
        Args:
            embedder: Query embedding provider; None means lexical-only retrieval
            scorer: BM25 scorer (default instance if None)
        """
        self.embedder = embedder
        self.scorer = scorer or BM25Scorer()
        self.top_k = FUSION_LIST_SIZE

    async def _vector_ranking(self, question: str, chunks: Sequence[Chunk]) -> List[ScoredChunk]:
        query_embedding = await self.embedder.embed(question)
        return rank_by_similarity(query_embedding, chunks, top_k=self.top_k)

    async def retrieve(self, question: str, chunks: Sequence[Chunk]) -> RetrievalResult:
        """
        Rank chunks for the question.

        Args:
            question: User question
            chunks: Every chunk of the bot (must be non-empty)

        Returns:
            RetrievalResult with at most `top_k` chunks
        """
        lexical = self.scorer.rank(question, chunks)[:self.top_k]

        if self.embedder is None:
            return RetrievalResult(results=lexical, mode="lexical")

        try:
            vector = await self._vector_ranking(question, chunks)
        except Exception as e:
            logger.warning(f"Vector search failed, using BM25 only: {e}")
            return RetrievalResult(results=lexical, mode="lexical", vector_error=str(e))

        fused = hybrid_fusion(lexical, vector)
        logger.debug(f"Hybrid retrieval: {len(lexical)} lexical + {len(vector)} vector → {len(fused)} fused")

        return RetrievalResult(results=fused, mode="hybrid")
