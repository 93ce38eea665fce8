"""
BM25 scorer over one bot's chunk set.

BM25 (Best Match 25) is a probabilistic ranking function used for information retrieval.

Formula (per query term):
    score(term, chunk) = idf(term) × (tf × (k1 + 1)) / (tf + k1 × (1 - b + b × dl/avgdl))

Where:
    tf = stored frequency of the term in the chunk (0 if absent)
    idf = ln((N - df + 0.5) / (df + 0.5) + 1), N = number of candidate chunks
    k1 = term frequency saturation parameter (1.5)
    b = length normalization parameter (0.75)
    dl = chunk length (sum of its term frequencies)
    avgdl = mean chunk length over the candidate set

Query terms are NOT deduplicated: "apple apple pie" counts "apple" twice.
"""

import logging
from typing import Dict, List, Sequence

from ..models import Chunk, ScoredChunk
from .index_builder import CorpusStatistics, compute_corpus_statistics
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

K1 = 1.5
B = 0.75


class BM25Scorer:
    """
    BM25 with corpus statistics rebuilt on every call.

    Stateless between calls: each `rank()` derives IDF and average length
    from exactly the chunks it is given.
    """

    k1 = K1
    b = B

    def term_score(self, tf: int, idf: float, doc_length: int, avg_doc_length: float) -> float:
        """Contribution of one query term to one chunk's score"""
        if tf == 0:
            return 0.0

        # Every chunk has an empty term map: no length information to normalize with
        length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0

        numerator = tf * (self.k1 + 1)
        denominator = tf + self.k1 * (1 - self.b + self.b * length_ratio)
        return idf * numerator / denominator

    def score(
        self,
        query_terms: Sequence[str],
        term_frequencies: Dict[str, int],
        stats: CorpusStatistics,
    ) -> float:
        """
        BM25 score of a single chunk.

        Args:
            query_terms: Tokenized query (duplicates kept)
            term_frequencies: The chunk's stored term map
            stats: Corpus statistics of the candidate set the chunk belongs to

        Returns:
            Score >= 0 (0.0 when no query term occurs in the chunk)
        """
        doc_length = sum(term_frequencies.values())
        return sum(
            self.term_score(
                term_frequencies.get(term, 0),
                stats.idf_for(term),
                doc_length,
                stats.avg_doc_length,
            )
            for term in query_terms
        )

    def rank(self, query: str, chunks: Sequence[Chunk]) -> List[ScoredChunk]:
        """
        Score every chunk against the query and sort by descending score.

        Chunks without any matching term stay in the output with score 0.
        Order among equal scores is unspecified.

        Args:
            query: Raw query text (tokenized here)
            chunks: Full candidate set for one bot

        Returns:
            All chunks as ScoredChunk, best first

        Raises:
            ValueError: If `chunks` is empty (callers handle the empty corpus)
        """
        if not chunks:
            raise ValueError("BM25 ranking requires at least one chunk")

        query_terms = tokenize(query)
        stats = compute_corpus_statistics(chunk.term_frequencies for chunk in chunks)

        results = [
            ScoredChunk(chunk=chunk, score=self.score(query_terms, chunk.term_frequencies, stats))
            for chunk in chunks
        ]
        results.sort(key=lambda r: r.score, reverse=True)

        logger.debug(f"BM25 ranked {len(results)} chunks for {len(query_terms)} query terms (top score {results[0].score:.3f})")

        return results
