"""
BM25 (Best Match 25) lexical ranking for hybrid search.

Components:
- tokenizer: Text normalization into index terms (shared by ingestion and query)
- index_builder: Per-chunk term frequencies + per-query corpus statistics
- scorer: BM25 with smoothed IDF over one bot's chunk set
- fusion: Weighted rank fusion of lexical and vector rankings

No global statistics are stored. Each query recomputes document frequency,
IDF and average chunk length from the term maps of the bot's chunks, so a
freshly uploaded document is reflected immediately.
"""

from .tokenizer import tokenize
from .index_builder import CorpusStatistics, build_term_frequencies, compute_corpus_statistics
from .scorer import BM25Scorer
from .fusion import hybrid_fusion, weighted_rank_fusion

__all__ = [
    "tokenize",
    "CorpusStatistics",
    "build_term_frequencies",
    "compute_corpus_statistics",
    "BM25Scorer",
    "hybrid_fusion",
    "weighted_rank_fusion",
]
