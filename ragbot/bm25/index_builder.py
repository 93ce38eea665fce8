"""
BM25 index builder.

Two halves of the lexical index:
- Ingestion: `build_term_frequencies()` turns one chunk's text into the
  {term: count} map persisted with the chunk.
- Query time: `compute_corpus_statistics()` rebuilds document frequency, IDF
  and average length from the persisted maps of one bot's chunks.

Corpus statistics are never cached. They depend on the exact
chunk set, which changes whenever a document is uploaded or deleted.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

from .tokenizer import tokenize

logger = logging.getLogger(__name__)


def build_term_frequencies(text: str) -> Dict[str, int]:
    """
    Count index terms in one chunk.

    Args:
        text: Chunk content

    Returns:
        Plain dict {term: occurrences} (JSON-serializable)

    Example:
        >>> build_term_frequencies("Apple pie. Apple crumble!")
        {'apple': 2, 'pie': 1, 'crumble': 1}
    """
    return dict(Counter(tokenize(text)))


def inverse_document_frequency(document_count: int, document_frequency: int) -> float:
    """
    Smoothed BM25 IDF: ln((N - df + 0.5) / (df + 0.5) + 1).

    The +1 inside the log keeps the value >= 0 even for terms that appear in
    every chunk.
    """
    return math.log(
        (document_count - document_frequency + 0.5) / (document_frequency + 0.5) + 1
    )


@dataclass
class CorpusStatistics:
    """Per-query statistics over one bot's chunk set"""
    document_count: int
    avg_doc_length: float
    document_frequencies: Dict[str, int] = field(default_factory=dict)
    idf: Dict[str, float] = field(default_factory=dict)

    def idf_for(self, term: str) -> float:
        """IDF of a term; 0.0 for terms not present in any chunk"""
        return self.idf.get(term, 0.0)


def compute_corpus_statistics(term_maps: Iterable[Mapping[str, int]]) -> CorpusStatistics:
    """
    Rebuild corpus statistics from persisted per-chunk term maps.

    Args:
        term_maps: One {term: count} map per candidate chunk

    Returns:
        CorpusStatistics for exactly this set of chunks

    Raises:
        ValueError: If no term maps are given (empty corpus has no average length)
    """
    document_count = 0
    total_length = 0
    document_frequencies: Counter = Counter()

    for term_map in term_maps:
        document_count += 1
        total_length += sum(term_map.values())
        # Key presence, not count: a chunk contributes at most 1 per term
        document_frequencies.update(term_map.keys())

    if document_count == 0:
        raise ValueError("Cannot compute corpus statistics for an empty chunk set")

    idf = {
        term: inverse_document_frequency(document_count, df)
        for term, df in document_frequencies.items()
    }

    stats = CorpusStatistics(
        document_count=document_count,
        avg_doc_length=total_length / document_count,
        document_frequencies=dict(document_frequencies),
        idf=idf,
    )

    logger.debug(f"Corpus statistics: {document_count} chunks, {len(idf)} unique terms, avg length {stats.avg_doc_length:.1f}")

    return stats
