"""
Unit tests for hybrid retrieval (BM25 + vector, rank-fused)

The vector stage must never break a query: any failure falls back to the
BM25 top 5, in BM25 order.
"""

from unittest.mock import AsyncMock, patch

import pytest

from ragbot.bm25.scorer import BM25Scorer
from ragbot.exceptions import EmbeddingError
from ragbot.retrieval import HybridRetriever, RetrievalResult

pytestmark = pytest.mark.unit


@pytest.fixture
def corpus(make_chunk):
    """Eight chunks with decreasing 'refund' relevance and distinct embeddings"""
    return [
        make_chunk(f"c{i}", {"refund": 8 - i, "policy": 1}, embedding=[1.0, float(i)])
        for i in range(8)
    ]


@pytest.mark.asyncio
async def test_lexical_only_without_embedder(corpus):
    retriever = HybridRetriever(embedder=None)

    result = await retriever.retrieve("refund", corpus)

    assert result.mode == "lexical"
    assert result.vector_error is None
    assert [r.chunk_id for r in result.results] == ["c0", "c1", "c2", "c3", "c4"]


@pytest.mark.asyncio
async def test_fallback_equals_bm25_top5_when_embedding_fails(corpus):
    """Scenario: embedding provider fails → output identical to BM25 top 5"""
    embedder = AsyncMock()
    embedder.embed.side_effect = EmbeddingError("quota exceeded", status_code=429)
    retriever = HybridRetriever(embedder=embedder)

    result = await retriever.retrieve("refund policy", corpus)
    expected = BM25Scorer().rank("refund policy", corpus)[:5]

    assert result.mode == "lexical"
    assert "quota exceeded" in result.vector_error
    assert [r.chunk_id for r in result.results] == [r.chunk_id for r in expected]
    assert [r.score for r in result.results] == pytest.approx([r.score for r in expected])


@pytest.mark.asyncio
async def test_no_similarity_computed_after_embedding_failure(corpus):
    embedder = AsyncMock()
    embedder.embed.side_effect = RuntimeError("network down")
    retriever = HybridRetriever(embedder=embedder)

    with patch("ragbot.retrieval.rank_by_similarity") as mock_rank:
        result = await retriever.retrieve("refund", corpus)

    mock_rank.assert_not_called()
    assert result.mode == "lexical"


@pytest.mark.asyncio
async def test_fallback_when_similarity_stage_raises(corpus, mock_embedder):
    retriever = HybridRetriever(embedder=mock_embedder)

    with patch("ragbot.retrieval.rank_by_similarity", side_effect=ValueError("bad vector")):
        result = await retriever.retrieve("refund", corpus)

    assert result.mode == "lexical"
    assert result.vector_error == "bad vector"
    assert len(result.results) == 5


@pytest.mark.asyncio
async def test_hybrid_fuses_both_rankings(make_chunk):
    """A chunk ranked low by BM25 but first by vectors is pulled into the fused top"""
    chunks = [
        make_chunk("lex1", {"refund": 5}, embedding=[0.0, 1.0]),
        make_chunk("lex2", {"refund": 3}, embedding=[0.1, 1.0]),
        make_chunk("vec1", {"other": 5}, embedding=[1.0, 0.0]),
    ]
    embedder = AsyncMock()
    embedder.embed.return_value = [1.0, 0.0]
    retriever = HybridRetriever(embedder=embedder)

    result = await retriever.retrieve("refund", chunks)

    assert result.mode == "hybrid"
    embedder.embed.assert_awaited_once_with("refund")
    scores = {r.chunk_id: r.score for r in result.results}
    # lex1: lexical rank 0 (0.6) + vector rank 2 of 3 (0.4 / 3)
    assert scores["lex1"] == pytest.approx(0.6 + 0.4 / 3)
    # vec1: lexical rank 2 of 3 (0.6 / 3, zero BM25 score still ranked) + vector rank 0 (0.4)
    assert scores["vec1"] == pytest.approx(0.6 / 3 + 0.4)


@pytest.mark.asyncio
async def test_hybrid_result_unique_and_at_most_five(corpus, mock_embedder):
    mock_embedder.embed.return_value = [0.0, 1.0]
    retriever = HybridRetriever(embedder=mock_embedder)

    result = await retriever.retrieve("refund", corpus)

    ids = [r.chunk_id for r in result.results]
    assert result.mode == "hybrid"
    assert len(ids) <= 5
    assert len(ids) == len(set(ids))


@pytest.mark.asyncio
async def test_unembedded_chunks_still_reachable_lexically(make_chunk, mock_embedder):
    chunks = [
        make_chunk("plain", {"refund": 4}),
        make_chunk("embedded", {"other": 1}, embedding=[1.0, 0.0, 0.0]),
    ]
    retriever = HybridRetriever(embedder=mock_embedder)

    result = await retriever.retrieve("refund", chunks)

    assert result.mode == "hybrid"
    assert "plain" in {r.chunk_id for r in result.results}


def test_retrieval_result_chunks(make_chunk):
    from ragbot.models import ScoredChunk

    chunk = make_chunk("a")
    result = RetrievalResult(results=[ScoredChunk(chunk=chunk, score=1.0)])
    assert result.chunks == [chunk]
    assert result.mode == "lexical"
