"""Unit tests for chat query orchestration"""

import re
from unittest.mock import AsyncMock

import pytest

from ragbot.bm25.scorer import BM25Scorer
from ragbot.chat import (
    CONTEXT_SEPARATOR,
    NO_DOCUMENTS_ANSWER,
    ChatService,
    build_citations,
    build_context,
)
from ragbot.exceptions import AnswerGenerationError, EmbeddingError
from ragbot.models import ScoredChunk
from ragbot.retrieval import HybridRetriever

pytestmark = pytest.mark.unit


@pytest.fixture
def corpus(make_chunk):
    return [
        make_chunk(
            f"c{i}",
            content=f"Refund rule {i}. " + "refund " * (7 - i) + "policy text.",
            embedding=[1.0, float(i)],
            page=i // 5 + 1,
            chunk_index=i,
        )
        for i in range(7)
    ]


def make_service(store, generator, embedder=None, session_logger=None):
    return ChatService(
        store=store,
        retriever=HybridRetriever(embedder=embedder),
        generator=generator,
        session_logger=session_logger,
    )


class TestHelpers:

    def test_build_context_joins_with_blank_line(self, make_chunk):
        results = [ScoredChunk(make_chunk("a", content="First."), 1.0), ScoredChunk(make_chunk("b", content="Second."), 0.5)]
        assert build_context(results) == "First.\n\nSecond."
        assert CONTEXT_SEPARATOR == "\n\n"

    def test_build_citations(self, make_chunk):
        results = [ScoredChunk(make_chunk("a", page=1), 1.0), ScoredChunk(make_chunk("b", page=3), 0.5)]
        assert build_citations(results) == ["Page 1", "Page 3"]


class TestAnswer:
    """Test ChatService.answer"""

    @pytest.mark.asyncio
    async def test_empty_corpus_returns_canned_answer_without_provider_calls(self, mock_store, mock_generator, mock_embedder):
        """Scenario: bot without documents"""
        service = make_service(mock_store, mock_generator, embedder=mock_embedder)

        reply = await service.answer("bot-1", "What is the refund policy?")

        assert reply.answer == NO_DOCUMENTS_ANSWER
        assert reply.citations == []
        mock_embedder.embed.assert_not_awaited()
        mock_generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_outage_answers_from_bm25_top5(self, corpus, mock_store, mock_generator):
        """Scenario: embedding provider down → answer built from BM25 top 5"""
        mock_store.get_chunks.return_value = corpus
        embedder = AsyncMock()
        embedder.embed.side_effect = EmbeddingError("service unavailable", status_code=503)
        service = make_service(mock_store, mock_generator, embedder=embedder)

        reply = await service.answer("bot-1", "refund policy")

        expected = BM25Scorer().rank("refund policy", corpus)[:5]
        context_text, question = mock_generator.generate.await_args.args
        assert question == "refund policy"
        assert context_text == "\n\n".join(r.chunk.content for r in expected)
        assert reply.answer == "Generated answer."
        assert reply.citations == [r.chunk.citation for r in expected]

    @pytest.mark.asyncio
    async def test_hybrid_answer(self, corpus, mock_store, mock_generator):
        mock_store.get_chunks.return_value = corpus
        embedder = AsyncMock()
        embedder.embed.return_value = [0.0, 1.0]
        service = make_service(mock_store, mock_generator, embedder=embedder)

        reply = await service.answer("bot-1", "refund policy")

        assert len(reply.sources) <= 5
        assert len(reply.citations) == len(reply.sources)
        assert all(re.fullmatch(r"Page \d+", c) for c in reply.citations)
        mock_store.get_chunks.assert_awaited_once_with("bot-1")

    @pytest.mark.asyncio
    async def test_session_token_generated_when_missing(self, corpus, mock_store, mock_generator):
        mock_store.get_chunks.return_value = corpus
        service = make_service(mock_store, mock_generator)

        reply = await service.answer("bot-1", "refund")

        assert re.fullmatch(r"session_\d+_[0-9a-z]{9}", reply.session_id)

    @pytest.mark.asyncio
    async def test_session_token_passed_through(self, mock_store, mock_generator):
        service = make_service(mock_store, mock_generator)

        reply = await service.answer("bot-1", "refund", session_id="session_client_1")

        assert reply.session_id == "session_client_1"

    @pytest.mark.asyncio
    async def test_exchange_logged(self, corpus, mock_store, mock_generator):
        mock_store.get_chunks.return_value = corpus
        service = make_service(mock_store, mock_generator, session_logger=mock_store)

        reply = await service.answer("bot-1", "refund", session_id="tok")

        mock_store.get_or_create_session.assert_awaited_once_with("bot-1", "tok")
        kwargs = mock_store.log_exchange.await_args.kwargs
        assert kwargs["session_id"] == "session-row-1"
        assert kwargs["question"] == "refund"
        assert kwargs["answer"] == reply.answer
        assert kwargs["citations"] == reply.citations
        assert kwargs["response_time_ms"] == reply.response_time_ms
        assert reply.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_session_logging_failure_does_not_break_answer(self, corpus, mock_store, mock_generator):
        mock_store.get_chunks.return_value = corpus
        mock_store.log_exchange.side_effect = ConnectionError("database gone")
        service = make_service(mock_store, mock_generator, session_logger=mock_store)

        reply = await service.answer("bot-1", "refund")

        assert reply.answer == "Generated answer."

    @pytest.mark.asyncio
    async def test_generation_failure_propagates(self, corpus, mock_store):
        mock_store.get_chunks.return_value = corpus
        generator = AsyncMock()
        generator.generate.side_effect = AnswerGenerationError("model overloaded", status_code=503)
        service = make_service(mock_store, generator, session_logger=mock_store)

        with pytest.raises(AnswerGenerationError):
            await service.answer("bot-1", "refund")

        mock_store.log_exchange.assert_not_awaited()
