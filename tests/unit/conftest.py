"""Unit test fixtures - chunk builders and mocked collaborators (no network, no database)"""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from ragbot.bm25.index_builder import build_term_frequencies
from ragbot.models import Chunk, ChunkMetadata, DocumentRecord


def build_chunk(
    chunk_id: str,
    terms: Optional[Dict[str, int]] = None,
    content: Optional[str] = None,
    embedding: Optional[List[float]] = None,
    page: int = 1,
    bot_id: str = "bot-1",
    document_id: str = "doc-1",
    chunk_index: int = 0,
) -> Chunk:
    """
    Chunk with either explicit term frequencies or ones derived from content.

    When only `terms` is given, content is synthesized from them so the chunk
    stays valid (content must be non-empty).
    """
    if content is None:
        content = " ".join(term for term, count in (terms or {"placeholder": 1}).items() for _ in range(count))
    if terms is None:
        terms = build_term_frequencies(content)
    return Chunk(
        id=chunk_id,
        document_id=document_id,
        bot_id=bot_id,
        chunk_index=chunk_index,
        content=content,
        term_frequencies=terms,
        token_count=len(content.split()),
        embedding=embedding,
        metadata=ChunkMetadata(page=page),
    )


@pytest.fixture
def make_chunk():
    """Factory fixture for Chunk objects"""
    return build_chunk


@pytest.fixture
def fruit_corpus():
    """Three-chunk corpus: apple pie / banana / apple banana"""
    return [
        build_chunk("c1", {"apple": 2, "pie": 1}),
        build_chunk("c2", {"banana": 3}),
        build_chunk("c3", {"apple": 1, "banana": 1}),
    ]


@pytest.fixture
def document():
    return DocumentRecord(
        id="doc-1",
        bot_id="bot-1",
        filename="handbook.txt",
        file_type="txt",
        file_hash="a" * 64,
    )


@pytest.fixture
def mock_store():
    """Chunk store / session logger with every method as AsyncMock"""
    store = AsyncMock()
    store.get_chunks.return_value = []
    store.put_chunk.side_effect = lambda chunk: chunk
    store.get_or_create_session.return_value = "session-row-1"
    return store


@pytest.fixture
def mock_embedder():
    """Embedding provider returning a fixed 3-dim vector"""
    embedder = AsyncMock()
    embedder.embed.return_value = [1.0, 0.0, 0.0]
    embedder.dimension = 3
    return embedder


@pytest.fixture
def mock_generator():
    generator = AsyncMock()
    generator.generate.return_value = "Generated answer."
    return generator
