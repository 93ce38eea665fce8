"""
Document ingestion pipeline

Per document:
1. Extract plain text from the uploaded bytes
2. Split into sentence-aligned chunks (≤ max_tokens words each)
3. Per chunk: BM25 term frequencies, word count, citation page
4. Per chunk: embedding (sequential; a failure leaves that chunk unembedded)
5. Persist each chunk
6. Mark the document completed with its chunk count

Embedding failures are tolerated chunk by chunk: the chunk is stored with a
null embedding and stays reachable through BM25. There is no rollback, so a
document may end up with a mix of embedded and non-embedded chunks.
"""

import logging
from typing import List, Optional

from .bm25.index_builder import build_term_frequencies
from .chunking import DEFAULT_MAX_TOKENS, chunk_text, count_tokens
from .models import Chunk, ChunkMetadata, DocumentRecord, DocumentStatus, IngestionResult
from .providers.base import BaseEmbeddingProvider

logger = logging.getLogger(__name__)

# Chunks per citation "page" (documents carry no real page numbers)
CHUNKS_PER_PAGE = 5

TEXT_FILE_TYPES = frozenset({
    'txt', 'text/plain',
    'md', 'markdown', 'text/markdown',
    'rst', 'text/x-rst',
    'csv', 'text/csv',
    'log', 'text/x-log',
})


def page_for_chunk(chunk_index: int) -> int:
    """Citation page of a chunk: chunks 0-4 → page 1, 5-9 → page 2, ..."""
    return chunk_index // CHUNKS_PER_PAGE + 1


class DocumentProcessor:
    """Turn uploaded documents into indexed, persisted chunks"""

    def __init__(
        self,
        store,
        embedder: Optional[BaseEmbeddingProvider] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        """
        Args:
            store: Chunk store with `put_chunk`, `mark_document_completed`, `mark_document_status`
            embedder: Embedding provider; None stores every chunk without embedding
            max_tokens: Word budget per chunk
        """
        self.store = store
        self.embedder = embedder
        self.max_tokens = max_tokens

    @staticmethod
    def normalize_file_type(file_type: str) -> str:
        file_ext = file_type.lower().strip()
        if file_ext.startswith('.'):
            file_ext = file_ext[1:]
        return file_ext

    def extract_text(self, file_content: bytes, file_type: str) -> str:
        """
        Extract text from an uploaded file.

        Only plain-text formats are supported.

        Args:
            file_content: File content as bytes
            file_type: File extension (.txt, md) or MIME type

        Returns:
            Decoded text

        Raises:
            ValueError: For unsupported file types
        """
        file_ext = self.normalize_file_type(file_type)
        if file_ext not in TEXT_FILE_TYPES:
            raise ValueError(f"Unsupported file type: {file_type}. Supported: plain text formats (txt, md, rst, csv, log)")

        try:
            return file_content.decode('utf-8')
        except UnicodeDecodeError:
            # latin-1 maps every byte, so this never fails
            logger.warning("UTF-8 decode failed, using latin-1")
            return file_content.decode('latin-1', errors='replace')

    def build_chunks(self, document: DocumentRecord, text: str) -> List[Chunk]:
        """Chunk text and compute term maps (no embeddings yet)"""
        chunks = []
        for index, content in enumerate(chunk_text(text, max_tokens=self.max_tokens)):
            chunks.append(Chunk(
                document_id=document.id,
                bot_id=document.bot_id,
                chunk_index=index,
                content=content,
                term_frequencies=build_term_frequencies(content),
                token_count=count_tokens(content),
                metadata=ChunkMetadata(page=page_for_chunk(index)),
            ))
        return chunks

    async def _embed(self, chunk: Chunk) -> Optional[List[float]]:
        if self.embedder is None:
            return None
        try:
            return await self.embedder.embed(chunk.content)
        except Exception as e:
            logger.error(f"Failed to generate embedding for chunk {chunk.chunk_index} of document {chunk.document_id}: {e}")
            return None

    async def process_document(self, document: DocumentRecord, file_content: bytes) -> IngestionResult:
        """
        Full pipeline: extract → chunk → term maps → embed → persist → complete.

        Args:
            document: Persisted document record (provides id and bot_id)
            file_content: Raw uploaded bytes

        Returns:
            IngestionResult with chunk and embedding counts

        Raises:
            ValueError: Unsupported file type or no extractable text (nothing is written)
        """
        text = self.extract_text(file_content, document.file_type)
        if not text.strip():
            raise ValueError(f"Could not extract text from {document.filename}")

        chunks = self.build_chunks(document, text)
        logger.info(f"Processing {document.filename}: {len(text)} chars → {len(chunks)} chunks")

        embedded = 0
        failed: List[int] = []

        try:
            # Sequential on purpose: one provider call in flight per document
            for chunk in chunks:
                embedding = await self._embed(chunk)
                if embedding is None:
                    failed.append(chunk.chunk_index)
                else:
                    embedded += 1
                    chunk = chunk.model_copy(update={"embedding": embedding})

                await self.store.put_chunk(chunk)

            await self.store.mark_document_completed(document.id, len(chunks))
        except Exception:
            logger.exception(f"Ingestion failed for document {document.id}")
            await self.store.mark_document_status(document.id, DocumentStatus.FAILED)
            raise

        if failed:
            logger.warning(f"{document.filename}: {len(failed)}/{len(chunks)} chunks stored without embedding")
        logger.info(f"Document {document.id} completed: {len(chunks)} chunks, {embedded} embedded")

        return IngestionResult(
            document_id=document.id,
            chunks_created=len(chunks),
            embedded_chunks=embedded,
            failed_embeddings=failed,
        )
