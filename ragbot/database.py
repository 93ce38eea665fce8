"""
Database module for PostgreSQL + pgvector

Stores documents, their chunks (text, BM25 term map, optional embedding) and
chat sessions/messages. Scoring happens in Python over all of a bot's chunks,
so the store's job on the query path is a single `get_chunks(bot_id)`.

Tables:
- documents        one row per uploaded file (status, chunk count, hash)
- document_chunks  immutable chunks, cascade-deleted with their document
- chat_sessions    one row per (bot_id, session_token)
- chat_messages    user/assistant turns with citations and timing
"""

import json
import logging
from typing import List, Optional, Sequence

import asyncpg
from pgvector.asyncpg import register_vector

from .config import DatabaseConfig
from .models import Chunk, ChunkMetadata, DocumentRecord, DocumentStatus

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    "CREATE EXTENSION IF NOT EXISTS vector",
    """
    CREATE TABLE IF NOT EXISTS documents (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        bot_id TEXT NOT NULL,
        filename TEXT NOT NULL,
        file_type TEXT NOT NULL,
        file_hash TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        total_chunks INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        processed_at TIMESTAMPTZ,
        UNIQUE(bot_id, file_hash)
    )
    """,
    # Embedding dimension is left open: chunks without an embedding (or from an
    # older model) are excluded from vector ranking at query time.
    """
    CREATE TABLE IF NOT EXISTS document_chunks (
        id UUID PRIMARY KEY,
        document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        bot_id TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        content TEXT NOT NULL,
        token_count INTEGER NOT NULL DEFAULT 0,
        bm25_terms JSONB NOT NULL DEFAULT '{}',
        embedding VECTOR,
        metadata JSONB NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        UNIQUE(document_id, chunk_index)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chunks_bot_id ON document_chunks (bot_id)",
    """
    CREATE TABLE IF NOT EXISTS chat_sessions (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        bot_id TEXT NOT NULL,
        session_token TEXT NOT NULL,
        metadata JSONB NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        last_active_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        UNIQUE(bot_id, session_token)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        session_id UUID NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
        bot_id TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
        content TEXT NOT NULL,
        citations JSONB,
        response_time_ms INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)

DOCUMENT_COLUMNS = "id, bot_id, filename, file_type, file_hash, status, total_chunks, created_at, processed_at"
CHUNK_COLUMNS = "id, document_id, bot_id, chunk_index, content, token_count, bm25_terms, embedding, metadata"


def _json_value(value, default):
    """JSONB columns come back as str unless a codec is registered"""
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def row_to_chunk(row) -> Chunk:
    """Convert a document_chunks row into a Chunk"""
    embedding = row["embedding"]
    if embedding is not None:
        # pgvector returns numpy arrays
        embedding = [float(v) for v in embedding]

    return Chunk(
        id=str(row["id"]),
        document_id=str(row["document_id"]),
        bot_id=row["bot_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        token_count=row["token_count"],
        term_frequencies=_json_value(row["bm25_terms"], {}),
        embedding=embedding,
        metadata=ChunkMetadata(**_json_value(row["metadata"], {})),
    )


def row_to_document(row) -> DocumentRecord:
    """Convert a documents row into a DocumentRecord"""
    return DocumentRecord(
        id=str(row["id"]),
        bot_id=row["bot_id"],
        filename=row["filename"],
        file_type=row["file_type"],
        file_hash=row["file_hash"],
        status=DocumentStatus(row["status"]),
        total_chunks=row["total_chunks"],
        created_at=row["created_at"],
        processed_at=row["processed_at"],
    )


class ChatbotDB:
    """PostgreSQL store for chunks, documents and chat sessions"""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialize connection pool"""
        async def init_connection(conn):
            """Register vector type for each new connection in the pool"""
            await register_vector(conn)

        # The extension must exist before register_vector can find the type
        conn = await asyncpg.connect(self.config.connection_string)
        try:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        finally:
            await conn.close()

        self.pool = await asyncpg.create_pool(
            self.config.connection_string,
            min_size=self.config.min_pool_size,
            max_size=self.config.max_pool_size,
            init=init_connection,
        )

        logger.info(f"Connected to PostgreSQL: {self.config.connection_string.split('@')[-1]}")

    async def disconnect(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Disconnected from PostgreSQL")

    async def init_schema(self):
        """Create tables and indexes"""
        async with self.pool.acquire() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Database schema initialized")

    # Chunks

    async def get_chunks(self, bot_id: str) -> List[Chunk]:
        """
        All chunks of a bot in one call.

        BM25 corpus statistics are computed over exactly this set, so the
        result must not be paginated or filtered.
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {CHUNK_COLUMNS}
                FROM document_chunks
                WHERE bot_id = $1
                ORDER BY document_id, chunk_index
                """,
                bot_id,
            )
        return [row_to_chunk(row) for row in rows]

    async def put_chunk(self, chunk: Chunk) -> Chunk:
        """Insert a chunk (chunks are immutable, so no upsert)"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO document_chunks
                    (id, document_id, bot_id, chunk_index, content, token_count,
                     bm25_terms, embedding, metadata)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {CHUNK_COLUMNS}
                """,
                chunk.id,
                chunk.document_id,
                chunk.bot_id,
                chunk.chunk_index,
                chunk.content,
                chunk.token_count,
                json.dumps(chunk.term_frequencies),
                chunk.embedding,
                chunk.metadata.model_dump_json(),
            )
        return row_to_chunk(row)

    # Documents

    async def create_document(
        self,
        bot_id: str,
        filename: str,
        file_type: str,
        file_hash: str,
    ) -> DocumentRecord:
        """Insert a document in 'processing' state"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO documents (bot_id, filename, file_type, file_hash, status)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {DOCUMENT_COLUMNS}
                """,
                bot_id,
                filename,
                file_type,
                file_hash,
                DocumentStatus.PROCESSING.value,
            )
        return row_to_document(row)

    async def find_document_by_hash(self, bot_id: str, file_hash: str) -> Optional[DocumentRecord]:
        """Existing document of this bot with the same content hash, if any"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {DOCUMENT_COLUMNS} FROM documents WHERE bot_id = $1 AND file_hash = $2",
                bot_id,
                file_hash,
            )
        return row_to_document(row) if row else None

    async def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {DOCUMENT_COLUMNS} FROM documents WHERE id = $1",
                document_id,
            )
        return row_to_document(row) if row else None

    async def list_documents(self, bot_id: str) -> List[DocumentRecord]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {DOCUMENT_COLUMNS} FROM documents WHERE bot_id = $1 ORDER BY created_at DESC",
                bot_id,
            )
        return [row_to_document(row) for row in rows]

    async def mark_document_status(self, document_id: str, status: DocumentStatus):
        async with self.pool.acquire() as conn:
            await conn.execute(
                "UPDATE documents SET status = $1 WHERE id = $2",
                status.value,
                document_id,
            )

    async def mark_document_completed(self, document_id: str, total_chunks: int):
        """Set status 'completed' with the final chunk count"""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE documents
                SET status = $1, total_chunks = $2, processed_at = now()
                WHERE id = $3
                """,
                DocumentStatus.COMPLETED.value,
                total_chunks,
                document_id,
            )

    async def delete_document(self, document_id: str) -> Optional[DocumentRecord]:
        """Delete a document (cascades to its chunks); returns the deleted row"""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"DELETE FROM documents WHERE id = $1 RETURNING {DOCUMENT_COLUMNS}",
                document_id,
            )
        return row_to_document(row) if row else None

    # Sessions

    async def get_or_create_session(self, bot_id: str, session_token: str) -> str:
        """Session row id for (bot_id, session_token), created on first use"""
        async with self.pool.acquire() as conn:
            session_id = await conn.fetchval(
                """
                INSERT INTO chat_sessions (bot_id, session_token)
                VALUES ($1, $2)
                ON CONFLICT (bot_id, session_token) DO UPDATE
                    SET last_active_at = now()
                RETURNING id
                """,
                bot_id,
                session_token,
            )
        return str(session_id)

    async def log_exchange(
        self,
        session_id: str,
        bot_id: str,
        question: str,
        answer: str,
        citations: Sequence[str],
        response_time_ms: int,
    ):
        """Store the user question and assistant answer of one turn"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    """
                    INSERT INTO chat_messages
                        (session_id, bot_id, role, content, citations, response_time_ms)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    [
                        (session_id, bot_id, "user", question, None, 0),
                        (session_id, bot_id, "assistant", answer, json.dumps(list(citations)), response_time_ms),
                    ],
                )
                await conn.execute(
                    "UPDATE chat_sessions SET last_active_at = now() WHERE id = $1",
                    session_id,
                )
