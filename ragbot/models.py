"""
Domain models shared by ingestion, retrieval and persistence.

Chunk is the unit of retrieval: a sentence-aligned passage of one document,
owned by one bot. Its term frequencies are computed once at ingestion and
never change; the embedding is optional because embedding generation may fail
independently of ingestion.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    """Processing state of an uploaded document"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ChunkMetadata(BaseModel):
    """
    Chunk metadata: typed ``page`` plus any extra attributes.

    Unknown keys are kept (extra="allow") so older rows with additional
    fields round-trip without loss.
    """
    model_config = ConfigDict(extra="allow")

    page: int = Field(default=1, ge=1, description="Page number used for citations")


class Chunk(BaseModel):
    """Indexed passage of a document"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    document_id: str
    bot_id: str
    chunk_index: int = Field(..., ge=0)
    content: str = Field(..., min_length=1)
    term_frequencies: Dict[str, int] = Field(default_factory=dict)
    token_count: int = 0
    embedding: Optional[List[float]] = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @property
    def citation(self) -> str:
        return f"Page {self.metadata.page}"


@dataclass
class ScoredChunk:
    """
    Chunk paired with a stage-specific score.

    Scores are only comparable within one stage: raw BM25, raw cosine
    similarity ([-1, 1]) or fused rank score ([0, 1]).
    """
    chunk: Chunk
    score: float

    @property
    def chunk_id(self) -> str:
        return self.chunk.id


class DocumentRecord(BaseModel):
    """Persisted parent document of a set of chunks"""
    id: str
    bot_id: str
    filename: str
    file_type: str
    file_hash: str
    status: DocumentStatus = DocumentStatus.PENDING
    total_chunks: int = 0
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


@dataclass
class IngestionResult:
    """Outcome of processing one document"""
    document_id: str
    chunks_created: int
    embedded_chunks: int
    failed_embeddings: List[int] = field(default_factory=list)  # chunk indices stored without embedding


@dataclass
class ChatAnswer:
    """Answer returned to the chat caller"""
    answer: str
    citations: List[str]
    session_id: Optional[str] = None
    response_time_ms: int = 0
    sources: List[ScoredChunk] = field(default_factory=list)
