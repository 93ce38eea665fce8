"""
ragbot - FastAPI application for per-bot document Q&A

Endpoints:
- POST /v1/chat/query               answer a question from a bot's documents
- POST /v1/bots/{bot_id}/documents  upload + ingest a plain-text document
- GET  /v1/bots/{bot_id}/documents  list a bot's documents
- GET  /v1/documents/{id}           document status
- DELETE /v1/documents/{id}         delete a document and its chunks

Retrieval is hybrid (BM25 + Gemini embeddings, rank-fused); answers come from
Gemini. PostgreSQL + pgvector stores chunks and chat history.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .chat import APOLOGY_ANSWER, ChatService
from .config import AppConfig, load_environment
from .database import ChatbotDB
from .document_processor import DocumentProcessor
from .exceptions import AnswerGenerationError
from .logging_config import setup_logging
from .models import DocumentStatus
from .providers import ProviderFactory
from .retrieval import HybridRetriever
from .utils import calculate_file_hash

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"
APP_START_TIME = datetime.now(timezone.utc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources"""
    env_path = load_environment()
    config = AppConfig.from_env()
    setup_logging(log_file=config.log_file, console_level=config.console_level)
    logger.info(f"Environment loaded from: {env_path or 'system environment only'}")

    db = ChatbotDB(config.database)
    await db.connect()
    await db.init_schema()

    embedder, generator = ProviderFactory.create(config.provider)

    app.state.config = config
    app.state.db = db
    app.state.processor = DocumentProcessor(store=db, embedder=embedder, max_tokens=config.max_chunk_tokens)
    app.state.chat_service = ChatService(
        store=db,
        retriever=HybridRetriever(embedder=embedder),
        generator=generator,
        session_logger=db,
    )
    logger.info("ragbot initialized")

    yield

    logger.info("Shutting down...")
    embedder.close()
    generator.close()
    await db.disconnect()


app = FastAPI(
    title="ragbot API",
    description="Hybrid-retrieval (BM25 + embeddings) chatbot backend",
    version=APP_VERSION,
    lifespan=lifespan,
)

# The chat widget is embedded on arbitrary customer sites
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependencies (overridden in tests)

def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return value


def get_chat_service(request: Request) -> ChatService:
    return _state(request, "chat_service")


def get_processor(request: Request) -> DocumentProcessor:
    return _state(request, "processor")


def get_db(request: Request) -> ChatbotDB:
    return _state(request, "db")


# Request/Response models

class HealthResponse(BaseModel):
    status: str
    version: str
    started_at: str
    uptime_seconds: float


class QueryRequest(BaseModel):
    bot_id: str = Field(..., min_length=1, description="Bot whose documents are searched")
    question: str = Field(..., min_length=1, description="User question")
    session_id: Optional[str] = Field(default=None, description="Client session token (generated if omitted)")


class QueryResponse(BaseModel):
    answer: str
    citations: List[str]
    session_id: Optional[str] = None
    response_time_ms: int = 0


class DocumentUploadResponse(BaseModel):
    document_id: str
    filename: str
    file_hash: str = Field(..., description="SHA256 hash of file content (64 hex chars)")
    chunks_created: int
    embedded_chunks: int
    status: str
    message: str


class DocumentInfo(BaseModel):
    document_id: str
    bot_id: str
    filename: str
    file_type: str
    status: str
    total_chunks: int
    created_at: Optional[str] = None
    processed_at: Optional[str] = None


class DocumentListResponse(BaseModel):
    total: int
    documents: List[DocumentInfo]


class DocumentDeleteResponse(BaseModel):
    document_id: str
    filename: str
    chunks_deleted: int
    message: str


def _file_type(filename: str, content_type: Optional[str]) -> str:
    if filename and '.' in filename:
        return filename.rsplit('.', 1)[1].lower()
    if content_type:
        # Drop MIME parameters such as "; charset=utf-8"
        return content_type.split(';', 1)[0].strip().lower()
    return "txt"


def _document_info(doc) -> DocumentInfo:
    return DocumentInfo(
        document_id=doc.id,
        bot_id=doc.bot_id,
        filename=doc.filename,
        file_type=doc.file_type,
        status=doc.status.value,
        total_chunks=doc.total_chunks,
        created_at=doc.created_at.isoformat() if doc.created_at else None,
        processed_at=doc.processed_at.isoformat() if doc.processed_at else None,
    )


# Routes

@app.get("/", response_model=dict)
async def root():
    """Root endpoint"""
    return {
        "service": "ragbot API",
        "version": APP_VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint"""
    uptime = (datetime.now(timezone.utc) - APP_START_TIME).total_seconds()
    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        started_at=APP_START_TIME.isoformat(),
        uptime_seconds=round(uptime, 2),
    )


@app.post("/v1/chat/query", response_model=QueryResponse)
async def chat_query(request: QueryRequest, chat_service: ChatService = Depends(get_chat_service)):
    """
    Answer a question from a bot's documents.

    Example:
        POST /v1/chat/query
        {"bot_id": "bot_123", "question": "What is the refund policy?"}

    Response:
        {"answer": "...", "citations": ["Page 1", "Page 3"], "session_id": "session_...", "response_time_ms": 840}

    A bot without documents gets a canned answer and no citations. If the
    answer model fails, the response is 502 with an apology; the provider
    error itself only goes to the logs.
    """
    try:
        reply = await chat_service.answer(request.bot_id, request.question, request.session_id)
    except AnswerGenerationError as e:
        logger.error(f"Answer generation failed for bot {request.bot_id}: {e}", exc_info=e)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "answer_generation_failed", "answer": APOLOGY_ANSWER, "citations": []},
        )
    except Exception as e:
        logger.exception(f"Query failed for bot {request.bot_id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "query_failed", "answer": APOLOGY_ANSWER, "citations": []},
        )

    return QueryResponse(
        answer=reply.answer,
        citations=reply.citations,
        session_id=reply.session_id,
        response_time_ms=reply.response_time_ms,
    )


@app.post("/v1/bots/{bot_id}/documents", response_model=DocumentUploadResponse)
async def upload_document(
    bot_id: str,
    file: UploadFile = File(...),
    db: ChatbotDB = Depends(get_db),
    processor: DocumentProcessor = Depends(get_processor),
):
    """
    Upload a plain-text document and index it for a bot.

    Ingestion is synchronous: the response is sent once every chunk is
    stored. Uploading the same content twice for one bot is a no-op once the
    first upload completed; a failed or unfinished copy is replaced.
    """
    file_content = await file.read()
    if not file_content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    file_hash = calculate_file_hash(file_content)
    existing = await db.find_document_by_hash(bot_id, file_hash)
    if existing and existing.status != DocumentStatus.COMPLETED:
        # Failed or interrupted ingestion: drop it (chunks cascade) and ingest again
        logger.info(f"Replacing {existing.status.value} document {existing.id} for bot {bot_id}")
        await db.delete_document(existing.id)
        existing = None

    if existing:
        logger.info(f"Document already exists for bot {bot_id}: {existing.id} ({existing.filename})")
        return DocumentUploadResponse(
            document_id=existing.id,
            filename=existing.filename,
            file_hash=file_hash,
            chunks_created=0,
            embedded_chunks=0,
            status=existing.status.value,
            message=f"Document already exists (uploaded as '{existing.filename}'). Skipping duplicate.",
        )

    document = await db.create_document(
        bot_id=bot_id,
        filename=file.filename or "untitled.txt",
        file_type=_file_type(file.filename, file.content_type),
        file_hash=file_hash,
    )

    try:
        result = await processor.process_document(document, file_content)
    except ValueError as e:
        await db.delete_document(document.id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return DocumentUploadResponse(
        document_id=document.id,
        filename=document.filename,
        file_hash=file_hash,
        chunks_created=result.chunks_created,
        embedded_chunks=result.embedded_chunks,
        status="completed",
        message=f"Document processed successfully ({result.chunks_created} chunks)",
    )


@app.get("/v1/bots/{bot_id}/documents", response_model=DocumentListResponse)
async def list_documents(bot_id: str, db: ChatbotDB = Depends(get_db)):
    """List a bot's documents, newest first"""
    documents = await db.list_documents(bot_id)
    return DocumentListResponse(
        total=len(documents),
        documents=[_document_info(doc) for doc in documents],
    )


@app.get("/v1/documents/{document_id}", response_model=DocumentInfo)
async def get_document(document_id: str, db: ChatbotDB = Depends(get_db)):
    """Document metadata and processing status"""
    document = await db.get_document(document_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document with id {document_id} not found",
        )
    return _document_info(document)


@app.delete("/v1/documents/{document_id}", response_model=DocumentDeleteResponse)
async def delete_document(document_id: str, db: ChatbotDB = Depends(get_db)):
    """Delete a document; its chunks go with it (ON DELETE CASCADE)"""
    deleted = await db.delete_document(document_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Document with id {document_id} not found",
        )

    return DocumentDeleteResponse(
        document_id=deleted.id,
        filename=deleted.filename,
        chunks_deleted=deleted.total_chunks,
        message=f"Document '{deleted.filename}' deleted",
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "ragbot.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8080")),
        reload=True,  # Development only
    )
